from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import Patient
from .....application.ports.patient_repo import PatientRecord, PatientRepository
from .....exceptions import ConflictError

PATIENT_FIELDS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "phone",
    "email",
    "address",
    "blood_group",
    "genotype",
    "allergies",
    "medical_history",
    "emergency_contact_name",
    "emergency_contact_phone",
    "emergency_contact_relationship",
)


class SqlPatientRepository(PatientRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, p: Patient) -> PatientRecord:
        return PatientRecord(
            id=p.id,
            hospital_id=p.hospital_id,
            patient_id_number=p.patient_id_number,
            first_name=p.first_name,
            last_name=p.last_name,
            date_of_birth=p.date_of_birth,
            gender=p.gender,
            phone=p.phone,
            status=p.status,
            created_at=p.created_at,
            email=p.email,
            address=p.address,
            blood_group=p.blood_group,
            genotype=p.genotype,
            allergies=p.allergies,
            medical_history=p.medical_history,
            emergency_contact_name=p.emergency_contact_name,
            emergency_contact_phone=p.emergency_contact_phone,
            emergency_contact_relationship=p.emergency_contact_relationship,
            registered_by=p.registered_by,
        )

    def create(self, hospital_id: str, patient_id_number: str, registered_by: Optional[str], fields: Dict[str, Any]) -> PatientRecord:
        values = {k: v for k, v in fields.items() if k in PATIENT_FIELDS}
        patient = Patient(hospital_id=hospital_id, patient_id_number=patient_id_number, registered_by=registered_by, **values)
        self.session.add(patient)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("Patient number already taken, please retry")
        self.session.refresh(patient)
        return self._to_record(patient)

    def get(self, patient_id: str) -> Optional[PatientRecord]:
        p = self.session.exec(select(Patient).where(Patient.id == patient_id)).first()
        return self._to_record(p) if p else None

    def get_many(self, patient_ids: List[str]) -> Dict[str, PatientRecord]:
        if not patient_ids:
            return {}
        rows = self.session.exec(select(Patient).where(Patient.id.in_(patient_ids))).all()
        return {r.id: self._to_record(r) for r in rows}

    def search(self, hospital_id: str, search: Optional[str], offset: int, limit: int) -> Tuple[List[PatientRecord], int]:
        query = select(Patient).where(Patient.hospital_id == hospital_id)
        count_query = select(func.count(Patient.id)).where(Patient.hospital_id == hospital_id)
        if search:
            pattern = f"%{search}%"
            match = or_(
                Patient.first_name.ilike(pattern),
                Patient.last_name.ilike(pattern),
                Patient.email.ilike(pattern),
                Patient.phone.contains(search),
                Patient.patient_id_number.ilike(pattern),
            )
            query = query.where(match)
            count_query = count_query.where(match)

        rows = self.session.exec(query.order_by(Patient.created_at.desc()).offset(offset).limit(limit)).all()
        total = self.session.exec(count_query).one()
        return [self._to_record(r) for r in rows], total

    def count_all(self) -> int:
        return self.session.exec(select(func.count(Patient.id))).one()
