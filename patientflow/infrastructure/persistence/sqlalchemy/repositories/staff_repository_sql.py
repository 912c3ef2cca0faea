from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import or_, update
from sqlmodel import Session, select

from .....db.models import Hospital, StaffUser
from .....application.ports.staff_repo import HospitalRecord, HospitalRepository, StaffRecord, StaffRepository
from .....application.status import StaffRole


class SqlStaffRepository(StaffRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, u: StaffUser) -> StaffRecord:
        return StaffRecord(
            id=u.id,
            hospital_id=u.hospital_id,
            email=u.email,
            first_name=u.first_name,
            last_name=u.last_name,
            role=u.role,
            is_active=u.is_active,
            is_available=u.is_available,
            current_appointment_id=u.current_appointment_id,
            version=u.version,
            created_at=u.created_at,
            password_hash=u.password_hash,
            phone=u.phone,
            specialization=u.specialization,
            last_login=u.last_login,
        )

    def get(self, user_id: str) -> Optional[StaffRecord]:
        u = self.session.exec(select(StaffUser).where(StaffUser.id == user_id)).first()
        return self._to_record(u) if u else None

    def get_by_email(self, email: str) -> Optional[StaffRecord]:
        u = self.session.exec(select(StaffUser).where(StaffUser.email == email)).first()
        return self._to_record(u) if u else None

    def create(self, hospital_id: str, email: str, password_hash: str, first_name: str, last_name: str, role: str, phone: Optional[str] = None, specialization: Optional[str] = None, is_available: bool = False) -> StaffRecord:
        user = StaffUser(
            hospital_id=hospital_id,
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            role=role,
            phone=phone,
            specialization=specialization,
            is_available=is_available,
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        return self._to_record(user)

    def list_doctors(self, hospital_id: str, available_only: bool = False) -> List[StaffRecord]:
        query = (
            select(StaffUser)
            .where(StaffUser.hospital_id == hospital_id)
            .where(StaffUser.role == StaffRole.DOCTOR.value)
            .where(StaffUser.is_active == True)  # noqa: E712
        )
        if available_only:
            query = query.where(StaffUser.is_available == True)  # noqa: E712
        rows = self.session.exec(query.order_by(StaffUser.first_name, StaffUser.id)).all()
        return [self._to_record(r) for r in rows]

    def list_staff(self, hospital_id: str, role: Optional[str] = None) -> List[StaffRecord]:
        query = select(StaffUser).where(StaffUser.hospital_id == hospital_id)
        if role:
            query = query.where(StaffUser.role == role)
        rows = self.session.exec(query.order_by(StaffUser.created_at.desc())).all()
        return [self._to_record(r) for r in rows]

    def compare_and_set(self, user_id: str, expected_version: int, changes: Dict[str, Any]) -> Optional[StaffRecord]:
        values = dict(changes)
        values["version"] = StaffUser.version + 1
        values["updated_at"] = datetime.utcnow()
        result = self.session.execute(
            update(StaffUser)
            .where(StaffUser.id == user_id)
            .where(StaffUser.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        if result.rowcount != 1:
            return None
        return self.get(user_id)

    def set_last_login(self, user_id: str, when: datetime) -> None:
        user = self.session.exec(select(StaffUser).where(StaffUser.id == user_id)).first()
        if not user:
            return
        user.last_login = when
        self.session.add(user)
        self.session.commit()


class SqlHospitalRepository(HospitalRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, h: Hospital) -> HospitalRecord:
        return HospitalRecord(
            id=h.id,
            name=h.name,
            email=h.email,
            phone=h.phone,
            address=h.address,
            registration_number=h.registration_number,
            is_active=h.is_active,
            created_at=h.created_at,
        )

    def get(self, hospital_id: str) -> Optional[HospitalRecord]:
        h = self.session.exec(select(Hospital).where(Hospital.id == hospital_id)).first()
        return self._to_record(h) if h else None

    def find_existing(self, email: str, registration_number: Optional[str]) -> Optional[HospitalRecord]:
        conditions = [Hospital.email == email]
        if registration_number:
            conditions.append(Hospital.registration_number == registration_number)
        h = self.session.exec(select(Hospital).where(or_(*conditions))).first()
        return self._to_record(h) if h else None

    def create(self, name: str, email: str, phone: str, address: Optional[str], registration_number: Optional[str]) -> HospitalRecord:
        hospital = Hospital(name=name, email=email, phone=phone, address=address, registration_number=registration_number)
        self.session.add(hospital)
        self.session.commit()
        self.session.refresh(hospital)
        return self._to_record(hospital)
