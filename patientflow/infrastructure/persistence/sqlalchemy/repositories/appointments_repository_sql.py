from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import func, or_, update
from sqlmodel import Session, select

from .....db.models import Appointment
from .....application.ports.appointments_repo import AppointmentsRepository, AppointmentRecord, latest_activity


class SqlAppointmentsRepository(AppointmentsRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_record(self, a: Appointment) -> AppointmentRecord:
        return AppointmentRecord(
            id=a.id,
            appointment_number=a.appointment_number,
            hospital_id=a.hospital_id,
            patient_id=a.patient_id,
            assigned_doctor_id=a.assigned_doctor_id,
            created_by_id=a.created_by_id,
            status=a.status,
            priority=a.priority,
            chief_complaint=a.chief_complaint,
            version=a.version,
            created_at=a.created_at,
            vitals_recorded_at=a.vitals_recorded_at,
            assigned_at=a.assigned_at,
            consultation_started_at=a.consultation_started_at,
            consultation_completed_at=a.consultation_completed_at,
            completed_at=a.completed_at,
            cancelled_at=a.cancelled_at,
            cancelled_doctor_id=a.cancelled_doctor_id,
            last_activity_at=a.last_activity_at or a.created_at,
        )

    def get(self, appointment_id: str) -> Optional[AppointmentRecord]:
        a = self.session.exec(select(Appointment).where(Appointment.id == appointment_id)).first()
        return self._to_record(a) if a else None

    def create(self, hospital_id: str, patient_id: str, created_by_id: Optional[str], priority: str, chief_complaint: Optional[str], appointment_number: str) -> AppointmentRecord:
        now = datetime.utcnow()
        appt = Appointment(
            hospital_id=hospital_id,
            patient_id=patient_id,
            created_by_id=created_by_id,
            priority=priority,
            chief_complaint=chief_complaint,
            appointment_number=appointment_number,
            created_at=now,
            last_activity_at=now,
        )
        self.session.add(appt)
        self.session.commit()
        self.session.refresh(appt)
        return self._to_record(appt)

    def compare_and_set(self, appointment_id: str, expected_version: int, changes: Dict[str, Any]) -> Optional[AppointmentRecord]:
        values = dict(changes)
        values["version"] = Appointment.version + 1
        values["updated_at"] = datetime.utcnow()
        stamp = latest_activity(changes)
        if stamp is not None:
            values["last_activity_at"] = stamp
        result = self.session.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id)
            .where(Appointment.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        if result.rowcount != 1:
            return None
        return self.get(appointment_id)

    def list_for_doctor(self, doctor_id: str, statuses: Sequence[str]) -> List[AppointmentRecord]:
        rows = self.session.exec(
            select(Appointment)
            .where(Appointment.assigned_doctor_id == doctor_id)
            .where(Appointment.status.in_(list(statuses)))
            .order_by(Appointment.created_at)
        ).all()
        return [self._to_record(r) for r in rows]

    def list_for_hospital(self, hospital_id: str, statuses: Optional[Sequence[str]] = None, patient_id: Optional[str] = None, limit: int = 100) -> List[AppointmentRecord]:
        query = select(Appointment).where(Appointment.hospital_id == hospital_id)
        if statuses:
            query = query.where(Appointment.status.in_(list(statuses)))
        if patient_id:
            query = query.where(Appointment.patient_id == patient_id)
        rows = self.session.exec(query.order_by(Appointment.created_at.desc()).limit(limit)).all()
        return [self._to_record(r) for r in rows]

    def list_recent_activity(self, hospital_id: str, doctor_id: Optional[str] = None, limit: int = 50) -> List[AppointmentRecord]:
        query = select(Appointment).where(Appointment.hospital_id == hospital_id)
        if doctor_id:
            query = query.where(or_(
                Appointment.assigned_doctor_id == doctor_id,
                Appointment.cancelled_doctor_id == doctor_id,
            ))
        rows = self.session.exec(
            query.order_by(Appointment.last_activity_at.desc(), Appointment.created_at.desc()).limit(limit)
        ).all()
        return [self._to_record(r) for r in rows]

    def count_by_doctor(self, hospital_id: str, statuses: Sequence[str]) -> Dict[str, int]:
        rows = self.session.exec(
            select(Appointment.assigned_doctor_id, func.count(Appointment.id))
            .where(Appointment.hospital_id == hospital_id)
            .where(Appointment.assigned_doctor_id.is_not(None))
            .where(Appointment.status.in_(list(statuses)))
            .group_by(Appointment.assigned_doctor_id)
        ).all()
        return {doctor_id: count for doctor_id, count in rows}

    def count_consultations_completed_since(self, doctor_id: str, since: datetime) -> int:
        return self.session.exec(
            select(func.count(Appointment.id))
            .where(Appointment.assigned_doctor_id == doctor_id)
            .where(Appointment.consultation_completed_at.is_not(None))
            .where(Appointment.consultation_completed_at >= since)
        ).one()
