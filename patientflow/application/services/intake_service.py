from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging
import uuid

from ..ports.appointments_repo import AppointmentRecord, AppointmentsRepository
from ..ports.consultation_repo import ConsultationRepository, NoteRecord, PrescriptionRecord
from ..ports.patient_repo import PatientRecord, PatientRepository
from ..ports.staff_repo import StaffRecord
from ..ports.vitals_repo import VitalsDto, VitalsRepository
from ..status import AppointmentStatus, Priority, is_terminal
from .activity import ActivityEntry, project_activity
from .queue_engine import QueueEngine, WaitTimes
from ...exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

VITAL_FIELDS = (
    "blood_pressure_systolic",
    "blood_pressure_diastolic",
    "temperature",
    "pulse_rate",
    "respiratory_rate",
    "oxygen_saturation",
    "weight",
    "height",
    "pain_level",
    "symptoms_description",
    "nurse_notes",
)


def generate_appointment_number(today: datetime) -> str:
    return f"APT-{today:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


@dataclass
class AppointmentDetail:
    appointment: AppointmentRecord
    patient: Optional[PatientRecord]
    doctor: Optional[StaffRecord]
    vitals: Optional[VitalsDto]
    note: Optional[NoteRecord]
    prescription: Optional[PrescriptionRecord]
    wait_times: WaitTimes


@dataclass
class IntakeService:
    """Front-desk and nursing side of an appointment.

    Status changes are delegated to :class:`QueueEngine`; this service only
    adds the records that surround them (patients, vitals, read models).
    """

    engine: QueueEngine
    appointments: AppointmentsRepository
    patients: PatientRepository
    vitals: VitalsRepository
    consultations: ConsultationRepository
    clock: Callable[[], datetime] = datetime.utcnow

    def get_for_hospital(self, hospital_id: str, appointment_id: str) -> AppointmentRecord:
        appt = self.appointments.get(appointment_id)
        if not appt or appt.hospital_id != hospital_id:
            raise NotFoundError("Appointment not found")
        return appt

    def create_appointment(self, hospital_id: str, created_by: Optional[str], patient_id: str, priority: str = Priority.NORMAL.value, chief_complaint: Optional[str] = None) -> AppointmentRecord:
        patient = self.patients.get(patient_id)
        if not patient or patient.hospital_id != hospital_id:
            raise NotFoundError("Patient not found")
        try:
            priority = Priority(priority.upper()).value
        except ValueError:
            raise ValidationError(f"Invalid priority: {priority}")

        appt = self.appointments.create(
            hospital_id=hospital_id,
            patient_id=patient_id,
            created_by_id=created_by,
            priority=priority,
            chief_complaint=chief_complaint,
            appointment_number=generate_appointment_number(self.clock()),
        )
        logger.info(f"Created appointment {appt.appointment_number} for patient {patient_id}")
        return appt

    def record_vitals(self, hospital_id: str, appointment_id: str, recorded_by: Optional[str], data: Dict[str, Any]) -> VitalsDto:
        self.get_for_hospital(hospital_id, appointment_id)
        fields = {k: v for k, v in data.items() if k in VITAL_FIELDS}
        self.engine.record_vitals(appointment_id, actor_id=recorded_by)
        return self.vitals.create(appointment_id, recorded_by, fields)

    def update_appointment(
        self,
        hospital_id: str,
        appointment_id: str,
        actor_id: Optional[str],
        priority: Optional[str] = None,
        chief_complaint: Optional[str] = None,
        status: Optional[str] = None,
    ) -> AppointmentRecord:
        appt = self.get_for_hospital(hospital_id, appointment_id)
        if status is not None and status.upper() != AppointmentStatus.CANCELLED.value:
            raise ValidationError("Status can only be changed to CANCELLED here")

        changes: Dict[str, Any] = {}
        if priority is not None:
            try:
                changes["priority"] = Priority(priority.upper()).value
            except ValueError:
                raise ValidationError(f"Invalid priority: {priority}")
        if chief_complaint is not None:
            changes["chief_complaint"] = chief_complaint

        if changes:
            if is_terminal(appt.status):
                raise InvalidStateError(f"Appointment is already {appt.status.lower()}")
            updated = self.appointments.compare_and_set(appt.id, appt.version, changes)
            if updated is None:
                raise ConflictError("Appointment was modified by another request")
            appt = updated

        if status is not None:
            appt = self.engine.cancel(appointment_id, actor_id=actor_id)
        return appt

    def list_appointments(self, hospital_id: str, status: Optional[str] = None, patient_id: Optional[str] = None, limit: int = 100) -> List[AppointmentRecord]:
        statuses = None
        if status:
            try:
                statuses = [AppointmentStatus(status.upper()).value]
            except ValueError:
                raise ValidationError(f"Invalid status: {status}")
        return self.appointments.list_for_hospital(hospital_id, statuses=statuses, patient_id=patient_id, limit=limit)

    def get_appointment_detail(self, hospital_id: str, appointment_id: str) -> AppointmentDetail:
        appt = self.get_for_hospital(hospital_id, appointment_id)
        doctor = self.engine.staff.get(appt.assigned_doctor_id) if appt.assigned_doctor_id else None
        return AppointmentDetail(
            appointment=appt,
            patient=self.patients.get(appt.patient_id),
            doctor=doctor,
            vitals=self.vitals.get_for_appointment(appt.id),
            note=self.consultations.get_note(appt.id),
            prescription=self.consultations.get_prescription(appt.id),
            wait_times=self.engine.wait_times(appt),
        )

    def history(self, hospital_id: str, appointment_id: str) -> List[ActivityEntry]:
        appt = self.get_for_hospital(hospital_id, appointment_id)
        patient = self.patients.get(appt.patient_id)
        names = {patient.id: patient.full_name} if patient else {}
        return project_activity([appt], patient_names=names)

    def notifications(self, hospital_id: str, doctor_id: Optional[str] = None, limit: int = 50) -> List[ActivityEntry]:
        """Newest-first activity for a doctor's patients, or the whole hospital.

        The newest ``limit`` events all belong to the ``limit`` appointments
        with the most recent activity, so only those are projected.
        """
        appts = self.appointments.list_recent_activity(hospital_id, doctor_id=doctor_id, limit=limit)
        patients = self.patients.get_many(list({a.patient_id for a in appts}))
        names = {pid: p.full_name for pid, p in patients.items()}
        return project_activity(appts, newest_first=True, patient_names=names)[:limit]
