"""Pharmacy desk: prescriptions waiting to be dispensed and those already handed out."""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional
import logging

from ..ports.appointments_repo import AppointmentRecord, AppointmentsRepository
from ..ports.consultation_repo import ConsultationRepository, PrescriptionRecord
from ..ports.patient_repo import PatientRecord, PatientRepository
from ..status import AppointmentStatus, Priority
from .queue_engine import QueueEngine
from ...exceptions import InvalidStateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# listing status -> appointment status
PRESCRIPTION_STATUSES: Dict[str, str] = {
    "pending": AppointmentStatus.PENDING_PHARMACY.value,
    "dispensed": AppointmentStatus.COMPLETED.value,
}

# appointments scanned per listing or stats request
MAX_SCAN = 500


@dataclass
class PrescriptionListing:
    prescription: PrescriptionRecord
    appointment: AppointmentRecord
    patient: Optional[PatientRecord]
    status: str

    def matches(self, search: str) -> bool:
        needle = search.lower()
        haystack = [self.appointment.appointment_number]
        if self.patient:
            haystack += [self.patient.full_name, self.patient.patient_id_number]
        haystack += [item.medication_name for item in self.prescription.items]
        return any(needle in value.lower() for value in haystack)


@dataclass
class PrescriptionStats:
    pending: int
    dispensed: int
    high_priority: int
    dispensed_today: int


@dataclass
class PharmacyService:
    engine: QueueEngine
    appointments: AppointmentsRepository
    patients: PatientRepository
    consultations: ConsultationRepository
    clock: Callable[[], datetime] = datetime.utcnow

    def _listings(self, hospital_id: str, statuses: List[str], limit: int = MAX_SCAN) -> List[PrescriptionListing]:
        appts = self.appointments.list_for_hospital(hospital_id, statuses=statuses, limit=limit)
        prescriptions = self.consultations.get_prescriptions([a.id for a in appts])
        patients = self.patients.get_many(list({a.patient_id for a in appts}))
        by_status = {v: k for k, v in PRESCRIPTION_STATUSES.items()}
        listings = [
            PrescriptionListing(prescriptions[a.id], a, patients.get(a.patient_id), by_status[a.status])
            for a in appts
            if a.id in prescriptions
        ]
        listings.sort(key=lambda l: l.prescription.created_at, reverse=True)
        return listings

    def list_prescriptions(self, hospital_id: str, status: Optional[str] = None, search: Optional[str] = None, limit: int = 100) -> List[PrescriptionListing]:
        if status and status.lower() != "all":
            if status.lower() not in PRESCRIPTION_STATUSES:
                raise ValidationError(f"Invalid prescription status: {status}")
            statuses = [PRESCRIPTION_STATUSES[status.lower()]]
        else:
            statuses = list(PRESCRIPTION_STATUSES.values())

        listings = self._listings(hospital_id, statuses)
        if search and search.strip():
            listings = [l for l in listings if l.matches(search.strip())]
        return listings[:limit]

    def stats(self, hospital_id: str) -> PrescriptionStats:
        listings = self._listings(hospital_id, list(PRESCRIPTION_STATUSES.values()))
        midnight = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        pending = [l for l in listings if l.status == "pending"]
        dispensed = [l for l in listings if l.status == "dispensed"]
        return PrescriptionStats(
            pending=len(pending),
            dispensed=len(dispensed),
            high_priority=sum(1 for l in pending if l.appointment.priority != Priority.NORMAL.value),
            dispensed_today=sum(1 for l in dispensed if l.appointment.completed_at and l.appointment.completed_at >= midnight),
        )

    def dispense(self, hospital_id: str, appointment_id: str, actor_id: Optional[str]) -> AppointmentRecord:
        appt = self.appointments.get(appointment_id)
        if not appt or appt.hospital_id != hospital_id:
            raise NotFoundError("Appointment not found")
        if appt.status != AppointmentStatus.PENDING_PHARMACY.value:
            raise InvalidStateError(f"Appointment is not waiting on pharmacy (current status: {appt.status})")
        if self.consultations.get_prescription(appointment_id) is None:
            raise NotFoundError("Prescription not found")
        updated = self.engine.fulfil_pending(appointment_id, actor_id=actor_id)
        logger.info(f"Prescription for appointment {appointment_id} dispensed by {actor_id}")
        return updated
