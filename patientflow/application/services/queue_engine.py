from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from ..ports.appointments_repo import AppointmentsRepository, AppointmentRecord
from ..ports.staff_repo import StaffRepository, StaffRecord
from ..ports.audit_logger import AuditLogger
from ..status import (
    AppointmentStatus,
    Priority,
    StaffRole,
    ACTIVE_STATUSES,
    WAITING_STATUSES,
    PENDING_FULFILMENT_STATUSES,
    ensure_transition,
    is_terminal,
    priority_rank,
)
from ...exceptions import (
    AlreadyInConsultationError,
    ConflictError,
    InvalidStateError,
    NoAvailableDoctorError,
    NotADoctorError,
    NotAssignedError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

S = AppointmentStatus

# a release that keeps losing races against other writers is reported, not looped on
RELEASE_ATTEMPTS = 3


@dataclass
class QueueStats:
    total: int = 0
    emergency: int = 0
    urgent: int = 0
    normal: int = 0
    pending: int = 0
    in_progress: int = 0
    completed_today: int = 0


@dataclass
class DoctorQueue:
    doctor_id: str
    items: List[AppointmentRecord]
    stats: QueueStats


@dataclass
class DoctorLoad:
    doctor: StaffRecord
    current_patients: int
    queue_count: int


@dataclass
class DoctorBoard:
    doctors: List[DoctorLoad] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.doctors)

    @property
    def available_count(self) -> int:
        return sum(1 for d in self.doctors if d.doctor.is_available)

    @property
    def busy_count(self) -> int:
        return self.count - self.available_count


@dataclass
class DoctorStatus:
    doctor: StaffRecord
    current_patients: int


@dataclass
class WaitTimes:
    total_minutes: int
    doctor_assigned_wait_minutes: int
    consultation_duration_minutes: int


def _minutes_between(start: Optional[datetime], end: datetime) -> int:
    if start is None:
        return 0
    return max(0, int((end - start).total_seconds() // 60))


@dataclass
class QueueEngine:
    """Owns appointment status and doctor availability.

    Every write goes through the repositories' compare-and-set so two
    requests racing on the same appointment or doctor cannot both win.
    Cross-record operations always touch records in the same order:
    claims take the doctor first and the appointment second, releases
    update the appointment first and the doctor second.
    """

    appointments: AppointmentsRepository
    staff: StaffRepository
    audit_logger: Optional[AuditLogger] = None
    clock: Callable[[], datetime] = datetime.utcnow

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------
    def get_appointment(self, appointment_id: str) -> AppointmentRecord:
        appt = self.appointments.get(appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        return appt

    def get_doctor(self, doctor_id: str) -> StaffRecord:
        doctor = self.staff.get(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        if doctor.role != StaffRole.DOCTOR.value:
            raise NotADoctorError()
        return doctor

    # ------------------------------------------------------------------
    # state machine
    # ------------------------------------------------------------------
    def record_vitals(self, appointment_id: str, actor_id: Optional[str] = None) -> AppointmentRecord:
        appt = self.get_appointment(appointment_id)
        if appt.status != S.CREATED.value:
            raise InvalidStateError(f"Vitals can only be recorded for a newly created appointment (current status: {appt.status})")
        updated = self._update_appointment(appt, {
            "status": S.VITALS_RECORDED.value,
            "vitals_recorded_at": self.clock(),
        })
        self._audit("VITALS_RECORDED", updated, actor_id)
        return updated

    def select_doctor(self, hospital_id: str) -> StaffRecord:
        """Pick the available doctor with the lightest load.

        Ties go to the lowest doctor id so the choice is reproducible.
        """
        doctors = self.staff.list_doctors(hospital_id, available_only=True)
        candidates = [
            d for d in doctors
            if d.hospital_id == hospital_id and d.is_active and d.is_available and d.role == StaffRole.DOCTOR.value
        ]
        if not candidates:
            raise NoAvailableDoctorError()
        loads = self.appointments.count_by_doctor(hospital_id, [s.value for s in ACTIVE_STATUSES])
        return min(candidates, key=lambda d: (loads.get(d.id, 0), d.id))

    def assign_doctor(self, appointment_id: str, doctor_id: Optional[str] = None, actor_id: Optional[str] = None) -> AppointmentRecord:
        appt = self.get_appointment(appointment_id)
        if appt.status != S.VITALS_RECORDED.value:
            raise InvalidStateError(f"Only appointments with recorded vitals can be assigned (current status: {appt.status})")

        if doctor_id:
            doctor = self._eligible_doctor(appt.hospital_id, doctor_id)
        else:
            doctor = self.select_doctor(appt.hospital_id)

        updated = self._place_with_doctor(appt, doctor)
        self._audit("DOCTOR_ASSIGNED", updated, actor_id, {"doctor_id": doctor.id, "automatic": doctor_id is None})
        logger.info(f"Appointment {appt.id} assigned to doctor {doctor.id} ({updated.status})")
        return updated

    def reassign_doctor(self, appointment_id: str, doctor_id: str, actor_id: Optional[str] = None) -> AppointmentRecord:
        appt = self.get_appointment(appointment_id)
        if appt.status not in {s.value for s in WAITING_STATUSES}:
            raise InvalidStateError(f"Only waiting appointments can be reassigned (current status: {appt.status})")
        doctor = self._eligible_doctor(appt.hospital_id, doctor_id)
        if doctor.id == appt.assigned_doctor_id:
            return appt
        previous = appt.assigned_doctor_id
        updated = self._place_with_doctor(appt, doctor)
        self._audit("DOCTOR_REASSIGNED", updated, actor_id, {"from": previous, "to": doctor.id})
        return updated

    def start_consultation(self, appointment_id: str, requesting_doctor_id: str) -> AppointmentRecord:
        appt = self.get_appointment(appointment_id)
        doctor = self.get_doctor(requesting_doctor_id)

        if appt.assigned_doctor_id != doctor.id:
            raise NotAssignedError()
        if appt.status == S.IN_CONSULTATION.value:
            raise AlreadyInConsultationError("Consultation for this appointment is already in progress")
        if appt.status not in {s.value for s in WAITING_STATUSES}:
            raise InvalidStateError(f"Consultation cannot start from status {appt.status}")
        if doctor.current_appointment_id is not None:
            raise AlreadyInConsultationError(
                f"Doctor is already in consultation for appointment {doctor.current_appointment_id}"
            )

        claimed = self.staff.compare_and_set(doctor.id, doctor.version, {"current_appointment_id": appt.id})
        if claimed is None:
            raise ConflictError("Doctor record changed while starting the consultation")

        changes: Dict[str, Any] = {"status": S.IN_CONSULTATION.value}
        if appt.consultation_started_at is None:
            changes["consultation_started_at"] = self.clock()
        try:
            updated = self._update_appointment(appt, changes)
        except ConflictError:
            self._release_doctor(doctor.id, appt.id)
            raise

        self._audit("CONSULTATION_STARTED", updated, doctor.id)
        logger.info(f"Doctor {doctor.id} started consultation for appointment {appt.id}")
        return updated

    def complete_consultation(self, appointment_id: str, requesting_doctor_id: str, has_pending_prescription: bool, referral: bool = False) -> AppointmentRecord:
        appt = self.get_appointment(appointment_id)
        doctor = self.get_doctor(requesting_doctor_id)

        if appt.assigned_doctor_id != doctor.id:
            raise NotAssignedError()
        if appt.status != S.IN_CONSULTATION.value:
            raise InvalidStateError(f"Consultation is not in progress (current status: {appt.status})")

        if referral:
            new_status = S.PENDING_REFERRAL
        elif has_pending_prescription:
            new_status = S.PENDING_PHARMACY
        else:
            new_status = S.COMPLETED

        now = self.clock()
        changes: Dict[str, Any] = {"status": new_status.value, "consultation_completed_at": now}
        if new_status == S.COMPLETED:
            changes["completed_at"] = now
        updated = self._update_appointment(appt, changes)
        self._release_doctor(doctor.id, appt.id)

        self._audit("CONSULTATION_COMPLETED", updated, doctor.id, {"status": updated.status})
        logger.info(f"Doctor {doctor.id} completed consultation for appointment {appt.id} -> {updated.status}")
        return updated

    def fulfil_pending(self, appointment_id: str, actor_id: Optional[str] = None) -> AppointmentRecord:
        appt = self.get_appointment(appointment_id)
        if appt.status not in {s.value for s in PENDING_FULFILMENT_STATUSES}:
            raise InvalidStateError(f"Appointment is not waiting on pharmacy or referral (current status: {appt.status})")
        updated = self._update_appointment(appt, {"status": S.COMPLETED.value, "completed_at": self.clock()})
        self._audit("APPOINTMENT_FULFILLED", updated, actor_id, {"from": appt.status})
        return updated

    def cancel(self, appointment_id: str, actor_id: Optional[str] = None) -> AppointmentRecord:
        appt = self.get_appointment(appointment_id)
        if is_terminal(appt.status):
            raise InvalidStateError(f"Appointment is already {appt.status.lower()}")

        doctor_id = appt.assigned_doctor_id
        updated = self._update_appointment(appt, {
            "status": S.CANCELLED.value,
            "cancelled_at": self.clock(),
            "assigned_doctor_id": None,
            "cancelled_doctor_id": doctor_id,
        })
        if doctor_id:
            self._release_doctor(doctor_id, appt.id)

        self._audit("APPOINTMENT_CANCELLED", updated, actor_id, {"previous_status": appt.status, "doctor_id": doctor_id})
        return updated

    # ------------------------------------------------------------------
    # availability
    # ------------------------------------------------------------------
    def set_doctor_availability(self, doctor_id: str, is_available: bool) -> StaffRecord:
        doctor = self.get_doctor(doctor_id)
        if doctor.is_available == is_available:
            return doctor
        updated = self._update_doctor(doctor, {"is_available": is_available})
        logger.info(f"Doctor {doctor_id} availability set to {is_available}")
        return updated

    def on_doctor_login(self, doctor_id: str) -> StaffRecord:
        return self._reset_doctor(doctor_id, is_available=True, reason="login")

    def on_doctor_logout(self, doctor_id: str) -> StaffRecord:
        return self._reset_doctor(doctor_id, is_available=False, reason="logout")

    def doctor_status(self, doctor_id: str) -> DoctorStatus:
        doctor = self.get_doctor(doctor_id)
        active = self.appointments.list_for_doctor(doctor.id, [s.value for s in ACTIVE_STATUSES])
        return DoctorStatus(doctor=doctor, current_patients=len(active))

    # ------------------------------------------------------------------
    # read models
    # ------------------------------------------------------------------
    def list_queue(self, doctor_id: str) -> DoctorQueue:
        items = self.appointments.list_for_doctor(doctor_id, [s.value for s in ACTIVE_STATUSES])
        ordered = sorted(items, key=lambda a: (-priority_rank(a.priority), a.created_at, a.id))

        start_of_day = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        stats = QueueStats(
            total=len(ordered),
            emergency=sum(1 for a in ordered if a.priority == Priority.EMERGENCY.value),
            urgent=sum(1 for a in ordered if a.priority == Priority.URGENT.value),
            normal=sum(1 for a in ordered if a.priority == Priority.NORMAL.value),
            pending=sum(1 for a in ordered if a.status in {s.value for s in WAITING_STATUSES}),
            in_progress=sum(1 for a in ordered if a.status == S.IN_CONSULTATION.value),
            completed_today=self.appointments.count_consultations_completed_since(doctor_id, start_of_day),
        )
        return DoctorQueue(doctor_id=doctor_id, items=ordered, stats=stats)

    def list_available_doctors(self, hospital_id: str, available_only: bool = False) -> DoctorBoard:
        doctors = self.staff.list_doctors(hospital_id, available_only=available_only)
        active = self.appointments.count_by_doctor(hospital_id, [s.value for s in ACTIVE_STATUSES])
        waiting = self.appointments.count_by_doctor(hospital_id, [s.value for s in WAITING_STATUSES])

        loads = [DoctorLoad(d, active.get(d.id, 0), waiting.get(d.id, 0)) for d in doctors]
        # stable sort keeps the repository's name ordering inside equal loads
        loads.sort(key=lambda load: (not load.doctor.is_available, load.current_patients))
        return DoctorBoard(doctors=loads)

    def wait_times(self, appt: AppointmentRecord, now: Optional[datetime] = None) -> WaitTimes:
        now = now or self.clock()
        end = appt.completed_at or appt.cancelled_at or now
        return WaitTimes(
            total_minutes=_minutes_between(appt.created_at, end),
            doctor_assigned_wait_minutes=_minutes_between(appt.assigned_at, appt.consultation_started_at or end)
            if appt.assigned_at else 0,
            consultation_duration_minutes=_minutes_between(appt.consultation_started_at, appt.consultation_completed_at or end)
            if appt.consultation_started_at else 0,
        )

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------
    def _eligible_doctor(self, hospital_id: str, doctor_id: str) -> StaffRecord:
        doctor = self.get_doctor(doctor_id)
        if doctor.hospital_id != hospital_id:
            raise NotFoundError("Doctor not found")
        if not doctor.is_active or not doctor.is_available:
            raise NoAvailableDoctorError(f"Dr. {doctor.full_name} is not accepting new patients")
        return doctor

    def _place_with_doctor(self, appt: AppointmentRecord, doctor: StaffRecord) -> AppointmentRecord:
        # Bumping the doctor's version serialises concurrent assignments that
        # computed their load from the same snapshot.
        reserved = self.staff.compare_and_set(doctor.id, doctor.version, {})
        if reserved is None:
            raise ConflictError("Doctor record changed during assignment")
        status = S.IN_QUEUE if reserved.current_appointment_id else S.ASSIGNED
        return self._update_appointment(appt, {
            "status": status.value,
            "assigned_doctor_id": doctor.id,
            "assigned_at": appt.assigned_at or self.clock(),
        })

    def _update_appointment(self, appt: AppointmentRecord, changes: Dict[str, Any]) -> AppointmentRecord:
        new_status = changes.get("status")
        if new_status is not None and new_status != appt.status:
            ensure_transition(appt.status, new_status)
        updated = self.appointments.compare_and_set(appt.id, appt.version, changes)
        if updated is None:
            raise ConflictError("Appointment was modified by another request")
        return updated

    def _update_doctor(self, doctor: StaffRecord, changes: Dict[str, Any]) -> StaffRecord:
        updated = self.staff.compare_and_set(doctor.id, doctor.version, changes)
        if updated is None:
            raise ConflictError("Doctor record was modified by another request")
        return updated

    def _release_doctor(self, doctor_id: str, appointment_id: str) -> Optional[StaffRecord]:
        """Clear the doctor's current appointment if it still points at ``appointment_id``."""
        for _ in range(RELEASE_ATTEMPTS):
            doctor = self.staff.get(doctor_id)
            if doctor is None or doctor.current_appointment_id != appointment_id:
                return doctor
            released = self.staff.compare_and_set(doctor.id, doctor.version, {"current_appointment_id": None})
            if released is not None:
                return released
        logger.error(f"Could not release doctor {doctor_id} from appointment {appointment_id}")
        raise ConflictError("Doctor record kept changing while releasing the consultation")

    def _reset_doctor(self, doctor_id: str, is_available: bool, reason: str) -> StaffRecord:
        doctor = self.get_doctor(doctor_id)
        stale = doctor.current_appointment_id
        if stale:
            self._requeue(stale, doctor.id, reason)
            doctor = self.get_doctor(doctor_id)
        return self._update_doctor(doctor, {"is_available": is_available, "current_appointment_id": None})

    def _requeue(self, appointment_id: str, doctor_id: str, reason: str) -> None:
        appt = self.appointments.get(appointment_id)
        if appt is None or appt.assigned_doctor_id != doctor_id or appt.status != S.IN_CONSULTATION.value:
            return
        updated = self._update_appointment(appt, {"status": S.ASSIGNED.value})
        logger.warning(f"Consultation {appointment_id} returned to ASSIGNED after doctor {doctor_id} {reason}")
        self._audit("CONSULTATION_RELEASED", updated, doctor_id, {"reason": reason})

    def _audit(self, action: str, appt: AppointmentRecord, actor_id: Optional[str], details: Optional[Dict[str, Any]] = None) -> None:
        if not self.audit_logger:
            return
        self.audit_logger.log(
            action=action,
            actor_id=actor_id,
            hospital_id=appt.hospital_id,
            entity_type="appointment",
            entity_id=appt.id,
            details={"status": appt.status, **(details or {})},
        )
