from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from datetime import datetime

# every timestamp that surfaces as an activity event
ACTIVITY_TIMESTAMPS = (
    "created_at",
    "vitals_recorded_at",
    "assigned_at",
    "consultation_started_at",
    "consultation_completed_at",
    "completed_at",
    "cancelled_at",
)


def latest_activity(changes: Dict[str, Any]) -> Optional[datetime]:
    stamps = [changes[k] for k in ACTIVITY_TIMESTAMPS if changes.get(k) is not None]
    return max(stamps) if stamps else None


@dataclass
class AppointmentRecord:
    id: str
    appointment_number: str
    hospital_id: str
    patient_id: str
    assigned_doctor_id: Optional[str]
    created_by_id: Optional[str]
    status: str
    priority: str
    chief_complaint: Optional[str]
    version: int
    created_at: datetime
    vitals_recorded_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    consultation_started_at: Optional[datetime] = None
    consultation_completed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_doctor_id: Optional[str] = None
    last_activity_at: Optional[datetime] = None


class AppointmentsRepository:
    def get(self, appointment_id: str) -> Optional[AppointmentRecord]:
        ...

    def create(self, hospital_id: str, patient_id: str, created_by_id: Optional[str], priority: str, chief_complaint: Optional[str], appointment_number: str) -> AppointmentRecord:
        ...

    def compare_and_set(self, appointment_id: str, expected_version: int, changes: Dict[str, Any]) -> Optional[AppointmentRecord]:
        """Apply ``changes`` only if the stored version still equals ``expected_version``.

        Returns the updated record, or None when another writer got there first.
        """
        ...

    def list_for_doctor(self, doctor_id: str, statuses: Sequence[str]) -> List[AppointmentRecord]:
        ...

    def list_for_hospital(self, hospital_id: str, statuses: Optional[Sequence[str]] = None, patient_id: Optional[str] = None, limit: int = 100) -> List[AppointmentRecord]:
        ...

    def list_recent_activity(self, hospital_id: str, doctor_id: Optional[str] = None, limit: int = 50) -> List[AppointmentRecord]:
        """Appointments ordered by their latest activity event, newest first.

        With ``doctor_id``, only appointments assigned to that doctor or
        cancelled while assigned to them.
        """
        ...

    def count_by_doctor(self, hospital_id: str, statuses: Sequence[str]) -> Dict[str, int]:
        ...

    def count_consultations_completed_since(self, doctor_id: str, since: datetime) -> int:
        ...
