"""Activity feed derived from appointment timestamps.

Nothing here is stored: history and notification feeds are recomputed from
the appointment rows on every read.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..ports.appointments_repo import AppointmentRecord
from ..status import AppointmentStatus


@dataclass
class ActivityEntry:
    timestamp: datetime
    actor_role: str
    description: str
    appointment_id: str
    kind: str


# (timestamp attribute, kind, actor role, description template)
_EVENTS = (
    ("created_at", "intake", "NURSE", "Appointment created for {patient}"),
    ("vitals_recorded_at", "record", "NURSE", "Vitals recorded for {patient}"),
    ("assigned_at", "assignment", "NURSE", "Doctor assigned to {patient}"),
    ("consultation_started_at", "update", "DOCTOR", "Consultation started with {patient}"),
    ("consultation_completed_at", "approval", "DOCTOR", "Consultation completed for {patient}"),
)


def _appointment_events(appt: AppointmentRecord, patient: str) -> List[ActivityEntry]:
    entries = []
    for attr, kind, role, template in _EVENTS:
        ts = getattr(appt, attr)
        if ts is not None:
            entries.append(ActivityEntry(ts, role, template.format(patient=patient), appt.id, kind))

    # completed_at equal to consultation_completed_at is the same event
    if appt.completed_at is not None and appt.completed_at != appt.consultation_completed_at:
        entries.append(ActivityEntry(
            appt.completed_at, "PHARMACIST", f"Pharmacy/referral fulfilled for {patient}", appt.id, "status",
        ))
    if appt.cancelled_at is not None or appt.status == AppointmentStatus.CANCELLED.value:
        ts = appt.cancelled_at or appt.created_at
        entries.append(ActivityEntry(ts, "STAFF", f"Appointment cancelled for {patient}", appt.id, "status"))
    return entries


def project_activity(
    appointments: Iterable[AppointmentRecord],
    newest_first: bool = False,
    patient_names: Optional[Dict[str, str]] = None,
) -> List[ActivityEntry]:
    """One entry per recorded timestamp across ``appointments``.

    Ascending order suits an appointment's history; ``newest_first`` suits
    a notification feed.
    """
    patient_names = patient_names or {}
    entries: List[ActivityEntry] = []
    for appt in appointments:
        patient = patient_names.get(appt.patient_id, appt.appointment_number)
        entries.extend(_appointment_events(appt, patient))
    entries.sort(key=lambda e: (e.timestamp, e.appointment_id), reverse=newest_first)
    return entries
