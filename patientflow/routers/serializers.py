from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder

from ..application.ports.appointments_repo import AppointmentRecord
from ..application.ports.patient_repo import PatientRecord
from ..application.ports.staff_repo import StaffRecord
from ..application.services.queue_engine import QueueEngine


def to_json(obj: Any) -> Any:
    return jsonable_encoder(obj)


def staff_out(user: Optional[StaffRecord]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    data = asdict(user)
    data.pop("password_hash", None)
    data.pop("version", None)
    data["full_name"] = user.full_name
    data["is_busy"] = user.is_busy
    return to_json(data)


def patient_out(patient: Optional[PatientRecord]) -> Optional[Dict[str, Any]]:
    if patient is None:
        return None
    data = asdict(patient)
    data["full_name"] = patient.full_name
    return to_json(data)


def appointment_out(appt: AppointmentRecord, engine: Optional[QueueEngine] = None, patient: Optional[PatientRecord] = None) -> Dict[str, Any]:
    data = asdict(appt)
    if engine is not None:
        data["wait_times"] = asdict(engine.wait_times(appt))
    if patient is not None:
        data["patient"] = patient_out(patient)
    return to_json(data)
