from fastapi import APIRouter, Depends, Query
import logging

from ..exceptions import create_success_response
from ..schemas.doctors.doctor import AvailabilityUpdate
from ..application.ports.identity_provider import Identity
from ..application.services.queue_engine import QueueEngine
from .deps import get_current_identity, get_queue_engine
from .serializers import staff_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["Doctors"])


@router.get("/available")
def list_available_doctors(
    available_only: bool = Query(False),
    identity: Identity = Depends(get_current_identity),
    engine: QueueEngine = Depends(get_queue_engine),
):
    board = engine.list_available_doctors(identity.hospital_id, available_only=available_only)
    doctors = []
    for load in board.doctors:
        data = staff_out(load.doctor)
        data["current_patients"] = load.current_patients
        data["queue_count"] = load.queue_count
        doctors.append(data)
    return create_success_response({
        "doctors": doctors,
        "count": board.count,
        "available_count": board.available_count,
        "busy_count": board.busy_count,
    })


@router.get("/me/availability")
def get_my_availability(identity: Identity = Depends(get_current_identity), engine: QueueEngine = Depends(get_queue_engine)):
    status = engine.doctor_status(identity.user_id)
    return create_success_response({
        "is_available": status.doctor.is_available,
        "is_busy": status.doctor.is_busy,
        "current_appointment_id": status.doctor.current_appointment_id,
        "current_patients": status.current_patients,
    })


@router.put("/me/availability")
def set_my_availability(
    payload: AvailabilityUpdate,
    identity: Identity = Depends(get_current_identity),
    engine: QueueEngine = Depends(get_queue_engine),
):
    doctor = engine.set_doctor_availability(identity.user_id, payload.is_available)
    return create_success_response({
        "doctor": staff_out(doctor),
        "message": f"You are now {'available' if doctor.is_available else 'unavailable'}",
    })
