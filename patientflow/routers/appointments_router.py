from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..exceptions import create_success_response
from ..schemas.appointments.appointment import (
    AppointmentCreate,
    AppointmentUpdate,
    AssignDoctorRequest,
    ReassignDoctorRequest,
    VitalsCreate,
)
from ..application.ports.identity_provider import Identity
from ..application.services.intake_service import IntakeService
from ..application.services.queue_engine import QueueEngine
from ..application.status import StaffRole
from .deps import get_current_identity, get_intake_service, get_queue_engine, require_roles
from .serializers import appointment_out, patient_out, staff_out, to_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/appointments", tags=["Appointments"])

front_desk = require_roles(StaffRole.ADMIN, StaffRole.NURSE, StaffRole.RECEPTIONIST)
nursing = require_roles(StaffRole.ADMIN, StaffRole.NURSE)
care_team = require_roles(StaffRole.ADMIN, StaffRole.NURSE, StaffRole.RECEPTIONIST, StaffRole.DOCTOR)
fulfilment = require_roles(StaffRole.ADMIN, StaffRole.NURSE, StaffRole.PHARMACIST)


@router.post("", status_code=201)
def create_appointment(
    payload: AppointmentCreate,
    identity: Identity = Depends(front_desk),
    intake: IntakeService = Depends(get_intake_service),
):
    try:
        appt = intake.create_appointment(
            identity.hospital_id,
            identity.user_id,
            payload.patient_id,
            priority=payload.priority,
            chief_complaint=payload.chief_complaint,
        )
        return create_success_response({"appointment": appointment_out(appt)})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating appointment: {e}")
        raise HTTPException(status_code=500, detail="Failed to create appointment")


@router.get("")
def list_appointments(
    status: Optional[str] = Query(None),
    patient_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
    engine: QueueEngine = Depends(get_queue_engine),
):
    appts = intake.list_appointments(identity.hospital_id, status=status, patient_id=patient_id, limit=limit)
    patients = intake.patients.get_many(list({a.patient_id for a in appts}))
    return create_success_response({
        "appointments": [appointment_out(a, engine, patients.get(a.patient_id)) for a in appts],
        "count": len(appts),
    })


@router.get("/queue")
def get_queue(identity: Identity = Depends(get_current_identity), engine: QueueEngine = Depends(get_queue_engine), intake: IntakeService = Depends(get_intake_service)):
    """The current doctor's queue, most urgent first."""
    doctor = engine.get_doctor(identity.user_id)
    queue = engine.list_queue(doctor.id)
    patients = intake.patients.get_many(list({a.patient_id for a in queue.items}))
    return create_success_response({
        "appointments": [appointment_out(a, engine, patients.get(a.patient_id)) for a in queue.items],
        "stats": asdict(queue.stats),
    })


@router.get("/{appointment_id}")
def get_appointment(
    appointment_id: str,
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
):
    detail = intake.get_appointment_detail(identity.hospital_id, appointment_id)
    data = appointment_out(detail.appointment)
    data.update({
        "patient": patient_out(detail.patient),
        "doctor": staff_out(detail.doctor),
        "vitals": to_json(asdict(detail.vitals)) if detail.vitals else None,
        "consultation_notes": to_json(asdict(detail.note)) if detail.note else None,
        "prescription": to_json(asdict(detail.prescription)) if detail.prescription else None,
        "wait_times": asdict(detail.wait_times),
    })
    return create_success_response({"appointment": data})


@router.put("/{appointment_id}")
def update_appointment(
    appointment_id: str,
    payload: AppointmentUpdate,
    identity: Identity = Depends(care_team),
    intake: IntakeService = Depends(get_intake_service),
):
    appt = intake.update_appointment(
        identity.hospital_id,
        appointment_id,
        identity.user_id,
        priority=payload.priority,
        chief_complaint=payload.chief_complaint,
        status=payload.status,
    )
    return create_success_response({"appointment": appointment_out(appt)})


@router.post("/{appointment_id}/vitals", status_code=201)
def record_vitals(
    appointment_id: str,
    payload: VitalsCreate,
    identity: Identity = Depends(nursing),
    intake: IntakeService = Depends(get_intake_service),
):
    vitals = intake.record_vitals(identity.hospital_id, appointment_id, identity.user_id, payload.dict(exclude_none=True))
    appt = intake.get_for_hospital(identity.hospital_id, appointment_id)
    return create_success_response({"appointment": appointment_out(appt), "vitals": to_json(asdict(vitals))})


@router.post("/{appointment_id}/assign")
def assign_doctor(
    appointment_id: str,
    payload: Optional[AssignDoctorRequest] = None,
    identity: Identity = Depends(nursing),
    intake: IntakeService = Depends(get_intake_service),
    engine: QueueEngine = Depends(get_queue_engine),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    doctor_id = payload.doctor_id if payload else None
    appt = engine.assign_doctor(appointment_id, doctor_id=doctor_id, actor_id=identity.user_id)
    doctor = engine.get_doctor(appt.assigned_doctor_id)
    return create_success_response({"appointment": appointment_out(appt), "doctor": staff_out(doctor)})


@router.post("/{appointment_id}/reassign")
def reassign_doctor(
    appointment_id: str,
    payload: ReassignDoctorRequest,
    identity: Identity = Depends(nursing),
    intake: IntakeService = Depends(get_intake_service),
    engine: QueueEngine = Depends(get_queue_engine),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    appt = engine.reassign_doctor(appointment_id, payload.doctor_id, actor_id=identity.user_id)
    return create_success_response({"appointment": appointment_out(appt)})


@router.post("/{appointment_id}/cancel")
def cancel_appointment(
    appointment_id: str,
    identity: Identity = Depends(care_team),
    intake: IntakeService = Depends(get_intake_service),
    engine: QueueEngine = Depends(get_queue_engine),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    appt = engine.cancel(appointment_id, actor_id=identity.user_id)
    return create_success_response({"appointment": appointment_out(appt)})


@router.post("/{appointment_id}/fulfil")
def fulfil_appointment(
    appointment_id: str,
    identity: Identity = Depends(fulfilment),
    intake: IntakeService = Depends(get_intake_service),
    engine: QueueEngine = Depends(get_queue_engine),
):
    """Close an appointment once the pharmacy or referral has been handled."""
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    appt = engine.fulfil_pending(appointment_id, actor_id=identity.user_id)
    return create_success_response({"appointment": appointment_out(appt)})


@router.get("/{appointment_id}/history")
def appointment_history(
    appointment_id: str,
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
):
    entries = intake.history(identity.hospital_id, appointment_id)
    return create_success_response({"history": to_json([asdict(e) for e in entries])})
