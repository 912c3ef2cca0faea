from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..exceptions import create_success_response
from ..schemas.patients.patient import PatientCreate
from ..application.ports.identity_provider import Identity
from ..application.services.intake_service import IntakeService
from ..application.services.patient_service import PatientService
from ..application.status import StaffRole
from .deps import get_current_identity, get_intake_service, get_patient_service, require_roles
from .serializers import appointment_out, patient_out

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/patients", tags=["Patients"])

can_register = require_roles(StaffRole.ADMIN, StaffRole.NURSE, StaffRole.RECEPTIONIST)


@router.post("", status_code=201)
def register_patient(
    payload: PatientCreate,
    identity: Identity = Depends(can_register),
    patients: PatientService = Depends(get_patient_service),
):
    try:
        patient = patients.register_patient(identity.hospital_id, identity.user_id, payload.dict())
        return create_success_response({"patient": patient_out(patient)})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error registering patient: {e}")
        raise HTTPException(status_code=500, detail="Failed to register patient")


@router.get("")
def search_patients(
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    identity: Identity = Depends(get_current_identity),
    patients: PatientService = Depends(get_patient_service),
):
    result = patients.search_patients(identity.hospital_id, search, page, limit)
    return create_success_response({
        "patients": [patient_out(p) for p in result.items],
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "total_pages": result.total_pages,
        },
    })


@router.get("/{patient_id}")
def get_patient(
    patient_id: str,
    identity: Identity = Depends(get_current_identity),
    patients: PatientService = Depends(get_patient_service),
    intake: IntakeService = Depends(get_intake_service),
):
    patient = patients.get_patient(identity.hospital_id, patient_id)
    appointments = intake.list_appointments(identity.hospital_id, patient_id=patient.id)
    return create_success_response({
        "patient": patient_out(patient),
        "appointments": [appointment_out(a) for a in appointments],
    })
