from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, Query
import logging

from ..exceptions import create_success_response
from ..application.ports.identity_provider import Identity
from ..application.services.pharmacy_service import PharmacyService, PrescriptionListing
from ..application.status import StaffRole
from .deps import get_pharmacy_service, require_roles
from .serializers import appointment_out, patient_out, to_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/prescriptions", tags=["Prescriptions"])

pharmacy = require_roles(StaffRole.ADMIN, StaffRole.NURSE, StaffRole.PHARMACIST)


def _listing_out(listing: PrescriptionListing) -> dict:
    data = to_json(asdict(listing.prescription))
    data["status"] = listing.status
    data["appointment"] = appointment_out(listing.appointment)
    data["patient"] = patient_out(listing.patient)
    return data


@router.get("")
def list_prescriptions(
    status: Optional[str] = Query(None, description="pending, dispensed or all"),
    search: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    identity: Identity = Depends(pharmacy),
    service: PharmacyService = Depends(get_pharmacy_service),
):
    listings = service.list_prescriptions(identity.hospital_id, status=status, search=search, limit=limit)
    return create_success_response({
        "prescriptions": [_listing_out(l) for l in listings],
        "count": len(listings),
    })


@router.get("/stats")
def prescription_stats(identity: Identity = Depends(pharmacy), service: PharmacyService = Depends(get_pharmacy_service)):
    return create_success_response(asdict(service.stats(identity.hospital_id)))


@router.post("/{appointment_id}/dispense")
def dispense_prescription(
    appointment_id: str,
    identity: Identity = Depends(pharmacy),
    service: PharmacyService = Depends(get_pharmacy_service),
):
    appt = service.dispense(identity.hospital_id, appointment_id, identity.user_id)
    return create_success_response({"appointment": appointment_out(appt)})
