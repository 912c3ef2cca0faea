from dataclasses import asdict
from fastapi import APIRouter, Depends, Query
import logging

from ..exceptions import create_success_response
from ..application.ports.identity_provider import Identity
from ..application.services.intake_service import IntakeService
from ..application.status import StaffRole
from .deps import get_current_identity, get_intake_service
from .serializers import to_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


@router.get("")
def get_notifications(
    limit: int = Query(50, ge=1, le=200),
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
):
    """Recent activity, newest first. Doctors only see their own patients."""
    doctor_id = identity.user_id if identity.role == StaffRole.DOCTOR.value else None
    entries = intake.notifications(identity.hospital_id, doctor_id=doctor_id, limit=limit)
    return create_success_response({
        "notifications": to_json([asdict(e) for e in entries]),
        "count": len(entries),
    })
