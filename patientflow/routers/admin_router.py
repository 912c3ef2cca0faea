from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..exceptions import create_success_response
from ..schemas.auth.auth import StaffCreateRequest
from ..application.ports.identity_provider import Identity
from ..application.services.auth_service import AuthService
from ..application.status import StaffRole
from ..infrastructure.audit.sql_audit_logger import SqlAuditLogger
from .deps import get_audit_logger, get_auth_service, require_roles
from .serializers import staff_out, to_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["Admin"])

admin_only = require_roles(StaffRole.ADMIN)


@router.get("/hospital")
def get_hospital(identity: Identity = Depends(admin_only), auth: AuthService = Depends(get_auth_service)):
    hospital = auth.get_hospital(identity.hospital_id)
    staff = auth.list_staff(identity.hospital_id)
    counts = {}
    for user in staff:
        counts[user.role] = counts.get(user.role, 0) + 1
    return create_success_response({"hospital": to_json(asdict(hospital)), "staff_counts": counts})


@router.post("/staff", status_code=201)
def create_staff(
    payload: StaffCreateRequest,
    identity: Identity = Depends(admin_only),
    auth: AuthService = Depends(get_auth_service),
):
    try:
        user = auth.create_staff(
            identity.hospital_id,
            email=payload.email,
            password=payload.password,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
            phone=payload.phone,
            specialization=payload.specialization,
            actor_id=identity.user_id,
        )
        return create_success_response({"user": staff_out(user)})
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating staff user: {e}")
        raise HTTPException(status_code=500, detail="Failed to create staff user")


@router.get("/staff")
def list_staff(
    role: Optional[str] = Query(None),
    identity: Identity = Depends(admin_only),
    auth: AuthService = Depends(get_auth_service),
):
    users = auth.list_staff(identity.hospital_id, role)
    return create_success_response({"staff": [staff_out(u) for u in users], "count": len(users)})


@router.get("/audit-logs")
def list_audit_logs(
    action: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(admin_only),
    audit_logger: SqlAuditLogger = Depends(get_audit_logger),
):
    entries = audit_logger.list_recent(identity.hospital_id, action=action, limit=limit, offset=offset)
    return create_success_response({"logs": to_json([asdict(e) for e in entries]), "count": len(entries)})
