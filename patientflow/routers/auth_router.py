from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Response
from dataclasses import asdict
import logging

from ..config import settings
from ..exceptions import AuthenticationError, create_success_response
from ..schemas.auth.auth import HospitalRegisterRequest, LoginRequest
from ..application.ports.identity_provider import Identity
from ..application.services.auth_service import AuthService
from .deps import get_auth_service, get_current_identity, get_token
from .serializers import staff_out, to_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


@router.post("/hospital/register", status_code=201)
def register_hospital(payload: HospitalRegisterRequest, auth: AuthService = Depends(get_auth_service)):
    """Register a hospital and its first administrator."""
    try:
        result = auth.register_hospital(
            name=payload.hospital.name,
            email=payload.hospital.email,
            phone=payload.hospital.phone,
            address=payload.hospital.address,
            registration_number=payload.hospital.registration_number,
            admin_email=payload.admin.email,
            admin_password=payload.admin.password,
            admin_first_name=payload.admin.first_name,
            admin_last_name=payload.admin.last_name,
            admin_phone=payload.admin.phone,
        )
        return create_success_response({
            "hospital": to_json(asdict(result.hospital)),
            "admin": staff_out(result.admin),
        })
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Hospital registration error: {e}")
        raise HTTPException(status_code=500, detail="Failed to register hospital")


@router.post("/login")
def login(payload: LoginRequest, response: Response, auth: AuthService = Depends(get_auth_service)):
    try:
        result = auth.login(payload.email, payload.password)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    # httpOnly cookie for browser clients that do not send the Authorization header
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=result.token,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return create_success_response({
        "token": result.token,
        "token_type": "bearer",
        "expires_at": to_json(result.expires_at),
        "user": staff_out(result.user),
        "hospital": to_json(asdict(result.hospital)),
    })


@router.post("/logout")
def logout(response: Response, token: Optional[str] = Depends(get_token), auth: AuthService = Depends(get_auth_service)):
    if not token:
        raise AuthenticationError("Authentication required")
    auth.logout(token)
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return create_success_response({"message": "Logged out successfully"})


@router.get("/me")
def me(identity: Identity = Depends(get_current_identity), auth: AuthService = Depends(get_auth_service)):
    user = auth.get_user(identity.user_id)
    hospital = auth.get_hospital(identity.hospital_id)
    return create_success_response({
        "user": staff_out(user),
        "hospital": to_json(asdict(hospital)),
    })
