"""Request-scoped wiring of services to their SQL adapters."""
from functools import lru_cache
from typing import Callable, Optional
import logging

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from ..config import settings
from ..database import get_session
from ..exceptions import AuthenticationError, PermissionDeniedError
from ..application.ports.identity_provider import Identity
from ..application.ports.speech_provider import SpeechProvider
from ..application.services.auth_service import AuthService
from ..application.services.consultation_service import ConsultationService
from ..application.services.intake_service import IntakeService
from ..application.services.patient_service import PatientService
from ..application.services.pharmacy_service import PharmacyService
from ..application.services.queue_engine import QueueEngine
from ..application.status import StaffRole
from ..infrastructure.ai.gemini_provider import GeminiSpeechProvider
from ..infrastructure.audit.sql_audit_logger import SqlAuditLogger
from ..infrastructure.auth.jwt_identity import JwtIdentityProvider
from ..infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from ..infrastructure.persistence.sqlalchemy.repositories.consultation_repository_sql import SqlConsultationRepository
from ..infrastructure.persistence.sqlalchemy.repositories.patient_repository_sql import SqlPatientRepository
from ..infrastructure.persistence.sqlalchemy.repositories.session_repository_sql import SqlSessionRepository
from ..infrastructure.persistence.sqlalchemy.repositories.staff_repository_sql import SqlHospitalRepository, SqlStaffRepository
from ..infrastructure.persistence.sqlalchemy.repositories.vitals_repository_sql import SqlVitalsRepository
from ..infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter

logger = logging.getLogger(__name__)

oauth2_scheme = HTTPBearer(auto_error=False)

# login attempts are counted per process
login_rate_limiter = InMemoryRateLimiter()


def get_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials] = Depends(oauth2_scheme)) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    # Fallback to cookie
    return request.cookies.get(settings.AUTH_COOKIE_NAME)


def get_identity_provider(session: Session = Depends(get_session)) -> JwtIdentityProvider:
    return JwtIdentityProvider(SqlSessionRepository(session))


def get_current_identity(
    token: Optional[str] = Depends(get_token),
    identity_provider: JwtIdentityProvider = Depends(get_identity_provider),
) -> Identity:
    if not token:
        raise AuthenticationError("Authentication required")
    identity = identity_provider.verify_token(token)
    if not identity:
        raise AuthenticationError("Invalid or expired token")
    return identity


def require_roles(*roles: StaffRole) -> Callable[..., Identity]:
    allowed = {r.value for r in roles}

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            raise PermissionDeniedError()
        return identity

    return dependency


def get_audit_logger(session: Session = Depends(get_session)) -> SqlAuditLogger:
    return SqlAuditLogger(session)


def get_queue_engine(session: Session = Depends(get_session), audit_logger: SqlAuditLogger = Depends(get_audit_logger)) -> QueueEngine:
    return QueueEngine(
        appointments=SqlAppointmentsRepository(session),
        staff=SqlStaffRepository(session),
        audit_logger=audit_logger,
    )


@lru_cache()
def _gemini_provider() -> GeminiSpeechProvider:
    return GeminiSpeechProvider()


def get_speech_provider() -> Optional[SpeechProvider]:
    if not settings.ai_enabled:
        return None
    return _gemini_provider()


def get_consultation_service(
    session: Session = Depends(get_session),
    engine: QueueEngine = Depends(get_queue_engine),
    speech_provider: Optional[SpeechProvider] = Depends(get_speech_provider),
) -> ConsultationService:
    return ConsultationService(engine=engine, repo=SqlConsultationRepository(session), speech_provider=speech_provider)


def get_patient_service(session: Session = Depends(get_session)) -> PatientService:
    return PatientService(SqlPatientRepository(session))


def get_intake_service(session: Session = Depends(get_session), engine: QueueEngine = Depends(get_queue_engine)) -> IntakeService:
    return IntakeService(
        engine=engine,
        appointments=engine.appointments,
        patients=SqlPatientRepository(session),
        vitals=SqlVitalsRepository(session),
        consultations=SqlConsultationRepository(session),
    )



def get_pharmacy_service(session: Session = Depends(get_session), engine: QueueEngine = Depends(get_queue_engine)) -> PharmacyService:
    return PharmacyService(
        engine=engine,
        appointments=engine.appointments,
        patients=SqlPatientRepository(session),
        consultations=SqlConsultationRepository(session),
    )


def get_auth_service(
    session: Session = Depends(get_session),
    engine: QueueEngine = Depends(get_queue_engine),
    identity_provider: JwtIdentityProvider = Depends(get_identity_provider),
    audit_logger: SqlAuditLogger = Depends(get_audit_logger),
) -> AuthService:
    return AuthService(
        hospitals=SqlHospitalRepository(session),
        staff=engine.staff,
        sessions=identity_provider.sessions,
        identity=identity_provider,
        engine=engine,
        rate_limiter=login_rate_limiter,
        audit_logger=audit_logger,
    )
