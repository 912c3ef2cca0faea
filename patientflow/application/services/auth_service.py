from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional
import logging

from passlib.context import CryptContext

from ..ports.audit_logger import AuditLogger
from ..ports.identity_provider import Identity, IdentityProvider
from ..ports.rate_limiter import RateLimiter
from ..ports.session_repo import SessionRepository
from ..ports.staff_repo import HospitalRecord, HospitalRepository, StaffRecord, StaffRepository
from ..status import StaffRole
from .queue_engine import QueueEngine
from ...config import settings
from ...exceptions import (
    AuthenticationError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    ValidationError,
)

logger = logging.getLogger(__name__)
pwd_context = CryptContext(schemes=settings.password_schemes_list, deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # unknown or malformed hash
        return False


@dataclass
class RegistrationResult:
    hospital: HospitalRecord
    admin: StaffRecord


@dataclass
class LoginResult:
    token: str
    expires_at: datetime
    user: StaffRecord
    hospital: HospitalRecord


@dataclass
class AuthService:
    hospitals: HospitalRepository
    staff: StaffRepository
    sessions: SessionRepository
    identity: IdentityProvider
    engine: QueueEngine
    rate_limiter: Optional[RateLimiter] = None
    audit_logger: Optional[AuditLogger] = None
    token_ttl_minutes: int = settings.ACCESS_TOKEN_EXPIRE_MINUTES
    login_attempts: int = settings.LOGIN_RATE_LIMIT_ATTEMPTS
    login_window_seconds: int = settings.LOGIN_RATE_LIMIT_WINDOW_SEC
    clock: Callable[[], datetime] = datetime.utcnow

    def _check_password(self, password: str) -> None:
        if not password or len(password) < settings.MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters")

    def register_hospital(
        self,
        name: str,
        email: str,
        phone: str,
        admin_email: str,
        admin_password: str,
        admin_first_name: str,
        admin_last_name: str,
        address: Optional[str] = None,
        registration_number: Optional[str] = None,
        admin_phone: Optional[str] = None,
    ) -> RegistrationResult:
        """Create a hospital together with its first ADMIN user."""
        self._check_password(admin_password)
        email = email.strip().lower()
        admin_email = admin_email.strip().lower()

        if self.hospitals.find_existing(email, registration_number):
            raise ValidationError("Hospital with this email or registration number already exists")
        if self.staff.get_by_email(admin_email):
            raise ValidationError("User with this email already exists")

        hospital = self.hospitals.create(name, email, phone, address, registration_number)
        admin = self.staff.create(
            hospital_id=hospital.id,
            email=admin_email,
            password_hash=hash_password(admin_password),
            first_name=admin_first_name,
            last_name=admin_last_name,
            role=StaffRole.ADMIN.value,
            phone=admin_phone,
        )
        self._audit("HOSPITAL_REGISTERED", admin.id, hospital.id, "hospital", hospital.id)
        logger.info(f"Registered hospital {hospital.id} ({hospital.name})")
        return RegistrationResult(hospital=hospital, admin=admin)

    def login(self, email: str, password: str) -> LoginResult:
        email = (email or "").strip().lower()
        if self.rate_limiter and not self.rate_limiter.allow(f"login:{email}", self.login_attempts, self.login_window_seconds):
            logger.warning(f"Login rate limit exceeded for {email}")
            raise RateLimitedError("Too many login attempts. Please try again later")

        user = self.staff.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            self._audit("LOGIN", user.id if user else None, user.hospital_id if user else None, success=False)
            raise AuthenticationError("Invalid email or password")

        hospital = self.hospitals.get(user.hospital_id)
        if not user.is_active or hospital is None or not hospital.is_active:
            raise PermissionDeniedError("Account is deactivated")

        now = self.clock()
        self.staff.set_last_login(user.id, now)
        if user.role == StaffRole.DOCTOR.value:
            self.engine.on_doctor_login(user.id)

        expires_at = now + timedelta(minutes=self.token_ttl_minutes)
        token = self.identity.issue_token(user.id, user.hospital_id, user.role, expires_at)
        self.sessions.create(user.id, token, expires_at)
        self._audit("LOGIN", user.id, user.hospital_id)
        logger.info(f"User {user.id} logged in as {user.role}")
        return LoginResult(token=token, expires_at=expires_at, user=self.staff.get(user.id) or user, hospital=hospital)

    def logout(self, token: str) -> bool:
        """Invalidate the session behind ``token``.

        Doctors are marked unavailable on the way out. That update is best
        effort: a failure is logged and the session is removed regardless.
        """
        identity = self.identity.verify_token(token)
        if identity and identity.role == StaffRole.DOCTOR.value:
            try:
                self.engine.on_doctor_logout(identity.user_id)
            except Exception as e:
                logger.error(f"Failed to update availability for doctor {identity.user_id} on logout: {e}")
        removed = self.sessions.delete_by_token(token)
        if identity:
            self._audit("LOGOUT", identity.user_id, identity.hospital_id)
        return removed

    def verify_token(self, token: str) -> Optional[Identity]:
        return self.identity.verify_token(token)

    def get_user(self, user_id: str) -> StaffRecord:
        user = self.staff.get(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def get_hospital(self, hospital_id: str) -> HospitalRecord:
        hospital = self.hospitals.get(hospital_id)
        if not hospital:
            raise NotFoundError("Hospital not found")
        return hospital

    def create_staff(
        self,
        hospital_id: str,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        role: str,
        phone: Optional[str] = None,
        specialization: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> StaffRecord:
        try:
            role = StaffRole(role.upper()).value
        except ValueError:
            raise ValidationError(f"Invalid role: {role}")
        self._check_password(password)
        email = email.strip().lower()
        if self.staff.get_by_email(email):
            raise ValidationError("User with this email already exists")

        user = self.staff.create(
            hospital_id=hospital_id,
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            phone=phone,
            specialization=specialization,
        )
        self._audit("STAFF_CREATED", actor_id, hospital_id, "staff", user.id, details={"role": role})
        return user

    def list_staff(self, hospital_id: str, role: Optional[str] = None) -> List[StaffRecord]:
        return self.staff.list_staff(hospital_id, role.upper() if role else None)

    def _audit(self, action: str, actor_id: Optional[str], hospital_id: Optional[str], entity_type: Optional[str] = "staff", entity_id: Optional[str] = None, success: bool = True, details=None) -> None:
        if not self.audit_logger:
            return
        self.audit_logger.log(
            action=action,
            actor_id=actor_id,
            hospital_id=hospital_id,
            entity_type=entity_type,
            entity_id=entity_id or actor_id,
            success=success,
            details=details,
        )
