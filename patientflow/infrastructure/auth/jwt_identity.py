import logging
import uuid
from datetime import datetime
from typing import Callable, Optional

import jwt

from ...config import settings
from ...application.ports.identity_provider import Identity, IdentityProvider
from ...application.ports.session_repo import SessionRepository

logger = logging.getLogger(__name__)


class JwtIdentityProvider(IdentityProvider):
    """HS256 access tokens backed by the session table.

    A token is only accepted while its session row exists, so logout
    revokes it before ``exp``.
    """

    def __init__(self, sessions: SessionRepository, secret_key: str = None, algorithm: str = None, clock: Callable[[], datetime] = datetime.utcnow) -> None:
        self.sessions = sessions
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.ALGORITHM
        self.clock = clock

    def issue_token(self, user_id: str, hospital_id: str, role: str, expires_at: datetime) -> str:
        payload = {
            "sub": user_id,
            "hospital_id": hospital_id,
            "role": role,
            "exp": expires_at,
            "jti": uuid.uuid4().hex,
            "type": "access",
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Optional[Identity]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("Token has expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            return None

        if payload.get("type") != "access" or not payload.get("sub"):
            return None
        session = self.sessions.get_by_token(token)
        if not session or session.expires_at < self.clock():
            return None
        return Identity(user_id=payload["sub"], hospital_id=payload.get("hospital_id"), role=payload.get("role"))
