from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass
class Identity:
    user_id: str
    hospital_id: str
    role: str


class IdentityProvider(Protocol):
    def issue_token(self, user_id: str, hospital_id: str, role: str, expires_at: datetime) -> str:
        ...

    def verify_token(self, token: str) -> Optional[Identity]:
        """Return the identity behind a live token, or None."""
        ...
