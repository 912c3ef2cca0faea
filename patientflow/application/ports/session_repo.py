from dataclasses import dataclass
from typing import Optional
from datetime import datetime


@dataclass
class SessionDto:
    id: str
    user_id: str
    token: str
    expires_at: datetime
    created_at: datetime


class SessionRepository:
    def create(self, user_id: str, token: str, expires_at: datetime) -> SessionDto:
        ...

    def get_by_token(self, token: str) -> Optional[SessionDto]:
        ...

    def delete_by_token(self, token: str) -> bool:
        ...
