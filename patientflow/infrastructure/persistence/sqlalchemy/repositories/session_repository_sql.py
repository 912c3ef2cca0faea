from datetime import datetime
from typing import Optional
from sqlmodel import Session, select

from .....db.models import StaffSession
from .....application.ports.session_repo import SessionRepository, SessionDto


class SqlSessionRepository(SessionRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, rec: StaffSession) -> SessionDto:
        return SessionDto(
            id=rec.id,
            user_id=rec.user_id,
            token=rec.token,
            expires_at=rec.expires_at,
            created_at=rec.created_at,
        )

    def create(self, user_id: str, token: str, expires_at: datetime) -> SessionDto:
        rec = StaffSession(user_id=user_id, token=token, expires_at=expires_at)
        self.session.add(rec)
        self.session.commit()
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get_by_token(self, token: str) -> Optional[SessionDto]:
        rec = self.session.exec(select(StaffSession).where(StaffSession.token == token)).first()
        return self._to_dto(rec) if rec else None

    def delete_by_token(self, token: str) -> bool:
        rows = self.session.exec(select(StaffSession).where(StaffSession.token == token)).all()
        if not rows:
            return False
        for rec in rows:
            self.session.delete(rec)
        self.session.commit()
        return True
