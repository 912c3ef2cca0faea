import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlmodel import Session, select

from ...db.models import AuditLog
from ...application.ports.audit_logger import AuditEntry, AuditLogger


class SqlAuditLogger(AuditLogger):
    """Writes audit rows and mirrors each one to the application log."""

    def __init__(self, session: Session) -> None:
        self.session = session
        self._logger = logging.getLogger(__name__)

    def log(self, action: str, actor_id: Optional[str] = None, hospital_id: Optional[str] = None, entity_type: Optional[str] = None, entity_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": datetime.utcnow().isoformat(),
            "action": action,
            "actor_id": actor_id,
            "hospital_id": hospital_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "success": success,
            "details": details or {},
        }
        self._logger.info(f"AUDIT: {json.dumps(entry, default=str)}")

        self.session.add(AuditLog(
            hospital_id=hospital_id,
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            success=success,
            details=json.dumps(details or {}, default=str),
        ))
        self.session.commit()

    def list_recent(self, hospital_id: str, action: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[AuditEntry]:
        query = select(AuditLog).where(AuditLog.hospital_id == hospital_id)
        if action:
            query = query.where(AuditLog.action == action)
        rows = self.session.exec(query.order_by(AuditLog.created_at.desc()).offset(offset).limit(limit)).all()
        return [
            AuditEntry(
                id=r.id,
                hospital_id=r.hospital_id,
                actor_id=r.actor_id,
                action=r.action,
                entity_type=r.entity_type,
                entity_id=r.entity_id,
                success=r.success,
                details=json.loads(r.details) if r.details else {},
                created_at=r.created_at,
            )
            for r in rows
        ]
