from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Protocol
from datetime import datetime


@dataclass
class AuditEntry:
    id: str
    hospital_id: Optional[str]
    actor_id: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[str]
    success: bool
    details: Dict[str, Any]
    created_at: datetime


class AuditLogger(Protocol):
    def log(self, action: str, actor_id: Optional[str] = None, hospital_id: Optional[str] = None, entity_type: Optional[str] = None, entity_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        ...

    def list_recent(self, hospital_id: str, action: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[AuditEntry]:
        ...
