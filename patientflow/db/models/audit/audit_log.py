# patientflow/db/models/audit/audit_log.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    hospital_id: Optional[str] = Field(default=None, index=True)
    actor_id: Optional[str] = Field(default=None, index=True)
    action: str = Field(max_length=60, index=True)
    entity_type: Optional[str] = Field(default=None, max_length=40)
    entity_id: Optional[str] = Field(default=None, max_length=36)
    success: bool = Field(default=True)
    details: Optional[str] = None  # JSON
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
