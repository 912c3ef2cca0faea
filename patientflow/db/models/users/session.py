# patientflow/db/models/users/session.py
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class StaffSession(SQLModel, table=True):
    __tablename__ = "staff_sessions"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(foreign_key="staff_users.id", index=True)
    token: str = Field(max_length=1000, index=True)
    expires_at: datetime
    created_at: datetime = Field(default_factory=datetime.utcnow)
