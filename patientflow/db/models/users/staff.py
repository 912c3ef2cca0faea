# patientflow/db/models/users/staff.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class StaffUser(SQLModel, table=True):
    __tablename__ = "staff_users"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    hospital_id: str = Field(foreign_key="hospitals.id", index=True)
    email: str = Field(max_length=100, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    role: str = Field(max_length=20, index=True)
    specialization: Optional[str] = Field(default=None, max_length=100)
    is_active: bool = Field(default=True)
    # Doctor-only fields, written exclusively by the queue engine
    is_available: bool = Field(default=False)
    current_appointment_id: Optional[str] = Field(default=None, max_length=36)
    version: int = Field(default=1)
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
