# patientflow/db/models/users/hospital.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class Hospital(SQLModel, table=True):
    __tablename__ = "hospitals"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(max_length=200)
    email: str = Field(max_length=100, unique=True, index=True)
    phone: str = Field(max_length=30)
    address: Optional[str] = Field(default=None, max_length=255)
    registration_number: Optional[str] = Field(default=None, max_length=100, unique=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
