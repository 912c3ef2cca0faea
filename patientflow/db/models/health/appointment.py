# patientflow/db/models/health/appointment.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    appointment_number: str = Field(max_length=30, unique=True, index=True)
    hospital_id: str = Field(foreign_key="hospitals.id", index=True)
    patient_id: str = Field(foreign_key="patients.id", index=True)
    assigned_doctor_id: Optional[str] = Field(default=None, foreign_key="staff_users.id", index=True)
    created_by_id: Optional[str] = Field(default=None, foreign_key="staff_users.id")
    status: str = Field(default="CREATED", max_length=20, index=True)
    priority: str = Field(default="NORMAL", max_length=10)
    chief_complaint: Optional[str] = None
    version: int = Field(default=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    vitals_recorded_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    consultation_started_at: Optional[datetime] = None
    consultation_completed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_doctor_id: Optional[str] = Field(default=None, foreign_key="staff_users.id", index=True)
    last_activity_at: Optional[datetime] = Field(default=None, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
