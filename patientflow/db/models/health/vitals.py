# patientflow/db/models/health/vitals.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class VitalsRecord(SQLModel, table=True):
    __tablename__ = "vitals_records"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    appointment_id: str = Field(foreign_key="appointments.id", unique=True, index=True)
    blood_pressure_systolic: Optional[int] = None
    blood_pressure_diastolic: Optional[int] = None
    temperature: Optional[float] = None
    pulse_rate: Optional[int] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[int] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    pain_level: Optional[int] = None
    symptoms_description: Optional[str] = None
    nurse_notes: Optional[str] = None
    recorded_by: Optional[str] = Field(default=None, foreign_key="staff_users.id")
    recorded_at: datetime = Field(default_factory=datetime.utcnow)
