# patientflow/db/models/health/prescription.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class Prescription(SQLModel, table=True):
    __tablename__ = "prescriptions"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    # unique: one prescription set per appointment, also under concurrent requests
    appointment_id: str = Field(foreign_key="appointments.id", unique=True, index=True)
    prescribed_by: Optional[str] = Field(default=None, foreign_key="staff_users.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)

class PrescriptionItem(SQLModel, table=True):
    __tablename__ = "prescription_items"
    id: Optional[int] = Field(default=None, primary_key=True)
    prescription_id: str = Field(foreign_key="prescriptions.id", index=True)
    position: int
    medication_name: str = Field(max_length=200)
    dosage: str = Field(max_length=100)
    frequency: str = Field(max_length=100)
    duration: str = Field(max_length=100)
    quantity: str = Field(max_length=50)
    instructions: Optional[str] = None
