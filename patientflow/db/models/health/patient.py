# patientflow/db/models/health/patient.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime, date
import uuid

class Patient(SQLModel, table=True):
    __tablename__ = "patients"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    hospital_id: str = Field(foreign_key="hospitals.id", index=True)
    patient_id_number: str = Field(max_length=20, unique=True, index=True)
    first_name: str = Field(max_length=100)
    last_name: str = Field(max_length=100)
    date_of_birth: date
    gender: str = Field(max_length=10)
    phone: str = Field(max_length=30)
    email: Optional[str] = Field(default=None, max_length=100)
    address: Optional[str] = Field(default=None, max_length=255)
    blood_group: Optional[str] = Field(default=None, max_length=5)
    genotype: Optional[str] = Field(default=None, max_length=5)
    allergies: Optional[str] = None
    medical_history: Optional[str] = None
    emergency_contact_name: Optional[str] = Field(default=None, max_length=100)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=30)
    emergency_contact_relationship: Optional[str] = Field(default=None, max_length=30)
    status: str = Field(default="ACTIVE", max_length=10)
    registered_by: Optional[str] = Field(default=None, foreign_key="staff_users.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
