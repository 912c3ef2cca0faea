# patientflow/db/models/health/consultation.py
from typing import Optional
from sqlmodel import SQLModel, Field
from datetime import datetime
import uuid

class ConsultationNote(SQLModel, table=True):
    __tablename__ = "consultation_notes"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    appointment_id: str = Field(foreign_key="appointments.id", unique=True, index=True)
    diagnosis: Optional[str] = None
    treatment_plan: Optional[str] = None
    doctor_notes: Optional[str] = None
    updated_by: Optional[str] = Field(default=None, foreign_key="staff_users.id")
    updated_at: datetime = Field(default_factory=datetime.utcnow)

class VoiceTranscript(SQLModel, table=True):
    __tablename__ = "voice_transcripts"
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    appointment_id: str = Field(foreign_key="appointments.id", index=True)
    raw_transcript: str
    processed_notes: Optional[str] = None  # JSON of the parsed extraction
    confidence: float = Field(default=0.0)
    created_by: Optional[str] = Field(default=None, foreign_key="staff_users.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
