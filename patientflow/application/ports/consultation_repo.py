from dataclasses import dataclass, field
from typing import Dict, List, Optional
from datetime import datetime


@dataclass
class DraftNotes:
    diagnosis: Optional[str] = None
    treatment_plan: Optional[str] = None
    doctor_notes: Optional[str] = None


@dataclass
class NoteRecord:
    appointment_id: str
    diagnosis: Optional[str]
    treatment_plan: Optional[str]
    doctor_notes: Optional[str]
    updated_by: Optional[str]
    updated_at: datetime

    def as_draft(self) -> DraftNotes:
        return DraftNotes(self.diagnosis, self.treatment_plan, self.doctor_notes)


@dataclass
class PrescriptionItemDto:
    medication_name: str
    dosage: str
    frequency: str
    duration: str
    quantity: str
    instructions: Optional[str] = None


@dataclass
class PrescriptionRecord:
    id: str
    appointment_id: str
    prescribed_by: Optional[str]
    created_at: datetime
    items: List[PrescriptionItemDto] = field(default_factory=list)


@dataclass
class TranscriptRecord:
    id: str
    appointment_id: str
    raw_transcript: str
    processed_notes: Optional[str]
    confidence: float
    created_at: datetime


class ConsultationRepository:
    def get_note(self, appointment_id: str) -> Optional[NoteRecord]:
        ...

    def save_note(self, appointment_id: str, notes: DraftNotes, updated_by: Optional[str]) -> NoteRecord:
        """Overwrite the draft for an appointment, creating it on first save."""
        ...

    def get_prescription(self, appointment_id: str) -> Optional[PrescriptionRecord]:
        ...

    def get_prescriptions(self, appointment_ids: List[str]) -> Dict[str, PrescriptionRecord]:
        """Prescriptions keyed by appointment id; appointments without one are absent."""
        ...

    def create_prescription(self, appointment_id: str, prescribed_by: Optional[str], items: List[PrescriptionItemDto]) -> PrescriptionRecord:
        """Raise AlreadyPrescribedError when the appointment already has one."""
        ...

    def save_transcript(self, appointment_id: str, raw_transcript: str, processed_notes: Optional[str], confidence: float, created_by: Optional[str]) -> TranscriptRecord:
        ...

    def latest_transcript(self, appointment_id: str) -> Optional[TranscriptRecord]:
        ...
