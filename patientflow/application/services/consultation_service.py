from dataclasses import dataclass, field, asdict
from typing import List, Optional
import json
import logging

from ..ports.appointments_repo import AppointmentRecord
from ..ports.consultation_repo import (
    ConsultationRepository,
    DraftNotes,
    NoteRecord,
    PrescriptionItemDto,
    PrescriptionRecord,
    TranscriptRecord,
)
from ..ports.speech_provider import SpeechProvider
from ..status import AppointmentStatus
from .extraction import (
    ExtractionResult,
    ParsedExtraction,
    SuggestedPrescription,
    UnparseableExtraction,
    parse_extraction,
)
from .queue_engine import QueueEngine
from ...exceptions import (
    AlreadyPrescribedError,
    InvalidStateError,
    NotAssignedError,
    ServiceUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

REQUIRED_ITEM_FIELDS = ("medication_name", "dosage", "frequency", "duration", "quantity")


@dataclass
class NotesProposal:
    draft: DraftNotes
    suggested_prescriptions: List[SuggestedPrescription] = field(default_factory=list)
    confidence: float = 0.0
    filled_fields: List[str] = field(default_factory=list)
    parsed: bool = False


@dataclass
class VoiceResult:
    transcript: str
    extraction: ExtractionResult
    proposal: NotesProposal
    transcript_record: TranscriptRecord


@dataclass
class ConsultationSummary:
    appointment: AppointmentRecord
    note: Optional[NoteRecord]
    prescription: Optional[PrescriptionRecord]
    latest_transcript: Optional[TranscriptRecord]


def _blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


@dataclass
class ConsultationService:
    engine: QueueEngine
    repo: ConsultationRepository
    speech_provider: Optional[SpeechProvider] = None

    def _open_consultation(self, appointment_id: str, doctor_id: str) -> AppointmentRecord:
        appt = self.engine.get_appointment(appointment_id)
        if appt.status != AppointmentStatus.IN_CONSULTATION.value:
            raise InvalidStateError("Consultation must be started first")
        if appt.assigned_doctor_id != doctor_id:
            raise NotAssignedError()
        return appt

    def save_draft_notes(self, appointment_id: str, doctor_id: str, notes: DraftNotes) -> NoteRecord:
        self._open_consultation(appointment_id, doctor_id)
        return self.repo.save_note(appointment_id, notes, updated_by=doctor_id)

    def get_notes(self, appointment_id: str) -> ConsultationSummary:
        appt = self.engine.get_appointment(appointment_id)
        return ConsultationSummary(
            appointment=appt,
            note=self.repo.get_note(appointment_id),
            prescription=self.repo.get_prescription(appointment_id),
            latest_transcript=self.repo.latest_transcript(appointment_id),
        )

    def merge_extracted_notes(self, appointment_id: str, extraction: ExtractionResult, overwrite: bool = False) -> NotesProposal:
        """Propose a draft with AI-extracted values filled in.

        Nothing is saved: the doctor reviews the proposal and saves it
        explicitly. Without ``overwrite`` only blank fields are filled.
        """
        current = self.repo.get_note(appointment_id)
        draft = current.as_draft() if current else DraftNotes()

        if isinstance(extraction, UnparseableExtraction):
            return NotesProposal(draft=draft, confidence=0.0, parsed=False)

        proposal = DraftNotes(draft.diagnosis, draft.treatment_plan, draft.doctor_notes)
        filled: List[str] = []
        extracted = extraction.notes
        for name, value in (
            ("diagnosis", extracted.diagnosis),
            ("treatment_plan", extracted.treatment_plan),
            ("doctor_notes", extracted.additional_notes),
        ):
            if _blank(value):
                continue
            if overwrite or _blank(getattr(proposal, name)):
                setattr(proposal, name, value)
                filled.append(name)

        return NotesProposal(
            draft=proposal,
            suggested_prescriptions=list(extracted.prescriptions),
            confidence=extraction.confidence,
            filled_fields=filled,
            parsed=True,
        )

    def process_voice_recording(self, appointment_id: str, doctor_id: str, audio_bytes: bytes, mime_type: str, overwrite: bool = False) -> VoiceResult:
        if self.speech_provider is None:
            raise ServiceUnavailableError("Voice AI feature is not configured")
        self._open_consultation(appointment_id, doctor_id)
        if not audio_bytes:
            raise ValidationError("Audio recording is empty")

        try:
            transcript = self.speech_provider.transcribe(audio_bytes, mime_type)
        except Exception as e:
            logger.error(f"Transcription failed for appointment {appointment_id}: {e}")
            raise ServiceUnavailableError("Failed to process audio")

        try:
            raw = self.speech_provider.extract(transcript)
        except Exception as e:
            logger.error(f"Note extraction failed for appointment {appointment_id}: {e}")
            raw = ""
        extraction = parse_extraction(raw)

        processed = json.dumps(asdict(extraction.notes)) if isinstance(extraction, ParsedExtraction) else None
        record = self.repo.save_transcript(
            appointment_id,
            raw_transcript=transcript,
            processed_notes=processed,
            confidence=extraction.confidence,
            created_by=doctor_id,
        )
        proposal = self.merge_extracted_notes(appointment_id, extraction, overwrite=overwrite)
        return VoiceResult(transcript=transcript, extraction=extraction, proposal=proposal, transcript_record=record)

    def create_prescription(self, appointment_id: str, doctor_id: str, items: List[PrescriptionItemDto]) -> PrescriptionRecord:
        self._open_consultation(appointment_id, doctor_id)
        if not items:
            raise ValidationError("At least one prescription item is required")
        for position, item in enumerate(items, start=1):
            for name in REQUIRED_ITEM_FIELDS:
                if _blank(getattr(item, name)):
                    raise ValidationError(f"Prescription item {position}: {name} is required")

        if self.repo.get_prescription(appointment_id) is not None:
            raise AlreadyPrescribedError()
        prescription = self.repo.create_prescription(appointment_id, doctor_id, items)
        logger.info(f"Prescription {prescription.id} created for appointment {appointment_id}")
        return prescription

    def complete_consultation(self, appointment_id: str, doctor_id: str, referral: bool = False) -> AppointmentRecord:
        self._open_consultation(appointment_id, doctor_id)
        note = self.repo.get_note(appointment_id)
        if note is None or _blank(note.diagnosis):
            raise ValidationError("Diagnosis is required before completing the consultation")
        has_prescription = self.repo.get_prescription(appointment_id) is not None
        return self.engine.complete_consultation(appointment_id, doctor_id, has_prescription, referral=referral)
