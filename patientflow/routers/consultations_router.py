import asyncio
from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
import logging

from ..config import settings
from ..exceptions import ValidationError, create_success_response
from ..schemas.consultations.consultation import CompleteConsultationRequest, NotesUpdate, PrescriptionCreate
from ..application.ports.consultation_repo import DraftNotes, PrescriptionItemDto
from ..application.ports.identity_provider import Identity
from ..application.services.consultation_service import ConsultationService, NotesProposal
from ..application.services.extraction import ParsedExtraction
from ..application.services.intake_service import IntakeService
from ..application.services.queue_engine import QueueEngine
from .deps import get_consultation_service, get_current_identity, get_intake_service, get_queue_engine
from .serializers import appointment_out, to_json

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/consultations", tags=["Consultations"])


def _proposal_out(proposal: NotesProposal) -> dict:
    return {
        "draft": asdict(proposal.draft),
        "suggested_prescriptions": [
            {**asdict(s), "description": s.describe()} for s in proposal.suggested_prescriptions
        ],
        "confidence": proposal.confidence,
        "filled_fields": proposal.filled_fields,
        "parsed": proposal.parsed,
    }


@router.post("/{appointment_id}/start")
def start_consultation(
    appointment_id: str,
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
    engine: QueueEngine = Depends(get_queue_engine),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    appt = engine.start_consultation(appointment_id, identity.user_id)
    return create_success_response({"appointment": appointment_out(appt)})


@router.post("/{appointment_id}/complete")
def complete_consultation(
    appointment_id: str,
    payload: Optional[CompleteConsultationRequest] = None,
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
    consultations: ConsultationService = Depends(get_consultation_service),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    referral = payload.referral if payload else False
    appt = consultations.complete_consultation(appointment_id, identity.user_id, referral=referral)
    return create_success_response({"appointment": appointment_out(appt)})


@router.get("/{appointment_id}/notes")
def get_notes(
    appointment_id: str,
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
    consultations: ConsultationService = Depends(get_consultation_service),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    summary = consultations.get_notes(appointment_id)
    return create_success_response({
        "appointment_id": appointment_id,
        "status": summary.appointment.status,
        "notes": to_json(asdict(summary.note)) if summary.note else None,
        "prescription": to_json(asdict(summary.prescription)) if summary.prescription else None,
        "latest_transcript": to_json(asdict(summary.latest_transcript)) if summary.latest_transcript else None,
    })


@router.put("/{appointment_id}/notes")
def save_notes(
    appointment_id: str,
    payload: NotesUpdate,
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
    consultations: ConsultationService = Depends(get_consultation_service),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    note = consultations.save_draft_notes(
        appointment_id,
        identity.user_id,
        DraftNotes(payload.diagnosis, payload.treatment_plan, payload.doctor_notes),
    )
    return create_success_response({"notes": to_json(asdict(note))})


@router.post("/{appointment_id}/prescription", status_code=201)
def create_prescription(
    appointment_id: str,
    payload: PrescriptionCreate,
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
    consultations: ConsultationService = Depends(get_consultation_service),
):
    intake.get_for_hospital(identity.hospital_id, appointment_id)
    items = [PrescriptionItemDto(**item.dict()) for item in payload.items]
    prescription = consultations.create_prescription(appointment_id, identity.user_id, items)
    return create_success_response({"prescription": to_json(asdict(prescription))})


@router.post("/{appointment_id}/voice")
async def process_voice(
    appointment_id: str,
    audio: UploadFile = File(...),
    overwrite: bool = Form(False),
    identity: Identity = Depends(get_current_identity),
    intake: IntakeService = Depends(get_intake_service),
    consultations: ConsultationService = Depends(get_consultation_service),
):
    """Transcribe a recording and propose notes; nothing is saved to the draft.

    Transcription and extraction block on the AI provider, so the service
    call runs in a worker thread.
    """
    await asyncio.to_thread(intake.get_for_hospital, identity.hospital_id, appointment_id)

    mime_type = (audio.content_type or "").split(";")[0].strip().lower()
    if mime_type not in settings.ALLOWED_AUDIO_TYPES:
        raise ValidationError(f"Unsupported audio type: {mime_type or 'unknown'}")
    audio_bytes = await audio.read()
    if len(audio_bytes) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError("Audio file is too large")

    try:
        result = await asyncio.to_thread(
            consultations.process_voice_recording,
            appointment_id,
            identity.user_id,
            audio_bytes,
            mime_type,
            overwrite=overwrite,
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Voice processing error for appointment {appointment_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process audio")

    extracted = asdict(result.extraction.notes) if isinstance(result.extraction, ParsedExtraction) else None
    return create_success_response({
        "transcript": result.transcript,
        "transcript_id": result.transcript_record.id,
        "extracted": extracted,
        "confidence": result.extraction.confidence,
        "proposal": _proposal_out(result.proposal),
    })
