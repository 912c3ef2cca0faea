from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import ConsultationNote, Prescription, PrescriptionItem, VoiceTranscript
from .....application.ports.consultation_repo import (
    ConsultationRepository,
    DraftNotes,
    NoteRecord,
    PrescriptionItemDto,
    PrescriptionRecord,
    TranscriptRecord,
)
from .....exceptions import AlreadyPrescribedError


class SqlConsultationRepository(ConsultationRepository):
    def __init__(self, session: Session):
        self.session = session

    def _note_to_record(self, n: ConsultationNote) -> NoteRecord:
        return NoteRecord(
            appointment_id=n.appointment_id,
            diagnosis=n.diagnosis,
            treatment_plan=n.treatment_plan,
            doctor_notes=n.doctor_notes,
            updated_by=n.updated_by,
            updated_at=n.updated_at,
        )

    def _transcript_to_record(self, t: VoiceTranscript) -> TranscriptRecord:
        return TranscriptRecord(
            id=t.id,
            appointment_id=t.appointment_id,
            raw_transcript=t.raw_transcript,
            processed_notes=t.processed_notes,
            confidence=t.confidence,
            created_at=t.created_at,
        )

    def get_note(self, appointment_id: str) -> Optional[NoteRecord]:
        n = self.session.exec(select(ConsultationNote).where(ConsultationNote.appointment_id == appointment_id)).first()
        return self._note_to_record(n) if n else None

    def save_note(self, appointment_id: str, notes: DraftNotes, updated_by: Optional[str]) -> NoteRecord:
        note = self.session.exec(select(ConsultationNote).where(ConsultationNote.appointment_id == appointment_id)).first()
        if not note:
            note = ConsultationNote(appointment_id=appointment_id)
        note.diagnosis = notes.diagnosis
        note.treatment_plan = notes.treatment_plan
        note.doctor_notes = notes.doctor_notes
        note.updated_by = updated_by
        note.updated_at = datetime.utcnow()
        self.session.add(note)
        self.session.commit()
        self.session.refresh(note)
        return self._note_to_record(note)

    def _item_to_dto(self, i: PrescriptionItem) -> PrescriptionItemDto:
        return PrescriptionItemDto(
            medication_name=i.medication_name,
            dosage=i.dosage,
            frequency=i.frequency,
            duration=i.duration,
            quantity=i.quantity,
            instructions=i.instructions,
        )

    def get_prescription(self, appointment_id: str) -> Optional[PrescriptionRecord]:
        return self.get_prescriptions([appointment_id]).get(appointment_id)

    def get_prescriptions(self, appointment_ids: List[str]) -> Dict[str, PrescriptionRecord]:
        if not appointment_ids:
            return {}
        prescriptions = self.session.exec(
            select(Prescription).where(Prescription.appointment_id.in_(appointment_ids))
        ).all()
        if not prescriptions:
            return {}
        items = self.session.exec(
            select(PrescriptionItem)
            .where(PrescriptionItem.prescription_id.in_([p.id for p in prescriptions]))
            .order_by(PrescriptionItem.position)
        ).all()
        by_prescription: Dict[str, List[PrescriptionItemDto]] = {}
        for i in items:
            by_prescription.setdefault(i.prescription_id, []).append(self._item_to_dto(i))
        return {
            p.appointment_id: PrescriptionRecord(
                id=p.id,
                appointment_id=p.appointment_id,
                prescribed_by=p.prescribed_by,
                created_at=p.created_at,
                items=by_prescription.get(p.id, []),
            )
            for p in prescriptions
        }

    def create_prescription(self, appointment_id: str, prescribed_by: Optional[str], items: List[PrescriptionItemDto]) -> PrescriptionRecord:
        prescription = Prescription(appointment_id=appointment_id, prescribed_by=prescribed_by)
        self.session.add(prescription)
        try:
            # flush first so a concurrent duplicate fails before any item is written
            self.session.flush()
        except IntegrityError:
            self.session.rollback()
            raise AlreadyPrescribedError()

        for position, item in enumerate(items):
            self.session.add(PrescriptionItem(
                prescription_id=prescription.id,
                position=position,
                medication_name=item.medication_name,
                dosage=item.dosage,
                frequency=item.frequency,
                duration=item.duration,
                quantity=item.quantity,
                instructions=item.instructions,
            ))
        self.session.commit()
        return self.get_prescription(appointment_id)

    def save_transcript(self, appointment_id: str, raw_transcript: str, processed_notes: Optional[str], confidence: float, created_by: Optional[str]) -> TranscriptRecord:
        rec = VoiceTranscript(
            appointment_id=appointment_id,
            raw_transcript=raw_transcript,
            processed_notes=processed_notes,
            confidence=confidence,
            created_by=created_by,
        )
        self.session.add(rec)
        self.session.commit()
        self.session.refresh(rec)
        return self._transcript_to_record(rec)

    def latest_transcript(self, appointment_id: str) -> Optional[TranscriptRecord]:
        t = self.session.exec(
            select(VoiceTranscript)
            .where(VoiceTranscript.appointment_id == appointment_id)
            .order_by(VoiceTranscript.created_at.desc())
        ).first()
        return self._transcript_to_record(t) if t else None
