import os

# must be set before patientflow.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-0123456789abcdefghij"
os.environ["GEMINI_API_KEY"] = ""
os.environ["DEBUG"] = "false"

import dataclasses
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pytest

from patientflow.application.ports.appointments_repo import AppointmentRecord, latest_activity
from patientflow.application.ports.audit_logger import AuditEntry
from patientflow.application.ports.consultation_repo import (
    DraftNotes,
    NoteRecord,
    PrescriptionItemDto,
    PrescriptionRecord,
    TranscriptRecord,
)
from patientflow.application.ports.patient_repo import PatientRecord
from patientflow.application.ports.session_repo import SessionDto
from patientflow.application.ports.staff_repo import HospitalRecord, StaffRecord
from patientflow.application.ports.vitals_repo import VitalsDto
from patientflow.application.services.queue_engine import QueueEngine
from patientflow.application.status import StaffRole
from patientflow.exceptions import AlreadyPrescribedError


class FakeClock:
    def __init__(self, start: datetime = datetime(2024, 5, 6, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: int = 1) -> datetime:
        self.now = self.now + timedelta(minutes=minutes)
        return self.now


class FakeAppointmentsRepo:
    """Returns copies so callers hold snapshots, like rows read from a database."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: Dict[str, AppointmentRecord] = {}
        self._seq = 0

    def get(self, appointment_id: str) -> Optional[AppointmentRecord]:
        rec = self.rows.get(appointment_id)
        return dataclasses.replace(rec) if rec else None

    def create(self, hospital_id, patient_id, created_by_id, priority, chief_complaint, appointment_number):
        self._seq += 1
        rec = AppointmentRecord(
            id=f"appt-{self._seq}",
            appointment_number=appointment_number,
            hospital_id=hospital_id,
            patient_id=patient_id,
            assigned_doctor_id=None,
            created_by_id=created_by_id,
            status="CREATED",
            priority=priority,
            chief_complaint=chief_complaint,
            version=1,
            created_at=self.clock(),
            last_activity_at=self.clock(),
        )
        self.rows[rec.id] = rec
        return dataclasses.replace(rec)

    def compare_and_set(self, appointment_id, expected_version, changes):
        rec = self.rows.get(appointment_id)
        if rec is None or rec.version != expected_version:
            return None
        updated = dataclasses.replace(rec, **changes, version=rec.version + 1)
        stamp = latest_activity(changes)
        if stamp is not None:
            updated.last_activity_at = stamp
        self.rows[appointment_id] = updated
        return dataclasses.replace(updated)

    def list_for_doctor(self, doctor_id: str, statuses: Sequence[str]) -> List[AppointmentRecord]:
        return [dataclasses.replace(r) for r in self.rows.values() if r.assigned_doctor_id == doctor_id and r.status in statuses]

    def list_for_hospital(self, hospital_id, statuses=None, patient_id=None, limit=100):
        rows = [
            r for r in self.rows.values()
            if r.hospital_id == hospital_id
            and (not statuses or r.status in statuses)
            and (not patient_id or r.patient_id == patient_id)
        ]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return [dataclasses.replace(r) for r in rows[:limit]]

    def list_recent_activity(self, hospital_id, doctor_id=None, limit=50):
        rows = [
            r for r in self.rows.values()
            if r.hospital_id == hospital_id
            and (not doctor_id or doctor_id in (r.assigned_doctor_id, r.cancelled_doctor_id))
        ]
        rows.sort(key=lambda r: (r.last_activity_at, r.created_at), reverse=True)
        return [dataclasses.replace(r) for r in rows[:limit]]

    def count_by_doctor(self, hospital_id: str, statuses: Sequence[str]) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for r in self.rows.values():
            if r.hospital_id == hospital_id and r.assigned_doctor_id and r.status in statuses:
                counts[r.assigned_doctor_id] = counts.get(r.assigned_doctor_id, 0) + 1
        return counts

    def count_consultations_completed_since(self, doctor_id: str, since: datetime) -> int:
        return sum(
            1 for r in self.rows.values()
            if r.assigned_doctor_id == doctor_id and r.consultation_completed_at and r.consultation_completed_at >= since
        )


class FakeStaffRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: Dict[str, StaffRecord] = {}

    def _copy(self, rec):
        return dataclasses.replace(rec) if rec else None

    def get(self, user_id):
        return self._copy(self.rows.get(user_id))

    def get_by_email(self, email):
        return self._copy(next((r for r in self.rows.values() if r.email == email), None))

    def create(self, hospital_id, email, password_hash, first_name, last_name, role, phone=None, specialization=None, is_available=False, user_id=None):
        rec = StaffRecord(
            id=user_id or f"user-{uuid.uuid4().hex[:8]}",
            hospital_id=hospital_id,
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            is_active=True,
            is_available=is_available,
            current_appointment_id=None,
            version=1,
            created_at=self.clock(),
            password_hash=password_hash,
            phone=phone,
            specialization=specialization,
        )
        self.rows[rec.id] = rec
        return self._copy(rec)

    def list_doctors(self, hospital_id, available_only=False):
        rows = [
            r for r in self.rows.values()
            if r.hospital_id == hospital_id and r.role == StaffRole.DOCTOR.value and r.is_active
            and (r.is_available or not available_only)
        ]
        rows.sort(key=lambda r: (r.first_name, r.id))
        return [self._copy(r) for r in rows]

    def list_staff(self, hospital_id, role=None):
        return [self._copy(r) for r in self.rows.values() if r.hospital_id == hospital_id and (role is None or r.role == role)]

    def compare_and_set(self, user_id, expected_version, changes):
        rec = self.rows.get(user_id)
        if rec is None or rec.version != expected_version:
            return None
        updated = dataclasses.replace(rec, **changes, version=rec.version + 1)
        self.rows[user_id] = updated
        return self._copy(updated)

    def set_last_login(self, user_id, when):
        if user_id in self.rows:
            self.rows[user_id] = dataclasses.replace(self.rows[user_id], last_login=when)


class FakeHospitalRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: Dict[str, HospitalRecord] = {}

    def get(self, hospital_id):
        return self.rows.get(hospital_id)

    def find_existing(self, email, registration_number):
        return next(
            (h for h in self.rows.values() if h.email == email or (registration_number and h.registration_number == registration_number)),
            None,
        )

    def create(self, name, email, phone, address, registration_number, hospital_id=None):
        rec = HospitalRecord(
            id=hospital_id or f"hosp-{len(self.rows) + 1}",
            name=name,
            email=email,
            phone=phone,
            address=address,
            registration_number=registration_number,
            is_active=True,
            created_at=self.clock(),
        )
        self.rows[rec.id] = rec
        return rec


class FakeSessionRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: Dict[str, SessionDto] = {}

    def create(self, user_id, token, expires_at):
        rec = SessionDto(id=f"sess-{len(self.rows) + 1}", user_id=user_id, token=token, expires_at=expires_at, created_at=self.clock())
        self.rows[token] = rec
        return rec

    def get_by_token(self, token):
        return self.rows.get(token)

    def delete_by_token(self, token):
        return self.rows.pop(token, None) is not None


class FakePatientRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: Dict[str, PatientRecord] = {}

    def create(self, hospital_id, patient_id_number, registered_by, fields):
        rec = PatientRecord(
            id=f"pat-{len(self.rows) + 1}",
            hospital_id=hospital_id,
            patient_id_number=patient_id_number,
            status="ACTIVE",
            created_at=self.clock(),
            registered_by=registered_by,
            **fields,
        )
        self.rows[rec.id] = rec
        return rec

    def get(self, patient_id):
        return self.rows.get(patient_id)

    def get_many(self, patient_ids):
        return {pid: self.rows[pid] for pid in patient_ids if pid in self.rows}

    def search(self, hospital_id, search, offset, limit) -> Tuple[List[PatientRecord], int]:
        rows = [p for p in self.rows.values() if p.hospital_id == hospital_id]
        if search:
            term = search.lower()
            rows = [p for p in rows if term in p.first_name.lower() or term in p.last_name.lower() or term in p.phone]
        rows.sort(key=lambda p: p.created_at, reverse=True)
        return rows[offset:offset + limit], len(rows)

    def count_all(self):
        return len(self.rows)


class FakeVitalsRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.rows: Dict[str, VitalsDto] = {}

    def create(self, appointment_id, recorded_by, fields):
        rec = VitalsDto(id=f"vit-{len(self.rows) + 1}", appointment_id=appointment_id, recorded_by=recorded_by, recorded_at=self.clock(), **fields)
        self.rows[appointment_id] = rec
        return rec

    def get_for_appointment(self, appointment_id):
        return self.rows.get(appointment_id)


class FakeConsultationRepo:
    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.notes: Dict[str, NoteRecord] = {}
        self.prescriptions: Dict[str, PrescriptionRecord] = {}
        self.transcripts: List[TranscriptRecord] = []

    def get_note(self, appointment_id):
        return self.notes.get(appointment_id)

    def save_note(self, appointment_id, notes: DraftNotes, updated_by):
        rec = NoteRecord(appointment_id, notes.diagnosis, notes.treatment_plan, notes.doctor_notes, updated_by, self.clock())
        self.notes[appointment_id] = rec
        return rec

    def get_prescription(self, appointment_id):
        return self.prescriptions.get(appointment_id)

    def get_prescriptions(self, appointment_ids):
        return {a: self.prescriptions[a] for a in appointment_ids if a in self.prescriptions}

    def create_prescription(self, appointment_id, prescribed_by, items: List[PrescriptionItemDto]):
        if appointment_id in self.prescriptions:
            raise AlreadyPrescribedError()
        rec = PrescriptionRecord(f"rx-{len(self.prescriptions) + 1}", appointment_id, prescribed_by, self.clock(), list(items))
        self.prescriptions[appointment_id] = rec
        return rec

    def save_transcript(self, appointment_id, raw_transcript, processed_notes, confidence, created_by):
        rec = TranscriptRecord(f"tr-{len(self.transcripts) + 1}", appointment_id, raw_transcript, processed_notes, confidence, self.clock())
        self.transcripts.append(rec)
        return rec

    def latest_transcript(self, appointment_id):
        matches = [t for t in self.transcripts if t.appointment_id == appointment_id]
        return matches[-1] if matches else None


class FakeAuditLogger:
    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    def log(self, action, actor_id=None, hospital_id=None, entity_type=None, entity_id=None, success=True, details=None):
        self.entries.append({
            "action": action,
            "actor_id": actor_id,
            "hospital_id": hospital_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "success": success,
            "details": details or {},
        })

    def list_recent(self, hospital_id, action=None, limit=50, offset=0) -> List[AuditEntry]:
        return []

    def actions(self) -> List[str]:
        return [e["action"] for e in self.entries]


class World:
    """One hospital wired to in-memory repositories."""

    hospital_id = "hosp-1"

    def __init__(self):
        self.clock = FakeClock()
        self.appointments = FakeAppointmentsRepo(self.clock)
        self.staff = FakeStaffRepo(self.clock)
        self.hospitals = FakeHospitalRepo(self.clock)
        self.sessions = FakeSessionRepo(self.clock)
        self.patients = FakePatientRepo(self.clock)
        self.vitals = FakeVitalsRepo(self.clock)
        self.consultations = FakeConsultationRepo(self.clock)
        self.audit = FakeAuditLogger()
        self.engine = QueueEngine(self.appointments, self.staff, self.audit, clock=self.clock)
        self.hospitals.create("General", "admin@general.test", "+2348000000001", None, "REG-1", hospital_id=self.hospital_id)
        self._appt_seq = 0

    def add_doctor(self, doctor_id: str, first_name: str = "Doc", available: bool = True, hospital_id: Optional[str] = None) -> StaffRecord:
        return self.staff.create(
            hospital_id or self.hospital_id,
            f"{doctor_id}@general.test",
            "",
            first_name,
            "Test",
            StaffRole.DOCTOR.value,
            is_available=available,
            user_id=doctor_id,
        )

    def add_staff(self, user_id: str, role: StaffRole) -> StaffRecord:
        return self.staff.create(self.hospital_id, f"{user_id}@general.test", "", user_id.title(), "Test", role.value, user_id=user_id)

    def add_appointment(self, priority: str = "NORMAL", patient_id: str = "pat-1") -> AppointmentRecord:
        self._appt_seq += 1
        return self.appointments.create(self.hospital_id, patient_id, None, priority, "headache", f"APT-20240506-{self._appt_seq:06d}")

    def ready_appointment(self, priority: str = "NORMAL") -> AppointmentRecord:
        appt = self.add_appointment(priority)
        return self.engine.record_vitals(appt.id)


@pytest.fixture
def world() -> World:
    return World()
