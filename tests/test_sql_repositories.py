from datetime import date, datetime, timedelta

import pytest
from sqlmodel import Session

from patientflow.application.ports.consultation_repo import DraftNotes, PrescriptionItemDto
from patientflow.application.services.queue_engine import QueueEngine
from patientflow.database import build_engine, create_db_and_tables
from patientflow.exceptions import AlreadyPrescribedError, ConflictError
from patientflow.infrastructure.audit.sql_audit_logger import SqlAuditLogger
from patientflow.infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from patientflow.infrastructure.persistence.sqlalchemy.repositories.consultation_repository_sql import SqlConsultationRepository
from patientflow.infrastructure.persistence.sqlalchemy.repositories.patient_repository_sql import SqlPatientRepository
from patientflow.infrastructure.persistence.sqlalchemy.repositories.session_repository_sql import SqlSessionRepository
from patientflow.infrastructure.persistence.sqlalchemy.repositories.staff_repository_sql import SqlHospitalRepository, SqlStaffRepository
from patientflow.infrastructure.persistence.sqlalchemy.repositories.vitals_repository_sql import SqlVitalsRepository


@pytest.fixture
def session():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    with Session(engine) as s:
        yield s


@pytest.fixture
def hospital(session):
    return SqlHospitalRepository(session).create("General", "info@general.test", "+2348000000001", None, "GEN-1")


@pytest.fixture
def patient(session, hospital):
    return SqlPatientRepository(session).create(hospital.id, "P000001", None, {
        "first_name": "Amaka",
        "last_name": "Nwosu",
        "date_of_birth": date(1990, 1, 15),
        "gender": "female",
        "phone": "+2348011112222",
    })


def make_appointment(session, hospital, patient, number="APT-20240506-AAAAAA", priority="NORMAL"):
    return SqlAppointmentsRepository(session).create(hospital.id, patient.id, None, priority, "cough", number)


def test_appointment_compare_and_set_checks_version(session, hospital, patient):
    repo = SqlAppointmentsRepository(session)
    appt = make_appointment(session, hospital, patient)
    assert appt.version == 1

    updated = repo.compare_and_set(appt.id, 1, {"priority": "URGENT"})
    assert updated.version == 2
    assert updated.priority == "URGENT"

    assert repo.compare_and_set(appt.id, 1, {"priority": "EMERGENCY"}) is None
    assert repo.get(appt.id).priority == "URGENT"


def test_staff_compare_and_set_bumps_version(session, hospital):
    repo = SqlStaffRepository(session)
    doctor = repo.create(hospital.id, "doc@general.test", "x", "Ify", "Eze", "DOCTOR", is_available=True)

    bumped = repo.compare_and_set(doctor.id, doctor.version, {})
    assert bumped.version == doctor.version + 1
    assert repo.compare_and_set(doctor.id, doctor.version, {"is_available": False}) is None
    assert repo.get_by_email("doc@general.test").is_available is True

    assert [d.id for d in repo.list_doctors(hospital.id, available_only=True)] == [doctor.id]


def test_engine_flow_against_sqlite(session, hospital, patient):
    staff = SqlStaffRepository(session)
    doctor = staff.create(hospital.id, "doc@general.test", "x", "Ify", "Eze", "DOCTOR", is_available=True)
    engine = QueueEngine(SqlAppointmentsRepository(session), staff, SqlAuditLogger(session))
    appt = make_appointment(session, hospital, patient)

    engine.record_vitals(appt.id)
    engine.assign_doctor(appt.id)
    engine.start_consultation(appt.id, doctor.id)
    assert staff.get(doctor.id).current_appointment_id == appt.id

    queue = engine.list_queue(doctor.id)
    assert queue.stats.in_progress == 1

    done = engine.complete_consultation(appt.id, doctor.id, has_pending_prescription=False)
    assert done.status == "COMPLETED"
    assert staff.get(doctor.id).current_appointment_id is None
    assert engine.list_queue(doctor.id).stats.completed_today == 1

    audit = SqlAuditLogger(session).list_recent(hospital.id)
    assert {e.action for e in audit} >= {"VITALS_RECORDED", "DOCTOR_ASSIGNED", "CONSULTATION_STARTED", "CONSULTATION_COMPLETED"}
    assert SqlAuditLogger(session).list_recent(hospital.id, action="DOCTOR_ASSIGNED")[0].details["automatic"] is True


def test_recent_activity_follows_latest_event(session, hospital, patient):
    repo = SqlAppointmentsRepository(session)
    doctor = SqlStaffRepository(session).create(hospital.id, "doc@general.test", "x", "Ify", "Eze", "DOCTOR", is_available=True)
    old = make_appointment(session, hospital, patient)
    new = make_appointment(session, hospital, patient, number="APT-20240506-BBBBBB")
    assert [a.id for a in repo.list_recent_activity(hospital.id, limit=1)] == [new.id]

    # edits without an event timestamp do not count as activity
    repo.compare_and_set(old.id, old.version, {"priority": "URGENT"})
    assert [a.id for a in repo.list_recent_activity(hospital.id, limit=1)] == [new.id]

    later = datetime.utcnow() + timedelta(minutes=5)
    moved = repo.compare_and_set(old.id, old.version + 1, {"assigned_at": later, "assigned_doctor_id": doctor.id})
    assert moved.last_activity_at == later
    assert [a.id for a in repo.list_recent_activity(hospital.id, limit=1)] == [old.id]

    repo.compare_and_set(old.id, moved.version, {"status": "CANCELLED", "assigned_doctor_id": None, "cancelled_doctor_id": doctor.id, "cancelled_at": later})
    assert [a.id for a in repo.list_recent_activity(hospital.id, doctor_id=doctor.id)] == [old.id]


def test_prescription_is_unique_per_appointment(session, hospital, patient):
    appt = make_appointment(session, hospital, patient)
    repo = SqlConsultationRepository(session)
    items = [
        PrescriptionItemDto("Paracetamol", "500mg", "tds", "5 days", "15 tablets"),
        PrescriptionItemDto("ORS", "1 sachet", "after each stool", "3 days", "6 sachets", "dissolve in 1L water"),
    ]

    rx = repo.create_prescription(appt.id, None, items)
    assert [i.medication_name for i in rx.items] == ["Paracetamol", "ORS"]

    with pytest.raises(AlreadyPrescribedError):
        repo.create_prescription(appt.id, None, items[:1])
    assert len(repo.get_prescription(appt.id).items) == 2

    assert set(repo.get_prescriptions([appt.id, "missing"])) == {appt.id}
    assert repo.get_prescriptions([]) == {}


def test_notes_and_transcripts(session, hospital, patient):
    appt = make_appointment(session, hospital, patient)
    repo = SqlConsultationRepository(session)

    repo.save_note(appt.id, DraftNotes(diagnosis="Flu"), "doc-1")
    repo.save_note(appt.id, DraftNotes(diagnosis="Flu", treatment_plan="Fluids"), "doc-1")
    note = repo.get_note(appt.id)
    assert note.treatment_plan == "Fluids"

    repo.save_transcript(appt.id, "first", None, 0.0, "doc-1")
    assert repo.latest_transcript(appt.id).raw_transcript == "first"


def test_vitals_round_trip(session, hospital, patient):
    appt = make_appointment(session, hospital, patient)
    repo = SqlVitalsRepository(session)
    repo.create(appt.id, "nurse-1", {"blood_pressure_systolic": 120, "blood_pressure_diastolic": 80, "temperature": 36.8})
    vitals = repo.get_for_appointment(appt.id)
    assert vitals.blood_pressure_systolic == 120
    assert vitals.temperature == 36.8


def test_patient_number_collision_is_conflict(session, hospital, patient):
    repo = SqlPatientRepository(session)
    with pytest.raises(ConflictError):
        repo.create(hospital.id, patient.patient_id_number, None, {
            "first_name": "Other",
            "last_name": "Person",
            "date_of_birth": date(1980, 3, 3),
            "gender": "male",
            "phone": "+2348033334444",
        })
    items, total = repo.search(hospital.id, "nwo", 0, 10)
    assert total == 1
    assert items[0].id == patient.id


def test_sessions(session, hospital):
    user = SqlStaffRepository(session).create(hospital.id, "admin@general.test", "x", "A", "B", "ADMIN")
    repo = SqlSessionRepository(session)
    repo.create(user.id, "tok-1", datetime.utcnow() + timedelta(hours=1))

    assert repo.get_by_token("tok-1").user_id == user.id
    assert repo.delete_by_token("tok-1") is True
    assert repo.get_by_token("tok-1") is None
    assert repo.delete_by_token("tok-1") is False
