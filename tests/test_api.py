import asyncio
import json
import uuid

import pytest
from fastapi.testclient import TestClient

from patientflow.main import app
from patientflow.routers.deps import get_speech_provider, login_rate_limiter


ADMIN_PASSWORD = "AdminPass123"
STAFF_PASSWORD = "StaffPass123"


def event_loop_running():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


class CannedSpeechProvider:
    def __init__(self):
        self.loop_running = []

    def transcribe(self, audio_bytes, mime_type):
        self.loop_running.append(event_loop_running())
        return "Likely malaria. Start artemether-lumefantrine."

    def extract(self, transcript):
        return json.dumps({"diagnosis": "Malaria", "treatment_plan": "ACT for 3 days", "confidence": 0.8})


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def clean_state():
    yield
    app.dependency_overrides.clear()
    login_rate_limiter.reset()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def login(client, email, password):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return bearer(r.json()["data"]["token"])


@pytest.fixture
def hospital(client):
    """A fresh hospital with an admin, a nurse, a doctor and a pharmacist, all logged in."""
    tag = uuid.uuid4().hex[:8]
    r = client.post("/api/auth/hospital/register", json={
        "hospital": {
            "name": f"Hospital {tag}",
            "email": f"info-{tag}@hospital.test",
            "phone": "+234 800 000 0001",
            "registration_number": f"REG-{tag}",
        },
        "admin": {
            "first_name": "Ada",
            "last_name": "Admin",
            "email": f"admin-{tag}@hospital.test",
            "password": ADMIN_PASSWORD,
        },
    })
    assert r.status_code == 201, r.text
    admin = login(client, f"admin-{tag}@hospital.test", ADMIN_PASSWORD)

    users = {"admin": admin}
    for role in ("nurse", "doctor", "pharmacist"):
        email = f"{role}-{tag}@hospital.test"
        r = client.post("/api/admin/staff", headers=admin, json={
            "email": email,
            "password": STAFF_PASSWORD,
            "first_name": role.title(),
            "last_name": tag,
            "role": role,
        })
        assert r.status_code == 201, r.text
        users[f"{role}_id"] = r.json()["data"]["user"]["id"]
        users[role] = login(client, email, STAFF_PASSWORD)
    users["tag"] = tag
    return users


def register_patient(client, headers, first_name="Chidi"):
    r = client.post("/api/patients", headers=headers, json={
        "first_name": first_name,
        "last_name": "Okeke",
        "date_of_birth": "1988-02-29",
        "gender": "male",
        "phone": "+2348012345678",
    })
    assert r.status_code == 201, r.text
    return r.json()["data"]["patient"]


def ready_for_doctor(client, hospital, priority="NORMAL"):
    patient = register_patient(client, hospital["nurse"])
    r = client.post("/api/appointments", headers=hospital["nurse"], json={"patient_id": patient["id"], "priority": priority})
    assert r.status_code == 201, r.text
    appt_id = r.json()["data"]["appointment"]["id"]
    r = client.post(f"/api/appointments/{appt_id}/vitals", headers=hospital["nurse"], json={
        "blood_pressure_systolic": 130,
        "blood_pressure_diastolic": 85,
        "temperature": 38.9,
    })
    assert r.status_code == 201, r.text
    r = client.post(f"/api/appointments/{appt_id}/assign", headers=hospital["nurse"])
    assert r.status_code == 200, r.text
    assert r.json()["data"]["doctor"]["id"] == hospital["doctor_id"]
    return appt_id


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"
    assert r.json()["voice_ai"] is False


def test_full_patient_journey(client, hospital):
    appt_id = ready_for_doctor(client, hospital)
    doctor = hospital["doctor"]

    queue = client.get("/api/appointments/queue", headers=doctor).json()["data"]
    assert [a["id"] for a in queue["appointments"]] == [appt_id]
    assert queue["stats"]["pending"] == 1

    r = client.post(f"/api/consultations/{appt_id}/start", headers=doctor)
    assert r.json()["data"]["appointment"]["status"] == "IN_CONSULTATION"

    r = client.put(f"/api/consultations/{appt_id}/notes", headers=doctor, json={"diagnosis": "Malaria", "treatment_plan": "ACT"})
    assert r.status_code == 200, r.text

    r = client.post(f"/api/consultations/{appt_id}/prescription", headers=doctor, json={"items": [{
        "medication_name": "Coartem",
        "dosage": "80/480mg",
        "frequency": "twice daily",
        "duration": "3 days",
        "quantity": "6 tablets",
    }]})
    assert r.status_code == 201, r.text

    r = client.post(f"/api/consultations/{appt_id}/complete", headers=doctor)
    assert r.json()["data"]["appointment"]["status"] == "PENDING_PHARMACY"

    r = client.post(f"/api/appointments/{appt_id}/fulfil", headers=hospital["pharmacist"])
    assert r.json()["data"]["appointment"]["status"] == "COMPLETED"

    detail = client.get(f"/api/appointments/{appt_id}", headers=hospital["admin"]).json()["data"]["appointment"]
    assert detail["consultation_notes"]["diagnosis"] == "Malaria"
    assert detail["prescription"]["items"][0]["medication_name"] == "Coartem"
    assert detail["vitals"]["temperature"] == 38.9

    history = client.get(f"/api/appointments/{appt_id}/history", headers=hospital["nurse"]).json()["data"]["history"]
    assert [h["kind"] for h in history] == ["intake", "record", "assignment", "update", "approval", "status"]

    feed = client.get("/api/notifications", headers=doctor).json()["data"]
    assert feed["count"] == 6


def test_second_prescription_conflicts(client, hospital):
    appt_id = ready_for_doctor(client, hospital)
    doctor = hospital["doctor"]
    client.post(f"/api/consultations/{appt_id}/start", headers=doctor)
    body = {"items": [{"medication_name": "Zinc", "dosage": "20mg", "frequency": "daily", "duration": "10 days", "quantity": "10"}]}

    assert client.post(f"/api/consultations/{appt_id}/prescription", headers=doctor, json=body).status_code == 201
    r = client.post(f"/api/consultations/{appt_id}/prescription", headers=doctor, json=body)

    assert r.status_code == 409
    assert r.json() == {"success": False, "data": None, "error": r.json()["error"], "code": "ALREADY_PRESCRIBED"}


def test_pharmacy_desk(client, hospital):
    appt_id = ready_for_doctor(client, hospital, priority="URGENT")
    doctor = hospital["doctor"]
    client.post(f"/api/consultations/{appt_id}/start", headers=doctor)
    client.put(f"/api/consultations/{appt_id}/notes", headers=doctor, json={"diagnosis": "Otitis media"})
    client.post(f"/api/consultations/{appt_id}/prescription", headers=doctor, json={"items": [{
        "medication_name": "Amoxicillin",
        "dosage": "500mg",
        "frequency": "three times daily",
        "duration": "7 days",
        "quantity": "21 capsules",
    }]})
    client.post(f"/api/consultations/{appt_id}/complete", headers=doctor)
    pharmacist = hospital["pharmacist"]

    r = client.get("/api/prescriptions", headers=pharmacist, params={"status": "pending", "search": "amoxi"})
    assert r.status_code == 200, r.text
    listed = r.json()["data"]["prescriptions"]
    assert [p["appointment"]["id"] for p in listed] == [appt_id]
    assert listed[0]["status"] == "pending"
    assert listed[0]["patient"]["full_name"] == "Chidi Okeke"

    stats = client.get("/api/prescriptions/stats", headers=pharmacist).json()["data"]
    assert stats == {"pending": 1, "dispensed": 0, "high_priority": 1, "dispensed_today": 0}

    r = client.post(f"/api/prescriptions/{appt_id}/dispense", headers=pharmacist)
    assert r.json()["data"]["appointment"]["status"] == "COMPLETED"
    assert client.post(f"/api/prescriptions/{appt_id}/dispense", headers=pharmacist).status_code == 409

    stats = client.get("/api/prescriptions/stats", headers=pharmacist).json()["data"]
    assert stats["dispensed"] == 1
    assert stats["dispensed_today"] == 1
    assert client.get("/api/prescriptions", headers=doctor).status_code == 403


def test_complete_without_diagnosis_is_rejected(client, hospital):
    appt_id = ready_for_doctor(client, hospital)
    client.post(f"/api/consultations/{appt_id}/start", headers=hospital["doctor"])

    r = client.post(f"/api/consultations/{appt_id}/complete", headers=hospital["doctor"], json={"referral": True})

    assert r.status_code == 400
    assert r.json()["code"] == "VALIDATION_ERROR"


def test_voice_notes_with_provider(client, hospital):
    provider = CannedSpeechProvider()
    app.dependency_overrides[get_speech_provider] = lambda: provider
    appt_id = ready_for_doctor(client, hospital)
    client.post(f"/api/consultations/{appt_id}/start", headers=hospital["doctor"])

    r = client.post(
        f"/api/consultations/{appt_id}/voice",
        headers=hospital["doctor"],
        files={"audio": ("note.webm", b"\x1aE\xdf\xa3fake", "audio/webm")},
    )

    assert r.status_code == 200, r.text
    # the provider call ran in a worker thread, off the event loop
    assert provider.loop_running == [False]
    data = r.json()["data"]
    assert data["proposal"]["draft"]["diagnosis"] == "Malaria"
    assert data["proposal"]["parsed"] is True
    notes = client.get(f"/api/consultations/{appt_id}/notes", headers=hospital["doctor"]).json()["data"]
    assert notes["notes"] is None
    assert notes["latest_transcript"]["id"] == data["transcript_id"]


def test_voice_without_provider_is_unavailable(client, hospital):
    appt_id = ready_for_doctor(client, hospital)
    client.post(f"/api/consultations/{appt_id}/start", headers=hospital["doctor"])

    r = client.post(
        f"/api/consultations/{appt_id}/voice",
        headers=hospital["doctor"],
        files={"audio": ("note.webm", b"data", "audio/webm")},
    )
    assert r.status_code == 503
    assert r.json()["code"] == "SERVICE_UNAVAILABLE"

    r = client.post(
        f"/api/consultations/{appt_id}/voice",
        headers=hospital["doctor"],
        files={"audio": ("note.txt", b"data", "text/plain")},
    )
    assert r.status_code == 400


def test_nurse_cannot_start_consultation(client, hospital):
    appt_id = ready_for_doctor(client, hospital)
    r = client.post(f"/api/consultations/{appt_id}/start", headers=hospital["nurse"])
    assert r.status_code == 403
    assert r.json()["code"] == "NOT_A_DOCTOR"


def test_assign_without_available_doctor(client, hospital):
    r = client.put("/api/doctors/me/availability", headers=hospital["doctor"], json={"is_available": False})
    assert r.status_code == 200, r.text
    patient = register_patient(client, hospital["nurse"])
    appt_id = client.post("/api/appointments", headers=hospital["nurse"], json={"patient_id": patient["id"]}).json()["data"]["appointment"]["id"]
    client.post(f"/api/appointments/{appt_id}/vitals", headers=hospital["nurse"], json={"temperature": 37.0})

    r = client.post(f"/api/appointments/{appt_id}/assign", headers=hospital["nurse"])

    assert r.status_code == 409
    assert r.json()["code"] == "NO_AVAILABLE_DOCTOR"
    detail = client.get(f"/api/appointments/{appt_id}", headers=hospital["nurse"]).json()["data"]["appointment"]
    assert detail["status"] == "VITALS_RECORDED"


def test_doctor_board(client, hospital):
    board = client.get("/api/doctors/available", headers=hospital["nurse"]).json()["data"]
    assert board["count"] == 1
    assert board["available_count"] == 1
    assert board["doctors"][0]["id"] == hospital["doctor_id"]


def test_hospitals_are_isolated(client, hospital):
    patient = register_patient(client, hospital["nurse"])
    other = client.post("/api/auth/hospital/register", json={
        "hospital": {"name": "Other", "email": f"other-{hospital['tag']}@hospital.test", "phone": "+2348000000009"},
        "admin": {"first_name": "Obi", "last_name": "Other", "email": f"other-admin-{hospital['tag']}@hospital.test", "password": ADMIN_PASSWORD},
    })
    assert other.status_code == 201, other.text
    intruder = login(client, f"other-admin-{hospital['tag']}@hospital.test", ADMIN_PASSWORD)

    assert client.get(f"/api/patients/{patient['id']}", headers=intruder).status_code == 404
    r = client.post("/api/appointments", headers=intruder, json={"patient_id": patient["id"]})
    assert r.status_code == 404


def test_auth_errors(client, hospital):
    client.cookies.clear()
    r = client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json()["success"] is False

    r = client.post("/api/auth/login", json={"email": f"admin-{hospital['tag']}@hospital.test", "password": "wrong-password"})
    assert r.status_code == 401
    assert r.json()["code"] == "UNAUTHORIZED"

    r = client.get("/api/admin/staff", headers=hospital["nurse"])
    assert r.status_code == 403

    me = client.get("/api/auth/me", headers=hospital["admin"]).json()["data"]
    assert me["user"]["role"] == "ADMIN"
    assert "password_hash" not in me["user"]


def test_logout_revokes_token(client, hospital):
    assert client.post("/api/auth/logout", headers=hospital["doctor"]).status_code == 200
    assert client.get("/api/auth/me", headers=hospital["doctor"]).status_code == 401
    board = client.get("/api/doctors/available", headers=hospital["nurse"]).json()["data"]
    assert board["available_count"] == 0


def test_validation_envelope(client, hospital):
    r = client.post("/api/patients", headers=hospital["nurse"], json={"first_name": "A"})
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert any(d["field"] == "last_name" for d in body["details"])


def test_patient_listing(client, hospital):
    register_patient(client, hospital["nurse"], first_name="Zainab")
    r = client.get("/api/patients", headers=hospital["nurse"], params={"search": "zainab", "limit": 5})
    data = r.json()["data"]
    assert data["pagination"]["total"] == 1
    assert data["patients"][0]["full_name"] == "Zainab Okeke"


def test_cancel_and_audit_log(client, hospital):
    appt_id = ready_for_doctor(client, hospital)
    r = client.post(f"/api/appointments/{appt_id}/cancel", headers=hospital["admin"])
    assert r.json()["data"]["appointment"]["status"] == "CANCELLED"

    r = client.post(f"/api/appointments/{appt_id}/cancel", headers=hospital["admin"])
    assert r.status_code == 409

    logs = client.get("/api/admin/audit-logs", headers=hospital["admin"], params={"action": "APPOINTMENT_CANCELLED"}).json()["data"]
    assert logs["count"] == 1
    assert logs["logs"][0]["entity_id"] == appt_id
