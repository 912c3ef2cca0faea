from datetime import date

import pytest

from patientflow.application.ports.consultation_repo import PrescriptionItemDto
from patientflow.application.services.patient_service import PatientService
from patientflow.application.services.pharmacy_service import PharmacyService
from patientflow.exceptions import InvalidStateError, NotFoundError, ValidationError


def make_service(world):
    return PharmacyService(world.engine, world.appointments, world.patients, world.consultations, clock=world.clock)


def register(world, first_name):
    return PatientService(world.patients).register_patient(world.hospital_id, "nurse-1", {
        "first_name": first_name,
        "last_name": "Okafor",
        "date_of_birth": date(1985, 6, 1),
        "gender": "male",
        "phone": "+2348055556666",
    })


def prescribe(world, medication, patient_id="pat-1", priority="NORMAL"):
    appt = world.engine.record_vitals(world.add_appointment(priority, patient_id=patient_id).id)
    appt = world.engine.assign_doctor(appt.id, doctor_id="doc-1")
    world.engine.start_consultation(appt.id, "doc-1")
    world.consultations.create_prescription(appt.id, "doc-1", [
        PrescriptionItemDto(medication, "500mg", "bd", "5 days", "10 tablets"),
    ])
    return world.engine.complete_consultation(appt.id, "doc-1", has_pending_prescription=True)


@pytest.fixture
def pharmacy(world):
    world.add_doctor("doc-1")
    return make_service(world)


def test_lists_pending_and_dispensed(world, pharmacy):
    emeka = register(world, "Emeka")
    first = prescribe(world, "Amoxicillin", patient_id=emeka.id)
    world.clock.advance(5)
    second = prescribe(world, "Ibuprofen", priority="URGENT")
    pharmacy.dispense(world.hospital_id, first.id, "pharm-1")

    everything = pharmacy.list_prescriptions(world.hospital_id)
    assert [l.appointment.id for l in everything] == [second.id, first.id]
    assert [l.status for l in everything] == ["pending", "dispensed"]
    assert everything[1].patient.full_name == "Emeka Okafor"

    pending = pharmacy.list_prescriptions(world.hospital_id, status="pending")
    assert [l.appointment.id for l in pending] == [second.id]

    found = pharmacy.list_prescriptions(world.hospital_id, search="emeka")
    assert [l.appointment.id for l in found] == [first.id]
    assert pharmacy.list_prescriptions(world.hospital_id, search="IBU")[0].appointment.id == second.id


def test_prescriptions_without_handoff_are_not_listed(world, pharmacy):
    appt = world.engine.assign_doctor(world.ready_appointment().id)
    world.engine.start_consultation(appt.id, "doc-1")
    world.consultations.create_prescription(appt.id, "doc-1", [
        PrescriptionItemDto("Zinc", "20mg", "daily", "10 days", "10 tablets"),
    ])
    assert pharmacy.list_prescriptions(world.hospital_id) == []


def test_stats(world, pharmacy):
    dispensed = prescribe(world, "Amoxicillin")
    prescribe(world, "Ibuprofen", priority="EMERGENCY")
    prescribe(world, "Paracetamol")
    pharmacy.dispense(world.hospital_id, dispensed.id, "pharm-1")

    stats = pharmacy.stats(world.hospital_id)

    assert stats.pending == 2
    assert stats.dispensed == 1
    assert stats.high_priority == 1
    assert stats.dispensed_today == 1


def test_dispense_rules(world, pharmacy):
    appt = prescribe(world, "Amoxicillin")

    with pytest.raises(NotFoundError):
        pharmacy.dispense("hosp-2", appt.id, "pharm-1")

    done = pharmacy.dispense(world.hospital_id, appt.id, "pharm-1")
    assert done.status == "COMPLETED"
    assert "APPOINTMENT_FULFILLED" in world.audit.actions()

    with pytest.raises(InvalidStateError):
        pharmacy.dispense(world.hospital_id, appt.id, "pharm-1")


def test_unknown_status_filter_rejected(world, pharmacy):
    with pytest.raises(ValidationError):
        pharmacy.list_prescriptions(world.hospital_id, status="lost")
