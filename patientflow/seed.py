"""
Seed a development database with a test hospital and demo staff accounts.

    python -m patientflow.seed
"""
from datetime import date
import logging

from dotenv import load_dotenv
from sqlmodel import Session

from .config import settings
from .database import engine, create_db_and_tables
from .application.services.auth_service import AuthService
from .application.services.patient_service import PatientService
from .application.services.queue_engine import QueueEngine
from .application.status import StaffRole
from .infrastructure.auth.jwt_identity import JwtIdentityProvider
from .infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository
from .infrastructure.persistence.sqlalchemy.repositories.patient_repository_sql import SqlPatientRepository
from .infrastructure.persistence.sqlalchemy.repositories.session_repository_sql import SqlSessionRepository
from .infrastructure.persistence.sqlalchemy.repositories.staff_repository_sql import SqlHospitalRepository, SqlStaffRepository

logger = logging.getLogger(__name__)

HOSPITAL_EMAIL = "admin@testhospital.com"
ADMIN_PASSWORD = "TestPassword123"
STAFF_PASSWORD = "Welcome@123"

# (email, first name, last name, role, specialization)
DEMO_STAFF = [
    ("robert.jones@testhospital.com", "Robert", "Jones", StaffRole.NURSE, None),
    ("linda.davis@testhospital.com", "Linda", "Davis", StaffRole.NURSE, None),
    ("john.smith@testhospital.com", "John", "Smith", StaffRole.DOCTOR, "General Practice"),
    ("mary.johnson@testhospital.com", "Mary", "Johnson", StaffRole.DOCTOR, "Internal Medicine"),
    ("sarah.chen@testhospital.com", "Sarah", "Chen", StaffRole.DOCTOR, "Pediatrics"),
    ("david.moore@testhospital.com", "David", "Moore", StaffRole.PHARMACIST, None),
    ("jennifer.taylor@testhospital.com", "Jennifer", "Taylor", StaffRole.PHARMACIST, None),
]


def seed(session: Session) -> None:
    staff = SqlStaffRepository(session)
    hospitals = SqlHospitalRepository(session)
    sessions = SqlSessionRepository(session)
    engine_ = QueueEngine(appointments=SqlAppointmentsRepository(session), staff=staff)
    auth = AuthService(
        hospitals=hospitals,
        staff=staff,
        sessions=sessions,
        identity=JwtIdentityProvider(sessions),
        engine=engine_,
    )

    admin = staff.get_by_email(HOSPITAL_EMAIL)
    if admin:
        hospital_id = admin.hospital_id
        logger.info(f"Hospital already seeded ({hospital_id})")
    else:
        result = auth.register_hospital(
            name="Test General Hospital",
            email=HOSPITAL_EMAIL,
            phone="+2348000000001",
            address="123 Medical Drive, Lagos",
            registration_number="TGH-001",
            admin_email=HOSPITAL_EMAIL,
            admin_password=ADMIN_PASSWORD,
            admin_first_name="Admin",
            admin_last_name="User",
        )
        hospital_id = result.hospital.id
        logger.info(f"Created hospital: {result.hospital.name}")

    for email, first_name, last_name, role, specialization in DEMO_STAFF:
        if staff.get_by_email(email):
            continue
        user = auth.create_staff(
            hospital_id,
            email=email,
            password=STAFF_PASSWORD,
            first_name=first_name,
            last_name=last_name,
            role=role.value,
            specialization=specialization,
        )
        if role == StaffRole.DOCTOR:
            engine_.set_doctor_availability(user.id, True)
        logger.info(f"Created {role.value.lower()}: {email}")

    patients = PatientService(SqlPatientRepository(session))
    if patients.search_patients(hospital_id, limit=1).total == 0:
        patient = patients.register_patient(hospital_id, None, {
            "first_name": "Chinedu",
            "last_name": "Okafor",
            "date_of_birth": date(1985, 4, 12),
            "gender": "male",
            "phone": "+2348012345678",
            "address": "45 Allen Avenue, Ikeja",
            "blood_group": "O+",
            "genotype": "AA",
            "emergency_contact_name": "Ngozi Okafor",
            "emergency_contact_phone": "+2348098765432",
            "emergency_contact_relationship": "Spouse",
        })
        logger.info(f"Created patient: {patient.patient_id_number}")


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO), format=settings.LOG_FORMAT)
    logger.info("Starting database seed...")
    create_db_and_tables()
    with Session(engine) as session:
        seed(session)
    logger.info("Seed completed")


if __name__ == "__main__":
    main()
