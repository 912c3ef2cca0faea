# Models package (re-export feature modules for stable imports)
from .users.hospital import Hospital
from .users.staff import StaffUser
from .users.session import StaffSession
from .health.patient import Patient
from .health.appointment import Appointment
from .health.vitals import VitalsRecord
from .health.consultation import ConsultationNote, VoiceTranscript
from .health.prescription import Prescription, PrescriptionItem
from .audit.audit_log import AuditLog

__all__ = [
    "Hospital",
    "StaffUser",
    "StaffSession",
    "Patient",
    "Appointment",
    "VitalsRecord",
    "ConsultationNote",
    "VoiceTranscript",
    "Prescription",
    "PrescriptionItem",
    "AuditLog",
]
