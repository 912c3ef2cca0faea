from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional
import logging
import math

from ..ports.patient_repo import PatientRecord, PatientRepository
from ...exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

GENDERS = ("male", "female", "other")
MAX_PAGE_SIZE = 100


@dataclass
class PatientPage:
    items: List[PatientRecord] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def next_patient_number(count: int) -> str:
    return f"P{count + 1:06d}"


@dataclass
class PatientService:
    repo: PatientRepository

    def register_patient(self, hospital_id: str, registered_by: Optional[str], data: Dict[str, Any]) -> PatientRecord:
        fields = dict(data)
        for name in ("first_name", "last_name", "phone"):
            if not (fields.get(name) or "").strip():
                raise ValidationError(f"{name} is required")

        gender = (fields.get("gender") or "").lower()
        if gender not in GENDERS:
            raise ValidationError(f"gender must be one of {', '.join(GENDERS)}")
        fields["gender"] = gender

        dob = fields.get("date_of_birth")
        if not isinstance(dob, date):
            raise ValidationError("date_of_birth is required")
        if dob > date.today():
            raise ValidationError("date_of_birth cannot be in the future")

        number = next_patient_number(self.repo.count_all())
        patient = self.repo.create(hospital_id, number, registered_by, fields)
        logger.info(f"Registered patient {patient.patient_id_number} for hospital {hospital_id}")
        return patient

    def search_patients(self, hospital_id: str, search: Optional[str] = None, page: int = 1, limit: int = 10) -> PatientPage:
        page = max(1, page)
        limit = min(max(1, limit), MAX_PAGE_SIZE)
        term = search.strip() if search else None
        items, total = self.repo.search(hospital_id, term or None, (page - 1) * limit, limit)
        return PatientPage(items=items, page=page, limit=limit, total=total)

    def get_patient(self, hospital_id: str, patient_id: str) -> PatientRecord:
        patient = self.repo.get(patient_id)
        if not patient or patient.hospital_id != hospital_id:
            raise NotFoundError("Patient not found")
        return patient
