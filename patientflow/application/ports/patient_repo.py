from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, date


@dataclass
class PatientRecord:
    id: str
    hospital_id: str
    patient_id_number: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str
    phone: str
    status: str
    created_at: datetime
    email: Optional[str] = None
    address: Optional[str] = None
    blood_group: Optional[str] = None
    genotype: Optional[str] = None
    allergies: Optional[str] = None
    medical_history: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    registered_by: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class PatientRepository:
    def create(self, hospital_id: str, patient_id_number: str, registered_by: Optional[str], fields: Dict[str, Any]) -> PatientRecord:
        ...

    def get(self, patient_id: str) -> Optional[PatientRecord]:
        ...

    def get_many(self, patient_ids: List[str]) -> Dict[str, PatientRecord]:
        ...

    def search(self, hospital_id: str, search: Optional[str], offset: int, limit: int) -> Tuple[List[PatientRecord], int]:
        ...

    def count_all(self) -> int:
        ...
