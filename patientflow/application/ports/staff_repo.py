from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from datetime import datetime


@dataclass
class StaffRecord:
    id: str
    hospital_id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    is_available: bool
    current_appointment_id: Optional[str]
    version: int
    created_at: datetime
    password_hash: str = ""
    phone: Optional[str] = None
    specialization: Optional[str] = None
    last_login: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_busy(self) -> bool:
        return self.current_appointment_id is not None


@dataclass
class HospitalRecord:
    id: str
    name: str
    email: str
    phone: str
    address: Optional[str]
    registration_number: Optional[str]
    is_active: bool
    created_at: datetime


class StaffRepository:
    def get(self, user_id: str) -> Optional[StaffRecord]:
        ...

    def get_by_email(self, email: str) -> Optional[StaffRecord]:
        ...

    def create(self, hospital_id: str, email: str, password_hash: str, first_name: str, last_name: str, role: str, phone: Optional[str] = None, specialization: Optional[str] = None, is_available: bool = False) -> StaffRecord:
        ...

    def list_doctors(self, hospital_id: str, available_only: bool = False) -> List[StaffRecord]:
        """Active doctors of a hospital, ordered by first name."""
        ...

    def list_staff(self, hospital_id: str, role: Optional[str] = None) -> List[StaffRecord]:
        ...

    def compare_and_set(self, user_id: str, expected_version: int, changes: Dict[str, Any]) -> Optional[StaffRecord]:
        ...

    def set_last_login(self, user_id: str, when: datetime) -> None:
        ...


class HospitalRepository:
    def get(self, hospital_id: str) -> Optional[HospitalRecord]:
        ...

    def find_existing(self, email: str, registration_number: Optional[str]) -> Optional[HospitalRecord]:
        ...

    def create(self, name: str, email: str, phone: str, address: Optional[str], registration_number: Optional[str]) -> HospitalRecord:
        ...
