from dataclasses import dataclass
from typing import Any, Dict, Optional
from datetime import datetime


@dataclass
class VitalsDto:
    id: str
    appointment_id: str
    recorded_by: Optional[str]
    recorded_at: datetime
    blood_pressure_systolic: Optional[int] = None
    blood_pressure_diastolic: Optional[int] = None
    temperature: Optional[float] = None
    pulse_rate: Optional[int] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[int] = None
    weight: Optional[float] = None
    height: Optional[float] = None
    pain_level: Optional[int] = None
    symptoms_description: Optional[str] = None
    nurse_notes: Optional[str] = None


class VitalsRepository:
    def create(self, appointment_id: str, recorded_by: Optional[str], fields: Dict[str, Any]) -> VitalsDto:
        ...

    def get_for_appointment(self, appointment_id: str) -> Optional[VitalsDto]:
        ...
