# patientflow/schemas/doctor.py
from pydantic import BaseModel


class AvailabilityUpdate(BaseModel):
    is_available: bool
