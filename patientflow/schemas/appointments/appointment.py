# patientflow/schemas/appointment.py
from pydantic import BaseModel, Field, validator
from typing import Optional

PRIORITIES = ('NORMAL', 'URGENT', 'EMERGENCY')


def _clean_priority(v):
    if v is None:
        return v
    v = v.strip().upper()
    if v not in PRIORITIES:
        raise ValueError(f'Priority must be one of {", ".join(PRIORITIES)}')
    return v


class AppointmentCreate(BaseModel):
    patient_id: str
    priority: str = 'NORMAL'
    chief_complaint: Optional[str] = Field(None, max_length=2000)

    @validator('priority')
    def validate_priority(cls, v):
        return _clean_priority(v)


class AppointmentUpdate(BaseModel):
    priority: Optional[str] = None
    chief_complaint: Optional[str] = Field(None, max_length=2000)
    status: Optional[str] = Field(None, description="Only CANCELLED is accepted")

    @validator('priority')
    def validate_priority(cls, v):
        return _clean_priority(v)

    @validator('status')
    def validate_status(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        if v != 'CANCELLED':
            raise ValueError('Status can only be set to CANCELLED')
        return v


class VitalsCreate(BaseModel):
    blood_pressure_systolic: Optional[int] = Field(None, ge=50, le=300)
    blood_pressure_diastolic: Optional[int] = Field(None, ge=20, le=200)
    temperature: Optional[float] = Field(None, ge=30, le=45, description="Celsius")
    pulse_rate: Optional[int] = Field(None, ge=20, le=250)
    respiratory_rate: Optional[int] = Field(None, ge=4, le=80)
    oxygen_saturation: Optional[int] = Field(None, ge=50, le=100)
    weight: Optional[float] = Field(None, gt=0, le=500, description="kg")
    height: Optional[float] = Field(None, gt=0, le=300, description="cm")
    pain_level: Optional[int] = Field(None, ge=0, le=10)
    symptoms_description: Optional[str] = None
    nurse_notes: Optional[str] = None

    @validator('blood_pressure_diastolic')
    def diastolic_below_systolic(cls, v, values):
        systolic = values.get('blood_pressure_systolic')
        if v is not None and systolic is not None and v >= systolic:
            raise ValueError('Diastolic pressure must be lower than systolic')
        return v


class AssignDoctorRequest(BaseModel):
    doctor_id: Optional[str] = Field(None, description="Omit to pick the least loaded available doctor")


class ReassignDoctorRequest(BaseModel):
    doctor_id: str
