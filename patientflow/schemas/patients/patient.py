# patientflow/schemas/patient.py
from pydantic import BaseModel, Field, validator
from typing import Optional
from datetime import date

from ..common.common import clean_email, clean_phone


class PatientCreate(BaseModel):
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    date_of_birth: date = Field(..., description="YYYY-MM-DD")
    gender: str = Field(..., description="male, female or other")
    phone: str
    email: Optional[str] = None
    address: Optional[str] = Field(None, max_length=255)
    blood_group: Optional[str] = Field(None, max_length=5)
    genotype: Optional[str] = Field(None, max_length=5)
    allergies: Optional[str] = None
    medical_history: Optional[str] = None
    emergency_contact_name: Optional[str] = Field(None, max_length=100)
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = Field(None, max_length=30)

    @validator('first_name', 'last_name')
    def strip_names(cls, v):
        return v.strip()

    @validator('gender')
    def validate_gender(cls, v):
        v = v.strip().lower()
        if v not in ('male', 'female', 'other'):
            raise ValueError('Gender must be male, female or other')
        return v

    @validator('date_of_birth')
    def validate_date_of_birth(cls, v):
        if v > date.today():
            raise ValueError('Date of birth cannot be in the future')
        if (date.today() - v).days > 43800:  # 120 years
            raise ValueError('Date of birth is too far in the past')
        return v

    @validator('phone', 'emergency_contact_phone')
    def validate_phone(cls, v):
        return clean_phone(v)

    @validator('email')
    def validate_email(cls, v):
        return clean_email(v)
