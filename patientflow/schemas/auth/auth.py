# patientflow/schemas/auth.py
from pydantic import BaseModel, Field, validator
from typing import Optional

from ..common.common import clean_email, clean_phone


class HospitalIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=200, description="Hospital name")
    email: str = Field(..., description="Hospital contact email")
    phone: str = Field(..., description="Hospital phone number")
    address: Optional[str] = Field(None, max_length=255)
    registration_number: Optional[str] = Field(None, max_length=100)

    @validator('email')
    def validate_email(cls, v):
        return clean_email(v)

    @validator('phone')
    def validate_phone(cls, v):
        return clean_phone(v)


class AdminIn(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: str
    password: str = Field(..., min_length=8, description="At least 8 characters")
    phone: Optional[str] = None

    @validator('email')
    def validate_email(cls, v):
        return clean_email(v)

    @validator('phone')
    def validate_phone(cls, v):
        return clean_phone(v)


class HospitalRegisterRequest(BaseModel):
    hospital: HospitalIn
    admin: AdminIn


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @validator('email')
    def validate_email(cls, v):
        return v.strip().lower()


class StaffCreateRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: str = Field(..., description="ADMIN, NURSE, DOCTOR, PHARMACIST or RECEPTIONIST")
    phone: Optional[str] = None
    specialization: Optional[str] = Field(None, max_length=100)

    @validator('email')
    def validate_email(cls, v):
        return clean_email(v)

    @validator('role')
    def validate_role(cls, v):
        return v.strip().upper()
