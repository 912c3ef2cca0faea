# patientflow/schemas/consultation.py
from pydantic import BaseModel, Field, validator
from typing import List, Optional


class NotesUpdate(BaseModel):
    diagnosis: Optional[str] = None
    treatment_plan: Optional[str] = None
    doctor_notes: Optional[str] = None


class PrescriptionItemIn(BaseModel):
    medication_name: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    duration: str = Field(..., min_length=1, max_length=100)
    quantity: str = Field(..., min_length=1, max_length=50)
    instructions: Optional[str] = None

    @validator('medication_name', 'dosage', 'frequency', 'duration', 'quantity')
    def not_blank(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be blank')
        return v.strip()


class PrescriptionCreate(BaseModel):
    items: List[PrescriptionItemIn]

    @validator('items')
    def at_least_one(cls, v):
        if not v:
            raise ValueError('At least one prescription item is required')
        return v


class CompleteConsultationRequest(BaseModel):
    referral: bool = False
