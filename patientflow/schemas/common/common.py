# patientflow/schemas/common.py
from pydantic import BaseModel
from typing import Any, Dict, List, Optional
import re

EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def clean_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip().lower()
    if not EMAIL_RE.match(v):
        raise ValueError('Invalid email address')
    return v


def clean_phone(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    phone_clean = re.sub(r'[^\d+]', '', v)
    if len(re.sub(r'\D', '', phone_clean)) < 10:
        raise ValueError('Phone number must have at least 10 digits')
    return phone_clean


class EnvelopeResponse(BaseModel):
    success: bool = True
    data: Optional[Any] = None
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    success: bool = False
    data: Optional[Any] = None
    error: str
    code: str
    details: Optional[List[Dict[str, Any]]] = None


class MessageResponse(BaseModel):
    message: str
