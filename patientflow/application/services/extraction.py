"""Parsing of the AI collaborator's consultation extraction.

The model is asked for bare JSON but routinely wraps it in markdown fences or
answers with prose. Anything that does not parse into the expected shape is
returned as :class:`UnparseableExtraction` so that callers treat it as "no
suggestion" instead of a clinical value.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Union
import json
import logging
import re

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, validator

logger = logging.getLogger(__name__)

# confidence reported when the model omits it
DEFAULT_CONFIDENCE = 0.5

CONSULTATION_EXTRACTION_PROMPT = """You are a medical assistant helping a doctor document a patient consultation. Extract structured consultation notes from this doctor's voice recording.

TRANSCRIPT:
{transcript}

Extract and return ONLY valid JSON (no markdown, no code blocks):
{{
  "diagnosis": "Primary diagnosis and any secondary diagnoses",
  "differential_diagnoses": ["array", "of", "differential", "diagnoses"],
  "history_of_present_illness": "Detailed HPI from the conversation",
  "physical_examination_findings": "Any PE findings mentioned",
  "assessment": "Doctor's clinical assessment",
  "treatment_plan": "Detailed treatment plan including non-pharmacological",
  "prescriptions": [
    {{
      "medication": "Drug name",
      "dosage": "e.g., 500mg",
      "frequency": "e.g., twice daily",
      "duration": "e.g., 7 days",
      "quantity": "e.g., 14 tablets",
      "instructions": "e.g., take with food"
    }}
  ],
  "follow_up": "Follow-up instructions and timeline",
  "patient_education": "Any patient education or advice given",
  "additional_notes": "Any other relevant notes",
  "icd_codes": ["ICD-10 codes if identifiable"],
  "confidence": number (0-1)
}}

Only extract explicitly mentioned information. Return null for missing data.
Format prescriptions as complete instructions. Be thorough but accurate."""


def build_extraction_prompt(transcript: str) -> str:
    return CONSULTATION_EXTRACTION_PROMPT.format(transcript=transcript)


_FENCE_RE = re.compile(r"```(?:json)?\s*|```", re.IGNORECASE)


class _PrescriptionPayload(BaseModel):
    medication: Optional[str] = None
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    quantity: Optional[str] = None
    instructions: Optional[str] = None


class _ExtractionPayload(BaseModel):
    diagnosis: Optional[str] = None
    differential_diagnoses: List[str] = Field(default_factory=list)
    history_of_present_illness: Optional[str] = None
    physical_examination_findings: Optional[str] = None
    assessment: Optional[str] = None
    treatment_plan: Optional[str] = None
    prescriptions: List[Union[_PrescriptionPayload, str]] = Field(default_factory=list)
    follow_up: Optional[str] = None
    patient_education: Optional[str] = None
    additional_notes: Optional[str] = None
    icd_codes: List[str] = Field(default_factory=list)
    confidence: Optional[float] = None

    @validator("differential_diagnoses", "prescriptions", "icd_codes", pre=True)
    def none_to_empty(cls, v):
        return v or []

    @validator("confidence", pre=True)
    def clamp_confidence(cls, v):
        if v is None:
            return None
        return min(1.0, max(0.0, float(v)))


@dataclass
class SuggestedPrescription:
    medication_name: str
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    quantity: Optional[str] = None
    instructions: Optional[str] = None

    def describe(self) -> str:
        text = self.medication_name
        if self.dosage:
            text += f" {self.dosage}"
        if self.frequency:
            text += f" - {self.frequency}"
        if self.duration:
            text += f" for {self.duration}"
        if self.instructions:
            text += f" ({self.instructions})"
        return text


@dataclass
class ExtractedNotes:
    diagnosis: str = ""
    treatment_plan: str = ""
    additional_notes: str = ""
    differential_diagnoses: List[str] = field(default_factory=list)
    history_of_present_illness: str = ""
    physical_examination: str = ""
    assessment: str = ""
    follow_up: str = ""
    patient_education: str = ""
    icd_codes: List[str] = field(default_factory=list)
    prescriptions: List[SuggestedPrescription] = field(default_factory=list)


@dataclass
class ParsedExtraction:
    notes: ExtractedNotes
    confidence: float


@dataclass
class UnparseableExtraction:
    raw_text: str
    confidence: float = 0.0


ExtractionResult = Union[ParsedExtraction, UnparseableExtraction]


def _to_suggestion(item: Union[_PrescriptionPayload, str]) -> Optional[SuggestedPrescription]:
    if isinstance(item, str):
        return SuggestedPrescription(medication_name=item.strip()) if item.strip() else None
    if not item.medication:
        return None
    return SuggestedPrescription(
        medication_name=item.medication,
        dosage=item.dosage,
        frequency=item.frequency,
        duration=item.duration,
        quantity=item.quantity,
        instructions=item.instructions,
    )


def parse_extraction(raw_text: Optional[str]) -> ExtractionResult:
    """Turn the model's raw answer into a Parsed or Unparseable result."""
    if not raw_text or not raw_text.strip():
        return UnparseableExtraction(raw_text=raw_text or "")

    cleaned = _FENCE_RE.sub("", raw_text).strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        logger.warning("AI extraction was not valid JSON")
        return UnparseableExtraction(raw_text=raw_text)
    if not isinstance(data, dict):
        return UnparseableExtraction(raw_text=raw_text)

    try:
        payload = _ExtractionPayload(**data)
    except (PydanticValidationError, TypeError, ValueError) as e:
        logger.warning(f"AI extraction did not match the expected shape: {e}")
        return UnparseableExtraction(raw_text=raw_text)

    notes = ExtractedNotes(
        diagnosis=payload.diagnosis or "",
        treatment_plan=payload.treatment_plan or "",
        additional_notes=payload.additional_notes or "",
        differential_diagnoses=list(payload.differential_diagnoses),
        history_of_present_illness=payload.history_of_present_illness or "",
        physical_examination=payload.physical_examination_findings or "",
        assessment=payload.assessment or "",
        follow_up=payload.follow_up or "",
        patient_education=payload.patient_education or "",
        icd_codes=list(payload.icd_codes),
        prescriptions=[s for s in (_to_suggestion(p) for p in payload.prescriptions) if s is not None],
    )
    confidence = payload.confidence if payload.confidence is not None else DEFAULT_CONFIDENCE
    return ParsedExtraction(notes=notes, confidence=confidence)
