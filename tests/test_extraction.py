from types import SimpleNamespace

from patientflow.application.services.extraction import (
    DEFAULT_CONFIDENCE,
    ParsedExtraction,
    UnparseableExtraction,
    build_extraction_prompt,
    parse_extraction,
)
from patientflow.infrastructure.ai.gemini_provider import GeminiSpeechProvider


def test_parses_fenced_json():
    raw = '```json\n{"diagnosis": "Asthma", "treatment_plan": "Inhaler", "confidence": 0.8}\n```'
    result = parse_extraction(raw)

    assert isinstance(result, ParsedExtraction)
    assert result.notes.diagnosis == "Asthma"
    assert result.notes.treatment_plan == "Inhaler"
    assert result.confidence == 0.8


def test_prose_is_unparseable():
    result = parse_extraction("The patient seems to have a cold.")
    assert isinstance(result, UnparseableExtraction)
    assert result.confidence == 0.0
    assert result.raw_text == "The patient seems to have a cold."


def test_empty_and_non_object_answers_are_unparseable():
    assert isinstance(parse_extraction(""), UnparseableExtraction)
    assert isinstance(parse_extraction(None), UnparseableExtraction)
    assert isinstance(parse_extraction('["Asthma"]'), UnparseableExtraction)


def test_missing_confidence_uses_default():
    result = parse_extraction('{"diagnosis": "Asthma"}')
    assert result.confidence == DEFAULT_CONFIDENCE


def test_confidence_is_clamped():
    assert parse_extraction('{"diagnosis": "x", "confidence": 7}').confidence == 1.0
    assert parse_extraction('{"diagnosis": "x", "confidence": -2}').confidence == 0.0


def test_nulls_become_empty_values():
    result = parse_extraction('{"diagnosis": null, "prescriptions": null, "icd_codes": null}')
    assert result.notes.diagnosis == ""
    assert result.notes.prescriptions == []
    assert result.notes.icd_codes == []


def test_prescriptions_accept_objects_and_strings():
    raw = '{"prescriptions": [{"medication": "Amoxicillin", "dosage": "500mg", "frequency": "8 hourly"}, "Vitamin C", {"dosage": "1g"}]}'
    result = parse_extraction(raw)

    names = [p.medication_name for p in result.notes.prescriptions]
    assert names == ["Amoxicillin", "Vitamin C"]
    assert result.notes.prescriptions[0].describe() == "Amoxicillin 500mg - 8 hourly"


class RecordingModel:
    def __init__(self, text):
        self.text = text
        self.calls = []

    def generate_content(self, contents, **kwargs):
        self.calls.append((contents, kwargs))
        return SimpleNamespace(text=self.text)


def test_extraction_prompt_embeds_transcript():
    prompt = build_extraction_prompt("cough and chest pain")
    assert "cough and chest pain" in prompt
    assert '"diagnosis"' in prompt


def test_gemini_extract_sends_extraction_prompt():
    provider = GeminiSpeechProvider.__new__(GeminiSpeechProvider)
    provider.model = RecordingModel('{"diagnosis": "Asthma"}')

    raw = provider.extract("wheezing at night")

    assert raw == '{"diagnosis": "Asthma"}'
    contents, kwargs = provider.model.calls[0]
    assert contents == build_extraction_prompt("wheezing at night")
    assert kwargs["generation_config"]["response_mime_type"] == "application/json"
