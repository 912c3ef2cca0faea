import logging

import google.generativeai as genai

from ...config import settings
from ...application.ports.speech_provider import SpeechProvider
from ...application.services.extraction import build_extraction_prompt

logger = logging.getLogger(__name__)

TRANSCRIPTION_PROMPT = (
    "Transcribe this doctor's consultation recording verbatim in English. "
    "Return only the transcript text, without commentary or formatting."
)


class GeminiSpeechProvider(SpeechProvider):
    def __init__(self, api_key: str = None, model_name: str = None) -> None:
        genai.configure(api_key=api_key or settings.GEMINI_API_KEY)
        self.model = genai.GenerativeModel(model_name or settings.GEMINI_MODEL)

    def transcribe(self, audio_bytes: bytes, mime_type: str) -> str:
        result = self.model.generate_content([
            TRANSCRIPTION_PROMPT,
            {"mime_type": mime_type, "data": audio_bytes},
        ])
        text = getattr(result, "text", str(result))
        logger.info(f"Transcribed {len(audio_bytes)} bytes of {mime_type} audio")
        return text.strip()

    def extract(self, transcript: str) -> str:
        result = self.model.generate_content(
            build_extraction_prompt(transcript),
            generation_config={"temperature": 0.3, "response_mime_type": "application/json"},
        )
        return getattr(result, "text", str(result))
