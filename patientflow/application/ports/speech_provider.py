from typing import Protocol


class SpeechProvider(Protocol):
    def transcribe(self, audio_bytes: bytes, mime_type: str) -> str:
        ...

    def extract(self, transcript: str) -> str:
        """Return the model's raw answer to the consultation extraction prompt."""
        ...
