from app.core.exceptions import UpstreamError, ValidationError
from typing import Optional
import logging

logger = logging.getLogger(__name__)

# The extension tells Whisper which container format to decode.
AUDIO_FILENAME = "audio.webm"


class TranscriptionService:
    """Speech-to-text through OpenAI Whisper."""

    def __init__(self, client, model: str = "whisper-1"):
        self.client = client
        self.model = model

    async def transcribe(self, audio: bytes, language: Optional[str] = None) -> str:
        if self.client is None:
            logger.error("OpenAI API Key not configured for transcription.")
            raise UpstreamError("Transcription service is not configured")

        if not audio:
            raise ValidationError("Audio file is empty")

        params = {"file": (AUDIO_FILENAME, audio), "model": self.model}
        if language:
            params["language"] = language

        try:
            response = await self.client.audio.transcriptions.create(**params)
        except Exception as e:
            logger.error(f"Error transcribing audio with OpenAI Whisper: {e}")
            raise UpstreamError("Failed to transcribe audio. Check server logs for details.")

        return response.text
