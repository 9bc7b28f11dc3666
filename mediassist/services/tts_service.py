"""
Text-to-Speech Service
Calls a configured speech endpoint; without one, or when it fails, a tone
WAV of the estimated speaking length is returned.
"""

import io
import math
import re
import struct
import time
import wave
from typing import Dict, List, Optional

import httpx
from pydantic import BaseModel

from mediassist.config import settings
from mediassist.core.errors import BadRequestError
from mediassist.core.logging import get_logger, audit_logger
from mediassist.core.metrics import fallback_total

logger = get_logger(__name__)

MAX_TEXT_LENGTH = 2000
MIN_SPEED = 0.5
MAX_SPEED = 2.0
MEDICAL_SPEED = 0.9
CHARS_PER_SECOND = 10

TONE_SAMPLE_RATE = 16000
TONE_FREQUENCY = 440
TONE_AMPLITUDE = 0.1

VOICES: List[Dict[str, str]] = [
    {"id": "default", "name": "Default Voice", "language": "en", "gender": "female",
     "description": "Standard English voice"},
    {"id": "medical", "name": "Medical Professional", "language": "en", "gender": "female",
     "description": "Clear voice optimized for medical content"},
    {"id": "male-en", "name": "English Male", "language": "en", "gender": "male",
     "description": "Male English voice"},
    {"id": "es-female", "name": "Spanish Female", "language": "es", "gender": "female",
     "description": "Female Spanish voice"},
    {"id": "es-male", "name": "Spanish Male", "language": "es", "gender": "male",
     "description": "Male Spanish voice"},
]

# Applied in order
_MEDICAL_SPEECH_TERMS = [
    (re.compile(r"(\d)\s?mg\b"), r"\1 milligrams"),
    (re.compile(r"\bmg\b"), "milligrams"),
    (re.compile(r"(\d)\s?ml\b"), r"\1 milliliters"),
    (re.compile(r"\bml\b"), "milliliters"),
    (re.compile(r"\bBP\b"), "blood pressure"),
    (re.compile(r"\bHR\b"), "heart rate"),
    (re.compile(r"\b(\d+)/(\d+)\b"), r"\1 over \2"),
    (re.compile(r"\s?°F"), " degrees Fahrenheit"),
    (re.compile(r"\s?°C"), " degrees Celsius"),
    (re.compile(r"\bq6h\b"), "every 6 hours"),
    (re.compile(r"\bPRN\b"), "as needed"),
    (re.compile(r"\bbid\b"), "twice daily"),
    (re.compile(r"\btid\b"), "three times daily"),
]
_SPECIAL_CHARACTERS = re.compile(r"[^\w\s.,!?;:-]")
_PAUSE_PUNCTUATION = re.compile(r"([.,:])(?=[^\s\d])")


class TTSResult(BaseModel):
    audio: bytes
    content_type: str = "audio/wav"
    provider: str
    processing_time_ms: int = 0


def clean_text(text: str) -> str:
    """Strip characters a speech engine cannot voice and collapse whitespace"""
    return " ".join(_SPECIAL_CHARACTERS.sub("", text).split())


def optimize_medical_text(text: str) -> str:
    for pattern, replacement in _MEDICAL_SPEECH_TERMS:
        text = pattern.sub(replacement, text)
    return text


def clamp_speed(speed: float) -> float:
    return min(max(speed, MIN_SPEED), MAX_SPEED)


def tone_wav(text_length: int, speed: float = 1.0) -> bytes:
    """
    16-bit mono WAV of a quiet 440 Hz tone, one second per ten characters,
    stretched or shortened by the speaking speed.
    """
    seconds = math.ceil(text_length / CHARS_PER_SECOND) / clamp_speed(speed)
    frame_count = int(TONE_SAMPLE_RATE * seconds)

    one_second = b"".join(
        struct.pack(
            "<h",
            int(round(math.sin(2 * math.pi * TONE_FREQUENCY * i / TONE_SAMPLE_RATE) * TONE_AMPLITUDE * 32767)),
        )
        for i in range(TONE_SAMPLE_RATE)
    )
    full_seconds, remainder = divmod(frame_count, TONE_SAMPLE_RATE)
    frames = one_second * full_seconds + one_second[:remainder * 2]

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(TONE_SAMPLE_RATE)
        wav.writeframes(frames)
    return buffer.getvalue()


class TTSService:
    """Speech synthesis for notes and summaries. Calls are never retried."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = settings.tts_api_url
        self.api_key = settings.tts_api_key or settings.huggingface_api_key
        self.timeout = settings.tts_timeout
        self.transport = transport

    def voices(self, language: Optional[str] = None) -> List[Dict[str, str]]:
        if language:
            return [voice for voice in VOICES if voice["language"] == language]
        return list(VOICES)

    async def synthesize(
        self,
        text: str,
        language: str = "en",
        voice: str = "default",
        speed: float = 1.0,
    ) -> TTSResult:
        """Raises BadRequestError when nothing speakable is left after cleaning"""
        start_time = time.time()
        speed = clamp_speed(speed)
        cleaned = clean_text(text)
        if not cleaned:
            raise BadRequestError("No text to convert")
        if len(cleaned) > MAX_TEXT_LENGTH:
            raise BadRequestError("Text too long for TTS conversion")

        if self.api_url:
            try:
                audio, content_type = await self._synthesize_remote(cleaned, language, voice, speed)
                return TTSResult(
                    audio=audio,
                    content_type=content_type,
                    provider="remote",
                    processing_time_ms=int((time.time() - start_time) * 1000),
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Speech synthesis failed, generating tone audio: {e}")

        fallback_total.labels(service="tts").inc()
        return TTSResult(
            audio=tone_wav(len(cleaned), speed),
            provider="tone",
            processing_time_ms=int((time.time() - start_time) * 1000),
        )

    async def synthesize_medical(self, text: str, language: str = "en", patient_friendly: bool = True) -> TTSResult:
        """Slower speech in the medical voice, abbreviations spoken in full"""
        text = optimize_medical_text(text)
        if patient_friendly:
            # Room after punctuation gives the engine a pause
            text = " ".join(_PAUSE_PUNCTUATION.sub(r"\1 ", text).split())
        return await self.synthesize(text, language=language, voice="medical", speed=MEDICAL_SPEED)

    async def _synthesize_remote(self, text: str, language: str, voice: str, speed: float):
        start_time = time.time()
        response_status = None
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json={"inputs": text, "parameters": {"language": language, "voice": voice, "speed": speed}},
                    headers=headers,
                )
            response_status = response.status_code
            response.raise_for_status()
            if not response.content:
                raise ValueError("Speech service returned no audio")
            content_type = response.headers.get("content-type", "audio/wav").split(";")[0]
            if not content_type.startswith("audio/"):
                raise ValueError(f"Speech service returned {content_type}")
            return response.content, content_type
        finally:
            audit_logger.log_external_api_call(
                service="tts",
                endpoint=self.api_url,
                response_status=response_status,
                response_time_ms=int((time.time() - start_time) * 1000),
            )
