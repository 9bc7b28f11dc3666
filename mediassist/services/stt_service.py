"""
Speech-to-Text Service
Sends raw audio to a Whisper inference endpoint over HTTP.
"""

import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from mediassist.config import settings
from mediassist.core.logging import get_logger, audit_logger
from mediassist.models.documents import AudioQuality, SpeakerSegment

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.8


class STTResult(BaseModel):
    """Outcome of one transcription call. ``success`` implies non-blank text."""
    success: bool
    text: str = ""
    confidence: float = Field(default=0.0, ge=0, le=1)
    duration: float = Field(default=0.0, ge=0)
    segments: List[SpeakerSegment] = Field(default_factory=list)
    processing_time_ms: int = 0
    error: Optional[str] = None


def audio_quality(confidence: float) -> AudioQuality:
    """Bucket a transcription confidence"""
    if confidence > 0.9:
        return AudioQuality.EXCELLENT
    if confidence > 0.7:
        return AudioQuality.GOOD
    if confidence > 0.5:
        return AudioQuality.FAIR
    return AudioQuality.POOR


class STTService:
    """Service for Speech-to-Text transcription. Calls are never retried."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = settings.stt_api_url
        self.api_key = settings.huggingface_api_key
        self.timeout = settings.stt_timeout
        self.model_version = settings.stt_model_version
        self.transport = transport

    async def transcribe(self, audio_data: bytes, content_type: str, language: str = "en") -> STTResult:
        """
        Transcribe audio. Never raises: every failure (missing key, HTTP error,
        timeout, malformed payload, empty text) comes back as a failed result.
        """
        start_time = time.time()

        if not self.api_key:
            logger.error("Speech-to-text API key is not configured")
            return self._failure("Speech-to-text API key is not configured", start_time)

        logger.info(f"Sending {len(audio_data)} bytes of {content_type} audio for transcription (language={language})")

        response_status = None
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    content=audio_data,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": content_type,
                        "Accept": "application/json",
                    },
                )
            response_status = response.status_code
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Transcription request failed: {e}", exc_info=True)
            return self._failure(f"Transcription request failed: {e}", start_time, response_status)
        except ValueError as e:
            logger.error(f"Transcription response was not valid JSON: {e}")
            return self._failure("Transcription service returned an invalid response", start_time, response_status)

        processing_time_ms = int((time.time() - start_time) * 1000)
        audit_logger.log_external_api_call(
            service="stt",
            endpoint=self.api_url,
            response_status=response_status,
            response_time_ms=processing_time_ms,
        )

        if not isinstance(payload, dict):
            return self._failure("Transcription service returned an invalid response", start_time)
        if payload.get("error"):
            logger.error(f"Transcription service reported an error: {payload['error']}")
            return self._failure(str(payload["error"]), start_time)

        text = payload.get("text")
        if text is not None and not isinstance(text, str):
            logger.error(f"Transcription text has unexpected type {type(text).__name__}")
            return self._failure("Transcription service returned an invalid response", start_time)
        text = (text or "").strip()
        if not text:
            logger.warning("Transcription returned no text")
            return self._failure("Transcription returned no text", start_time)

        confidence = _as_unit_float(payload.get("confidence"), DEFAULT_CONFIDENCE)
        result = STTResult(
            success=True,
            text=text,
            confidence=confidence,
            duration=max(_as_float(payload.get("duration"), 0.0), 0.0),
            segments=self._parse_chunks(payload.get("chunks"), confidence),
            processing_time_ms=processing_time_ms,
        )
        logger.info(f"Transcription successful: {len(text)} characters, {len(result.segments)} segments")
        return result

    def _parse_chunks(self, chunks: Any, default_confidence: float) -> List[SpeakerSegment]:
        """Map provider chunks to speaker segments, skipping anything malformed"""
        segments: List[SpeakerSegment] = []
        if not isinstance(chunks, list):
            return segments
        for chunk in chunks:
            if not isinstance(chunk, dict) or not chunk.get("text"):
                continue
            start, end = _chunk_bounds(chunk)
            segments.append(SpeakerSegment(
                speaker=str(chunk.get("speaker") or "Speaker"),
                text=str(chunk["text"]).strip(),
                start_time=start,
                end_time=max(end, start),
                confidence=_as_unit_float(chunk.get("confidence"), default_confidence),
            ))
        return segments

    def _failure(self, error: str, start_time: float, response_status: Optional[int] = None) -> STTResult:
        processing_time_ms = int((time.time() - start_time) * 1000)
        if response_status is not None:
            audit_logger.log_external_api_call(
                service="stt",
                endpoint=self.api_url,
                response_status=response_status,
                response_time_ms=processing_time_ms,
                error=error,
            )
        return STTResult(success=False, processing_time_ms=processing_time_ms, error=error)


def _chunk_bounds(chunk: Dict[str, Any]):
    timestamp = chunk.get("timestamp")
    if isinstance(timestamp, (list, tuple)) and len(timestamp) == 2:
        start, end = timestamp
    else:
        start, end = chunk.get("start_time"), chunk.get("end_time")
    start = max(_as_float(start, 0.0), 0.0)
    return start, max(_as_float(end, start), 0.0)


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_unit_float(value: Any, default: float) -> float:
    number = _as_float(value, default) if value is not None else default
    return min(max(number, 0.0), 1.0)
