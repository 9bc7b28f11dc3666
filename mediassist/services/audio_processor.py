"""
Audio upload validation and metadata
"""

import io
import secrets
import string
import time
from typing import Optional

from fastapi import HTTPException, status
from mutagen import File as MutagenFile

from mediassist.config import settings
from mediassist.core.logging import get_logger

logger = get_logger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


class AudioProcessor:
    """Validates uploads before anything is written and reads container metadata"""

    def validate_language(self, language: str) -> str:
        if language not in settings.supported_languages:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Unsupported language '{language}'. Supported are: {', '.join(settings.supported_languages)}",
            )
        return language

    def validate_content_type(self, content_type: Optional[str]) -> str:
        """Returns the bare MIME type, e.g. ``audio/webm`` for ``audio/webm;codecs=opus``"""
        content_type = (content_type or "").split(";")[0].strip().lower()
        if content_type not in settings.supported_audio_formats:
            logger.warning(
                f"Unsupported audio format: {content_type}. Supported: {settings.supported_audio_formats}"
            )
            raise HTTPException(
                status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
                detail=f"Invalid file type. Please upload an audio file ({', '.join(settings.supported_audio_formats)})",
            )
        return content_type

    def validate_size(self, audio_data: bytes):
        if not audio_data:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Audio file is empty",
            )
        if len(audio_data) > settings.max_file_size_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Audio file exceeds the {settings.max_file_size_mb}MB limit",
            )

    def read_duration(self, audio_data: bytes) -> float:
        """Duration in seconds from the container headers, 0.0 if unreadable"""
        try:
            audio = MutagenFile(io.BytesIO(audio_data))
            if audio is None or not hasattr(audio.info, "length"):
                return 0.0
            return max(float(audio.info.length), 0.0)
        except Exception as e:
            logger.warning(f"Could not extract duration using mutagen: {e}")
            return 0.0


def epoch_ms() -> int:
    return int(time.time() * 1000)


def new_session_id(doctor_id: str) -> str:
    return f"session_{epoch_ms()}_{doctor_id}"


def new_audio_file_id() -> str:
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"audio_{epoch_ms()}_{suffix}"
