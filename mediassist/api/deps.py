"""
Request-scoped dependencies shared by the routers
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, Request

from mediassist.core.security import get_repositories
from mediassist.db import Repositories
from mediassist.services.audio_processor import AudioProcessor
from mediassist.services.note_service import NoteService
from mediassist.services.pipeline import ConsultationPipeline
from mediassist.services.translation_service import TranslationService
from mediassist.services.tts_service import TTSService


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def as_naive_utc(value: datetime) -> datetime:
    """Stored timestamps are naive UTC"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def get_audio_processor(request: Request) -> AudioProcessor:
    return request.app.state.audio_processor


def get_translation_service(request: Request) -> TranslationService:
    return request.app.state.translation_service


def get_tts_service(request: Request) -> TTSService:
    return request.app.state.tts_service


def get_note_service(
    request: Request,
    repos: Repositories = Depends(get_repositories),
) -> NoteService:
    return NoteService(repos, request.app.state.nlp_service, request.app.state.translation_service)


def get_pipeline(
    request: Request,
    repos: Repositories = Depends(get_repositories),
    note_service: NoteService = Depends(get_note_service),
) -> ConsultationPipeline:
    return ConsultationPipeline(
        repos,
        request.app.state.audio_processor,
        request.app.state.stt_service,
        note_service,
    )
