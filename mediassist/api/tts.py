"""
Text-to-speech routes. Audio is returned as the response body.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from starlette.responses import Response

from mediassist.api.deps import get_tts_service
from mediassist.core.security import get_current_user
from mediassist.models.documents import UserDocument
from mediassist.models.requests import TTSRequest, TTSSummaryRequest
from mediassist.models.responses import VoiceInfo
from mediassist.services.tts_service import TTSResult, TTSService

router = APIRouter(prefix="/api/tts", tags=["tts"])


def _audio_response(result: TTSResult, filename: str) -> Response:
    return Response(
        content=result.audio,
        media_type=result.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-TTS-Provider": result.provider,
        },
    )


@router.post("", response_class=Response)
async def text_to_speech(
    body: TTSRequest,
    user: UserDocument = Depends(get_current_user),
    tts_service: TTSService = Depends(get_tts_service),
):
    result = await tts_service.synthesize(body.text, language=body.language, voice=body.voice, speed=body.speed)
    return _audio_response(result, "speech.wav")


@router.post("/summary", response_class=Response)
async def summary_to_speech(
    body: TTSSummaryRequest,
    user: UserDocument = Depends(get_current_user),
    tts_service: TTSService = Depends(get_tts_service),
):
    result = await tts_service.synthesize_medical(
        body.summary_text,
        language=body.language,
        patient_friendly=body.patient_friendly,
    )
    return _audio_response(result, "medical-summary.wav")


@router.get("/voices", response_model=List[VoiceInfo])
async def voices(
    language: Optional[str] = Query(None),
    user: UserDocument = Depends(get_current_user),
    tts_service: TTSService = Depends(get_tts_service),
):
    return tts_service.voices(language)
