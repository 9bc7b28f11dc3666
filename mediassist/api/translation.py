"""
Translation routes
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from mediassist.api.deps import get_translation_service
from mediassist.core.security import get_current_user
from mediassist.models.documents import UserDocument
from mediassist.models.requests import SummaryTranslateRequest, TranslateRequest
from mediassist.models.responses import LanguageInfo, TranslationResponse
from mediassist.services.translation_service import TranslationService

router = APIRouter(prefix="/api/translate", tags=["translation"])


def _check_language(translation_service: TranslationService, code: str):
    if not translation_service.is_supported(code):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported language '{code}'",
        )


@router.post("", response_model=TranslationResponse)
async def translate(
    body: TranslateRequest,
    user: UserDocument = Depends(get_current_user),
    translation_service: TranslationService = Depends(get_translation_service),
):
    _check_language(translation_service, body.source_language)
    _check_language(translation_service, body.target_language)
    result = await translation_service.translate(body.text, body.target_language, body.source_language)
    return TranslationResponse(**result.model_dump())


@router.post("/summary", response_model=TranslationResponse)
async def translate_summary(
    body: SummaryTranslateRequest,
    user: UserDocument = Depends(get_current_user),
    translation_service: TranslationService = Depends(get_translation_service),
):
    _check_language(translation_service, body.target_language)
    result = await translation_service.translate_summary(body.summary_text, body.target_language)
    return TranslationResponse(**result.model_dump())


@router.get("/languages", response_model=List[LanguageInfo])
async def supported_languages(
    user: UserDocument = Depends(get_current_user),
    translation_service: TranslationService = Depends(get_translation_service),
):
    return translation_service.supported_languages()
