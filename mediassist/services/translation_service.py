"""
Translation Service
Machine translation through opus-mt inference endpoints, with a phrase
table for common medical phrases when the endpoint cannot be used.
"""

import re
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from mediassist.config import settings
from mediassist.core.logging import get_logger, audit_logger
from mediassist.core.metrics import fallback_total

logger = get_logger(__name__)

PHRASE_TABLE_CONFIDENCE = 0.85
MODEL_CONFIDENCE = 0.8
DEFAULT_MODEL = "Helsinki-NLP/opus-mt-en-mul"

SUPPORTED_LANGUAGES: List[Dict[str, str]] = [
    {"code": "en", "name": "English", "native_name": "English"},
    {"code": "es", "name": "Spanish", "native_name": "Español"},
    {"code": "ur", "name": "Urdu", "native_name": "اردو"},
    {"code": "fr", "name": "French", "native_name": "Français"},
    {"code": "de", "name": "German", "native_name": "Deutsch"},
    {"code": "it", "name": "Italian", "native_name": "Italiano"},
    {"code": "pt", "name": "Portuguese", "native_name": "Português"},
    {"code": "ru", "name": "Russian", "native_name": "Русский"},
    {"code": "ar", "name": "Arabic", "native_name": "العربية"},
    {"code": "hi", "name": "Hindi", "native_name": "हिन्दी"},
]

# Dedicated opus-mt models; every other pair goes to the multilingual model
PAIR_MODELS = {
    f"{source}-{target}": f"Helsinki-NLP/opus-mt-{source}-{target}"
    for source, target in [
        ("en", "es"), ("es", "en"),
        ("en", "ur"), ("ur", "en"),
        ("en", "fr"), ("fr", "en"),
        ("en", "de"), ("de", "en"),
    ]
}

PHRASE_TABLE: Dict[str, Dict[str, str]] = {
    "es": {
        "Your visit summary": "Resumen de su visita",
        "Follow-up appointment": "Cita de seguimiento",
        "Take medication as prescribed": "Tome el medicamento según lo prescrito",
        "chest pain": "dolor en el pecho",
        "blood pressure": "presión arterial",
        "Your care plan": "Su plan de atención",
    },
    "ur": {
        "Your visit summary": "آپ کے دورے کا خلاصہ",
        "Follow-up appointment": "فالو اپ ملاقات",
        "Take medication as prescribed": "تجویز کردہ دوائی لیں",
        "chest pain": "سینے میں درد",
        "blood pressure": "بلڈ پریشر",
        "Your care plan": "آپ کا علاجی منصوبہ",
    },
    "fr": {
        "Your visit summary": "Résumé de votre visite",
        "Follow-up appointment": "Rendez-vous de suivi",
        "Take medication as prescribed": "Prenez les médicaments selon les prescriptions",
        "chest pain": "douleur thoracique",
        "blood pressure": "pression artérielle",
        "Your care plan": "Votre plan de soins",
    },
}


class TranslationResult(BaseModel):
    original_text: str
    translated_text: str
    source_language: str
    target_language: str
    confidence: float
    processing_time_ms: int = 0
    provider: str


def model_for_pair(source_language: str, target_language: str) -> str:
    return PAIR_MODELS.get(f"{source_language}-{target_language}", DEFAULT_MODEL)


def phrase_table_translate(text: str, target_language: str) -> str:
    """Case-insensitive phrase replacement; tags the text when nothing matched"""
    translated = text
    for phrase, replacement in PHRASE_TABLE.get(target_language, {}).items():
        translated = re.sub(re.escape(phrase), lambda _: replacement, translated, flags=re.IGNORECASE)
    if translated == text and target_language != "en":
        translated = f"[Translated to {target_language}] {text}"
    return translated


class TranslationService:
    """Text translation. Never raises for provider problems."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = settings.translation_api_url
        self.api_key = settings.huggingface_api_key
        self.timeout = settings.translation_timeout
        self.transport = transport

    def supported_languages(self) -> List[Dict[str, str]]:
        return list(SUPPORTED_LANGUAGES)

    def is_supported(self, code: str) -> bool:
        return any(language["code"] == code for language in SUPPORTED_LANGUAGES)

    async def translate(self, text: str, target_language: str, source_language: str = "en") -> TranslationResult:
        start_time = time.time()

        if source_language == target_language:
            return TranslationResult(
                original_text=text,
                translated_text=text,
                source_language=source_language,
                target_language=target_language,
                confidence=1.0,
                provider="identity",
            )

        clean_text = " ".join(text.split())
        if self.api_key:
            try:
                translated, confidence = await self._translate_remote(clean_text, source_language, target_language)
                return TranslationResult(
                    original_text=text,
                    translated_text=translated,
                    source_language=source_language,
                    target_language=target_language,
                    confidence=confidence,
                    processing_time_ms=int((time.time() - start_time) * 1000),
                    provider="model",
                )
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Translation request failed, using phrase table: {e}")
        else:
            logger.info("Translation API key not configured, using phrase table")

        fallback_total.labels(service="translation").inc()
        return TranslationResult(
            original_text=text,
            translated_text=phrase_table_translate(text, target_language),
            source_language=source_language,
            target_language=target_language,
            confidence=PHRASE_TABLE_CONFIDENCE,
            processing_time_ms=int((time.time() - start_time) * 1000),
            provider="phrase_table",
        )

    async def translate_summary(self, summary_text: str, target_language: str) -> TranslationResult:
        """Patient summaries are always written in English"""
        return await self.translate(summary_text, target_language, source_language="en")

    async def _translate_remote(self, text: str, source_language: str, target_language: str):
        endpoint = self.api_url.format(model=model_for_pair(source_language, target_language))
        start_time = time.time()
        response_status = None
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    endpoint,
                    json={"inputs": text, "parameters": {"max_length": len(text) * 2}},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            response_status = response.status_code
            response.raise_for_status()
            return _translation_text(response.json())
        finally:
            audit_logger.log_external_api_call(
                service="translation",
                endpoint=endpoint,
                response_status=response_status,
                response_time_ms=int((time.time() - start_time) * 1000),
            )


def _translation_text(payload: Any):
    if isinstance(payload, dict) and payload.get("error"):
        raise ValueError(f"Translation service error: {payload['error']}")
    item = payload[0] if isinstance(payload, list) and payload else payload
    if not isinstance(item, dict) or not item.get("translation_text"):
        raise ValueError("Unexpected translation response")
    try:
        confidence = min(max(float(item.get("score", MODEL_CONFIDENCE)), 0.0), 1.0)
    except (TypeError, ValueError):
        confidence = MODEL_CONFIDENCE
    return str(item["translation_text"]), confidence
