"""
NLP Service for clinical note generation
"""

import re
import time
from typing import Any, Dict, List, Mapping, Optional

import httpx
from pydantic import BaseModel, Field

from mediassist.config import settings
from mediassist.core.errors import NoteGenerationError
from mediassist.core.logging import get_logger, audit_logger
from mediassist.core.metrics import fallback_total
from mediassist.models.documents import Diagnosis, ExtractedEntity
from mediassist.services import soap_templates

logger = get_logger(__name__)

SOAP_SECTIONS = ("subjective", "objective", "assessment", "plan")
MIN_GENERATED_LENGTH = 10
FALLBACK_CONFIDENCE = 0.7

_HEADER = r"\b(?:SUBJECTIVE|OBJECTIVE|ASSESSMENT|PLAN)\b"
_SECTION_PATTERNS = {
    name: re.compile(rf"\b{name.upper()}\b[:\s]*(.*?)(?={_HEADER}|$)", re.IGNORECASE | re.DOTALL)
    for name in SOAP_SECTIONS
}
_ANY_SECTION = re.compile(r"subjective|objective|assessment|plan", re.IGNORECASE)
_MEDICAL_WORDS = re.compile(r"medication|diagnosis|symptom|treatment", re.IGNORECASE)

# Applied in order
_PATIENT_FRIENDLY_TERMS = [
    (re.compile(r"mmHg"), "mmHg (blood pressure unit)"),
    (re.compile(r"\bbpm\b"), "beats per minute"),
    (re.compile(r"\s?°F"), " degrees Fahrenheit"),
    (re.compile(r"\bq6h\b"), "every 6 hours"),
    (re.compile(r"\bPRN\b"), "as needed"),
    (re.compile(r"(\d)\s?mg\b"), r"\1 milligrams"),
    (re.compile(r"\bmg\b"), "milligrams"),
]

SOAP_PROMPT = """Medical SOAP Note Analysis:

Patient Transcript: {transcript}

Please create a structured SOAP note with the following format:

SUBJECTIVE: [Patient's reported symptoms, history, and chief complaint]
OBJECTIVE: [Observable findings, vital signs, physical examination results]
ASSESSMENT: [Medical diagnosis, differential diagnosis, clinical impression]
PLAN: [Treatment recommendations, medications, follow-up instructions]

Respond with exactly this format, starting with SUBJECTIVE:"""


class SOAPNoteResult(BaseModel):
    """A generated clinical note before it is stored"""
    subjective: str
    objective: str
    assessment: str
    plan: str
    medications: List[str] = Field(default_factory=list)
    diagnoses: List[Diagnosis] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    follow_up: str = ""
    entities: List[ExtractedEntity] = Field(default_factory=list)
    confidence: float = Field(ge=0, le=1)
    processing_time_ms: int = 0
    model_version: str
    used_fallback: bool = False


def parse_soap_sections(generated: str, transcript: str) -> Dict[str, str]:
    """
    Split loosely formatted model output into the four SOAP sections.
    Sections that are missing or empty come from the keyword template.
    """
    template = soap_templates.soap_sections(transcript)
    sections = {}
    for name in SOAP_SECTIONS:
        match = _SECTION_PATTERNS[name].search(generated)
        content = match.group(1).strip() if match else ""
        sections[name] = content or template[name]
    return sections


def has_section_headers(generated: str) -> bool:
    return any(_SECTION_PATTERNS[name].search(generated) for name in SOAP_SECTIONS)


def calculate_confidence(generated: str) -> float:
    """Score model output by shape: headers, medical vocabulary and length"""
    confidence = 0.7
    if _ANY_SECTION.search(generated):
        confidence += 0.1
    if _MEDICAL_WORDS.search(generated):
        confidence += 0.1
    if len(generated) > 200:
        confidence += 0.1
    return round(min(confidence, 0.95), 2)


def simplify_medical_text(text: str) -> str:
    for pattern, replacement in _PATIENT_FRIENDLY_TERMS:
        text = pattern.sub(replacement, text)
    return text


class NLPService:
    """Turns transcripts into SOAP notes and patient summaries. Calls are never retried."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = settings.nlp_api_url
        self.api_key = settings.huggingface_api_key
        self.timeout = settings.nlp_timeout
        self.model_version = settings.nlp_model_version
        self.transport = transport

    async def generate_soap_note(self, transcript: str) -> SOAPNoteResult:
        """
        Generate a SOAP note for a transcript.

        Raises NoteGenerationError when the text-generation service is not
        configured. Any failure of the call itself, and output too short to
        use, produces the keyword-template note instead.
        """
        if not self.api_key:
            raise NoteGenerationError("Text-generation API key is not configured")

        start_time = time.time()
        try:
            generated = await self._generate(transcript)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Text generation failed, using keyword templates: {e}")
            return self._fallback_note(transcript, start_time)

        if len(generated.strip()) < MIN_GENERATED_LENGTH:
            logger.warning("Generated text too short, using keyword templates")
            return self._fallback_note(transcript, start_time)

        if not has_section_headers(generated):
            logger.info("Generated text has no SOAP headers, using keyword templates")
            return self._fallback_note(transcript, start_time)

        sections = parse_soap_sections(generated, transcript)
        return SOAPNoteResult(
            **sections,
            **self._extracted_data(transcript),
            entities=soap_templates.extract_entities(generated, transcript),
            confidence=calculate_confidence(generated),
            processing_time_ms=int((time.time() - start_time) * 1000),
            model_version=self.model_version,
        )

    def generate_patient_summary(self, sections: Mapping[str, str]) -> str:
        """Plain-language visit summary built from the SOAP sections"""
        return (
            "Your Visit Summary:\n\n"
            f"What You Told Us: {simplify_medical_text(sections['subjective'])}\n\n"
            f"What We Found: {simplify_medical_text(sections['objective'])}\n\n"
            f"Our Assessment: {simplify_medical_text(sections['assessment'])}\n\n"
            f"Your Care Plan: {simplify_medical_text(sections['plan'])}\n\n"
            "Please follow the instructions given and contact us if you have any questions or concerns."
        )

    async def _generate(self, transcript: str) -> str:
        start_time = time.time()
        response_status = None
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.api_url,
                    json={
                        "inputs": SOAP_PROMPT.format(transcript=transcript),
                        "parameters": {
                            "max_length": settings.nlp_max_length,
                            "temperature": settings.nlp_temperature,
                            "do_sample": True,
                            "top_p": 0.9,
                            "return_full_text": False,
                        },
                    },
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            response_status = response.status_code
            response.raise_for_status()
            return _generated_text(response.json())
        finally:
            audit_logger.log_external_api_call(
                service="nlp",
                endpoint=self.api_url,
                response_status=response_status,
                response_time_ms=int((time.time() - start_time) * 1000),
            )

    def _fallback_note(self, transcript: str, start_time: float) -> SOAPNoteResult:
        fallback_total.labels(service="nlp").inc()
        return SOAPNoteResult(
            **soap_templates.soap_sections(transcript),
            **self._extracted_data(transcript),
            entities=soap_templates.extract_entities(transcript),
            confidence=FALLBACK_CONFIDENCE,
            processing_time_ms=int((time.time() - start_time) * 1000),
            model_version=self.model_version,
            used_fallback=True,
        )

    @staticmethod
    def _extracted_data(transcript: str) -> Dict[str, Any]:
        return {
            "medications": soap_templates.extract_medications(transcript),
            "diagnoses": soap_templates.extract_diagnoses(transcript),
            "recommendations": soap_templates.extract_recommendations(transcript),
            "follow_up": soap_templates.extract_follow_up(transcript),
        }


def _generated_text(payload: Any) -> str:
    """Pull the generated text out of an inference response"""
    if isinstance(payload, dict):
        if payload.get("error"):
            raise ValueError(f"Text-generation service error: {payload['error']}")
        item = payload
    elif isinstance(payload, list) and payload and isinstance(payload[0], dict):
        item = payload[0]
    else:
        raise ValueError("Unexpected text-generation response")
    return str(item.get("generated_text") or item.get("summary_text") or "")
