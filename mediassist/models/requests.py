"""
Pydantic models for API requests
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from mediassist.models.documents import Diagnosis, UserRole, VitalSigns


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, description="Display name")
    email: str = Field(min_length=3, description="Login e-mail, stored lower-cased")
    password: str = Field(min_length=6, description="Plain password, at least 6 characters")
    role: UserRole

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("Invalid e-mail address")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class GenerateNoteRequest(BaseModel):
    transcript_id: str = Field(description="Completed transcript to generate the note from")
    patient_name: Optional[str] = Field(default=None, description="Overrides the name stored on the transcript")


class NoteUpdateRequest(BaseModel):
    """Content edits; unset fields are left untouched"""
    subjective: Optional[str] = Field(default=None, min_length=1)
    objective: Optional[str] = Field(default=None, min_length=1)
    assessment: Optional[str] = Field(default=None, min_length=1)
    plan: Optional[str] = Field(default=None, min_length=1)
    medications: Optional[List[str]] = None
    diagnoses: Optional[List[Diagnosis]] = None
    recommendations: Optional[List[str]] = None
    follow_up: Optional[str] = None
    vital_signs: Optional[VitalSigns] = None
    patient_summary: Optional[str] = Field(default=None, min_length=1)


class RejectNoteRequest(BaseModel):
    reason: Optional[str] = Field(default=None, description="Why the note was rejected (required)")


class NoteTranslateRequest(BaseModel):
    target_language: str = Field(min_length=2)


class TranslateRequest(BaseModel):
    text: str = Field(min_length=1, max_length=5000)
    target_language: str = Field(min_length=2)
    source_language: str = Field(default="en", min_length=2)


class SummaryTranslateRequest(BaseModel):
    summary_text: str = Field(min_length=1, max_length=5000)
    target_language: str = Field(min_length=2)


class TTSRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)
    language: str = Field(default="en")
    voice: str = Field(default="default")
    speed: float = Field(default=1.0, description="Clamped to 0.5 - 2.0")


class TTSSummaryRequest(BaseModel):
    summary_text: str = Field(min_length=1, max_length=2000)
    language: str = Field(default="en")
    patient_friendly: bool = Field(default=True)
