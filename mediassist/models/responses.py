"""
Pydantic models for API responses
"""

from typing import Optional, Dict, Any, List
from datetime import datetime

from pydantic import BaseModel, Field

from mediassist.models.documents import (
    TranscriptDocument,
    UserDocument,
    UserPreferences,
    UserProfile,
)


class UserPublic(BaseModel):
    """User account without credentials"""
    id: str
    name: str
    email: str
    role: str
    profile: UserProfile
    preferences: UserPreferences
    last_login: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_document(cls, user: UserDocument) -> "UserPublic":
        return cls(**user.model_dump(exclude={"password_hash", "is_active", "updated_at"}))


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserPublic


class UploadResult(BaseModel):
    """Outcome of an audio upload"""
    success: bool = Field(description="False only when transcription failed")
    message: str
    transcript_id: str
    session_id: str
    audio_file_id: str
    status: str = Field(description="Transcript status (completed/failed)")
    transcript: Optional[str] = Field(default=None, description="Transcribed text, null on failure")
    confidence: float
    duration: float
    error: Optional[str] = Field(default=None, description="Transcription error, if any")
    note_id: Optional[str] = None
    note_generated: bool = False
    note_generation: str = Field(description="generated | failed | scheduled | skipped")
    note_error: Optional[str] = None


class TranscriptStatusResponse(BaseModel):
    id: str
    status: str
    confidence: float
    duration: float
    processing_time_ms: int
    error_details: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    current: int
    pages: int
    total: int


class TranscriptListResponse(BaseModel):
    items: List[TranscriptDocument]
    pagination: Pagination


class NoteListResponse(BaseModel):
    items: List[Dict[str, Any]] = Field(description="Full notes for doctors, patient view for patients")
    pagination: Pagination


class NoteResponse(BaseModel):
    message: Optional[str] = None
    note: Dict[str, Any]


class TranslationResponse(BaseModel):
    original_text: str
    translated_text: str
    source_language: str
    target_language: str
    confidence: float
    processing_time_ms: int
    provider: str


class LanguageInfo(BaseModel):
    code: str
    name: str
    native_name: str


class VoiceInfo(BaseModel):
    id: str
    name: str
    language: str
    gender: str
    description: str


class HealthCheckResponse(BaseModel):
    status: str = Field(description="Service status (healthy/unhealthy)")
    timestamp: datetime
    version: str
    uptime_seconds: int


class ErrorResponse(BaseModel):
    """Body of generic server errors"""
    error: str
    message: str
    request_id: Optional[str] = None
    timestamp: datetime


def pagination(page: int, limit: int, total: int) -> Pagination:
    limit = max(limit, 1)
    return Pagination(current=max(page, 1), pages=(total + limit - 1) // limit, total=total)
