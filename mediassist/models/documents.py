"""
Document models persisted in the store.

Every write goes through one of these models, so the store only ever sees
validated documents. ``Settings.name`` is the collection name and
``Settings.indexes`` the indexes created at startup.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return uuid.uuid4().hex


class UserRole(str, Enum):
    DOCTOR = "doctor"
    PATIENT = "patient"


class TranscriptStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class NoteStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AudioQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class TranscriptLanguage(str, Enum):
    EN = "en"
    ES = "es"
    UR = "ur"
    FR = "fr"
    DE = "de"


class NoteAction(str, Enum):
    CREATED = "created"
    VIEWED = "viewed"
    EDITED = "edited"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    TRANSLATED = "translated"


class StoreModel(BaseModel):
    model_config = ConfigDict(use_enum_values=True, validate_assignment=True)


# --- Users ---

class UserProfile(StoreModel):
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class UserPreferences(StoreModel):
    language: TranscriptLanguage = TranscriptLanguage.EN


class UserDocument(StoreModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password_hash: str
    role: UserRole
    is_active: bool = True
    last_login: Optional[datetime] = None
    profile: UserProfile = Field(default_factory=UserProfile)
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "users"
        indexes = [
            {"keys": [("email", 1)], "unique": True},
            {"keys": [("role", 1)]},
        ]


# --- Transcripts ---

class SpeakerSegment(StoreModel):
    speaker: str
    text: str
    start_time: float = Field(ge=0)
    end_time: float = Field(ge=0)
    confidence: float = Field(default=0.0, ge=0, le=1)


class TranscriptProcessingMetrics(StoreModel):
    processing_time_ms: int = Field(default=0, ge=0)
    model_version: str = "whisper-large-v3"
    audio_quality: AudioQuality = AudioQuality.GOOD


class TranscriptDocument(StoreModel):
    id: str = Field(default_factory=new_id)
    audio_file_id: str
    text: str = ""
    confidence: float = Field(default=0.0, ge=0, le=1)
    duration: float = Field(default=0.0, ge=0)
    language: TranscriptLanguage = TranscriptLanguage.EN
    speaker_segments: List[SpeakerSegment] = Field(default_factory=list)
    processing_metrics: TranscriptProcessingMetrics = Field(default_factory=TranscriptProcessingMetrics)
    doctor_id: str
    patient_id: Optional[str] = None
    patient_name: str
    session_id: str
    status: TranscriptStatus = TranscriptStatus.PROCESSING
    error_details: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "transcripts"
        indexes = [
            {"keys": [("doctor_id", 1), ("created_at", -1)]},
            {"keys": [("patient_id", 1), ("created_at", -1)]},
            {"keys": [("session_id", 1)]},
            {"keys": [("status", 1), ("created_at", -1)]},
            {"keys": [("audio_file_id", 1)]},
        ]


# --- Clinical notes ---

class Diagnosis(StoreModel):
    code: str
    description: str
    type: str = Field(default="primary", pattern="^(primary|secondary)$")


class ExtractedEntity(StoreModel):
    entity: str
    type: str = Field(pattern="^(medication|diagnosis|symptom|procedure)$")
    confidence: float = Field(ge=0, le=1)


class NoteProcessingMetrics(StoreModel):
    nlp_processing_time_ms: int = Field(default=0, ge=0)
    confidence_score: float = Field(default=0.0, ge=0, le=1)
    model_version: str = "flan-t5-large"
    extracted_entities: List[ExtractedEntity] = Field(default_factory=list)


class VitalSigns(StoreModel):
    """Vitals recorded by the doctor; every reading is optional"""
    blood_pressure: Optional[str] = Field(default=None, max_length=20)
    heart_rate: Optional[float] = Field(default=None, ge=0)
    temperature: Optional[float] = Field(default=None, ge=0)
    respiratory_rate: Optional[float] = Field(default=None, ge=0)
    oxygen_saturation: Optional[float] = Field(default=None, ge=0, le=100)
    weight: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    bmi: Optional[float] = Field(default=None, ge=0)


class EditHistoryEntry(StoreModel):
    edited_by: str
    edited_at: datetime = Field(default_factory=datetime.utcnow)
    changes: str
    version: int = Field(ge=1)


class AccessLogEntry(StoreModel):
    user_id: str
    action: NoteAction
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    ip_address: Optional[str] = None


class NoteDocument(StoreModel):
    id: str = Field(default_factory=new_id)
    transcript_id: str
    doctor_id: str
    patient_id: Optional[str] = None
    patient_name: str = Field(min_length=1)
    date_of_service: datetime = Field(default_factory=datetime.utcnow)
    session_id: str

    subjective: str = Field(min_length=1)
    objective: str = Field(min_length=1)
    assessment: str = Field(min_length=1)
    plan: str = Field(min_length=1)

    medications: List[str] = Field(default_factory=list)
    diagnoses: List[Diagnosis] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    follow_up: str = ""
    vital_signs: VitalSigns = Field(default_factory=VitalSigns)

    patient_summary: str = Field(min_length=1)
    translations: Dict[str, str] = Field(default_factory=dict)

    status: NoteStatus = NoteStatus.DRAFT
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    edit_history: List[EditHistoryEntry] = Field(default_factory=list)

    processing_metrics: NoteProcessingMetrics = Field(default_factory=NoteProcessingMetrics)
    access_log: List[AccessLogEntry] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "notes"
        indexes = [
            {"keys": [("doctor_id", 1), ("created_at", -1)]},
            {"keys": [("patient_id", 1), ("date_of_service", -1)]},
            {"keys": [("transcript_id", 1)]},
            {"keys": [("session_id", 1)]},
            {"keys": [("status", 1), ("created_at", -1)]},
            {"keys": [("date_of_service", -1)]},
        ]

    @property
    def current_version(self) -> int:
        if not self.edit_history:
            return 1
        return max(entry.version for entry in self.edit_history)


# Fields a doctor may change through a note edit
NOTE_CONTENT_FIELDS = (
    "subjective",
    "objective",
    "assessment",
    "plan",
    "medications",
    "diagnoses",
    "recommendations",
    "follow_up",
    "vital_signs",
    "patient_summary",
)

# Fields a patient sees in notes shared with them
PATIENT_VIEW_FIELDS = (
    "id",
    "patient_name",
    "date_of_service",
    "patient_summary",
    "recommendations",
    "follow_up",
    "translations",
    "status",
    "doctor_id",
    "created_at",
)
