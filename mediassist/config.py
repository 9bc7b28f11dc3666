"""
Central configuration for the MediAssist API
"""

from typing import List, Optional
from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class StoreBackend(str, Enum):
    MONGO = "mongo"
    MEMORY = "memory"


class NoteGenerationMode(str, Enum):
    INLINE = "inline"
    BACKGROUND = "background"


class Settings(BaseSettings):
    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # API Configuration
    api_title: str = Field(default="MediAssist API")
    api_description: str = Field(default="Consultation transcription and clinical note service")
    api_version: str = Field(default="1.0.0")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=5000)

    # Security
    jwt_secret_key: str = Field(...)
    token_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=7 * 24 * 60)

    # Document store
    store_backend: StoreBackend = StoreBackend.MONGO
    mongodb_uri: str = Field(default="mongodb://localhost:27017")
    mongodb_database: str = Field(default="mediassist")
    mongodb_max_pool_size: int = Field(default=10)
    mongodb_server_selection_timeout_ms: int = Field(default=5000)
    mongodb_socket_timeout_ms: int = Field(default=45000)
    store_connect_attempts: int = Field(default=3)

    # Audio upload limits
    max_file_size_mb: int = Field(default=50)
    supported_audio_formats: List[str] = Field(
        default=["audio/mpeg", "audio/wav", "audio/mp4", "audio/m4a", "audio/webm", "audio/ogg"]
    )
    supported_languages: List[str] = Field(default=["en", "es", "ur", "fr", "de"])

    # Pipeline
    note_generation_mode: NoteGenerationMode = NoteGenerationMode.INLINE

    # External inference services
    huggingface_api_key: Optional[str] = Field(default=None)
    stt_api_url: str = Field(
        default="https://api-inference.huggingface.co/models/openai/whisper-large-v3"
    )
    stt_model_version: str = Field(default="whisper-large-v3")
    stt_timeout: int = Field(default=60)
    nlp_api_url: str = Field(
        default="https://api-inference.huggingface.co/models/google/flan-t5-large"
    )
    nlp_model_version: str = Field(default="flan-t5-large")
    nlp_timeout: int = Field(default=60)
    nlp_max_length: int = Field(default=1000)
    nlp_temperature: float = Field(default=0.7)
    translation_api_url: str = Field(
        default="https://api-inference.huggingface.co/models/{model}"
    )
    translation_timeout: int = Field(default=30)
    tts_api_url: Optional[str] = Field(default=None)
    tts_api_key: Optional[str] = Field(default=None)
    tts_timeout: int = Field(default=30)

    # CORS Configuration
    cors_origins: List[str] = Field(default=["http://localhost:3000"])
    cors_allow_credentials: bool = Field(default=True)
    cors_allow_methods: List[str] = Field(default=["GET", "POST", "PUT", "DELETE", "OPTIONS"])
    cors_allow_headers: List[str] = Field(default=["Content-Type", "Authorization"])

    # Monitoring
    enable_metrics: bool = Field(default=True)

    # Audit Logging
    audit_log_enabled: bool = Field(default=True)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


# Global settings instance
settings = Settings()
