"""
Structured logging setup for MediAssist
"""

import logging
from datetime import datetime
from typing import Optional

import structlog

from mediassist.config import settings, Environment


def setup_logging():
    """Configure structlog once for the whole process"""

    timestamper = structlog.processors.TimeStamper(fmt="ISO")

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        timestamper,
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.environment == Environment.DEVELOPMENT:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.extend([
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer()
        ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None):
    """Return a configured logger"""
    return structlog.get_logger(name or __name__)


class AuditLogger:
    """Logger for audit events (requests, uploads, provider calls, note workflow)"""

    def __init__(self):
        self.logger = get_logger("audit")

    @property
    def enabled(self) -> bool:
        return settings.audit_log_enabled

    def log_api_request(
        self,
        request_id: str,
        endpoint: str,
        method: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
        **kwargs
    ):
        if not self.enabled:
            return
        self.logger.info(
            "api_request",
            request_id=request_id,
            endpoint=endpoint,
            method=method,
            user_agent=user_agent,
            ip_address=ip_address,
            timestamp=datetime.utcnow().isoformat(),
            **kwargs
        )

    def log_audio_processing(
        self,
        transcript_id: str,
        session_id: str,
        audio_size_bytes: int,
        content_type: str,
        language: str,
        status: str,
        processing_time_ms: int,
        **kwargs
    ):
        if not self.enabled:
            return
        self.logger.info(
            "audio_processing",
            transcript_id=transcript_id,
            session_id=session_id,
            audio_size_bytes=audio_size_bytes,
            content_type=content_type,
            language=language,
            status=status,
            processing_time_ms=processing_time_ms,
            timestamp=datetime.utcnow().isoformat(),
            **kwargs
        )

    def log_external_api_call(
        self,
        service: str,
        endpoint: str,
        response_status: Optional[int],
        response_time_ms: int,
        **kwargs
    ):
        if not self.enabled:
            return
        self.logger.info(
            "external_api_call",
            service=service,
            endpoint=endpoint,
            response_status=response_status,
            response_time_ms=response_time_ms,
            timestamp=datetime.utcnow().isoformat(),
            **kwargs
        )

    def log_note_action(
        self,
        note_id: str,
        user_id: str,
        action: str,
        **kwargs
    ):
        if not self.enabled:
            return
        self.logger.info(
            "note_action",
            note_id=note_id,
            user_id=user_id,
            action=action,
            timestamp=datetime.utcnow().isoformat(),
            **kwargs
        )

    def log_error(
        self,
        request_id: str,
        error_type: str,
        error_message: str,
        stack_trace: str = None,
        **kwargs
    ):
        self.logger.error(
            "error_event",
            request_id=request_id,
            error_type=error_type,
            error_message=error_message,
            stack_trace=stack_trace,
            timestamp=datetime.utcnow().isoformat(),
            **kwargs
        )


# Global audit logger instance
audit_logger = AuditLogger()
