"""
Consultation pipeline: audio upload -> transcript -> clinical note.

The transcript is created as ``processing`` and updated exactly once, to
``completed`` or ``failed``. A failed note generation after a successful
transcript does not fail the upload; it is reported in the result.
"""

import time
from typing import Any, Dict, Optional

from fastapi import BackgroundTasks

from mediassist.config import NoteGenerationMode
from mediassist.core.errors import MediAssistError
from mediassist.core.logging import get_logger, audit_logger
from mediassist.core.metrics import audio_processing_duration, transcription_total
from mediassist.db import Repositories
from mediassist.models.documents import (
    TranscriptDocument,
    TranscriptProcessingMetrics,
    TranscriptStatus,
    UserDocument,
)
from mediassist.models.responses import UploadResult
from mediassist.services.audio_processor import AudioProcessor, new_audio_file_id, new_session_id
from mediassist.services.note_service import NoteService
from mediassist.services.stt_service import STTResult, STTService, audio_quality

logger = get_logger(__name__)

GENERATED = "generated"
FAILED = "failed"
SCHEDULED = "scheduled"
SKIPPED = "skipped"


class ConsultationPipeline:
    def __init__(
        self,
        repos: Repositories,
        audio_processor: AudioProcessor,
        stt_service: STTService,
        note_service: NoteService,
    ):
        self.repos = repos
        self.audio_processor = audio_processor
        self.stt_service = stt_service
        self.note_service = note_service

    async def process_upload(
        self,
        doctor: UserDocument,
        audio_data: bytes,
        content_type: str,
        patient_name: str,
        patient_id: Optional[str] = None,
        language: str = "en",
        mode: NoteGenerationMode = NoteGenerationMode.INLINE,
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> UploadResult:
        """Run an already validated upload through transcription and note generation"""
        start_time = time.time()
        session_id = new_session_id(doctor.id)
        transcript = TranscriptDocument(
            audio_file_id=new_audio_file_id(),
            doctor_id=doctor.id,
            patient_id=patient_id or None,
            patient_name=patient_name,
            session_id=session_id,
            language=language,
            status=TranscriptStatus.PROCESSING,
        )
        await self.repos.transcripts.create(transcript)
        logger.info(f"Transcript {transcript.id} created for session {session_id}")

        try:
            stt_result = await self.stt_service.transcribe(audio_data, content_type, language)
        except Exception as e:
            logger.error(f"Transcription raised for transcript {transcript.id}: {e}", exc_info=True)
            stt_result = STTResult(success=False, error="Transcription failed")
        transcript = await self._record_transcription(transcript, stt_result, audio_data)

        elapsed = time.time() - start_time
        audio_processing_duration.observe(elapsed)
        transcription_total.labels(status=transcript.status).inc()
        audit_logger.log_audio_processing(
            transcript_id=transcript.id,
            session_id=session_id,
            audio_size_bytes=len(audio_data),
            content_type=content_type,
            language=language,
            status=transcript.status,
            processing_time_ms=int(elapsed * 1000),
        )

        note_id = None
        note_error = None
        if transcript.status != TranscriptStatus.COMPLETED.value:
            outcome = SKIPPED
        elif mode == NoteGenerationMode.BACKGROUND and background_tasks is not None:
            background_tasks.add_task(self.note_service.generate_in_background, transcript, doctor.id)
            outcome = SCHEDULED
        else:
            try:
                note = await self.note_service.create_from_transcript(transcript, doctor.id)
                note_id = note.id
                outcome = GENERATED
            except MediAssistError as e:
                logger.error(f"Note generation failed for transcript {transcript.id}: {e.message}")
                note_error = e.message
                outcome = FAILED
            except Exception as e:
                logger.error(f"Note generation failed for transcript {transcript.id}: {e}", exc_info=True)
                note_error = "Note generation failed"
                outcome = FAILED

        completed = transcript.status == TranscriptStatus.COMPLETED.value
        return UploadResult(
            success=completed,
            message=_upload_message(completed, outcome),
            transcript_id=transcript.id,
            session_id=session_id,
            audio_file_id=transcript.audio_file_id,
            status=transcript.status,
            transcript=transcript.text if completed else None,
            confidence=transcript.confidence,
            duration=transcript.duration,
            error=transcript.error_details,
            note_id=note_id,
            note_generated=note_id is not None,
            note_generation=outcome,
            note_error=note_error,
        )

    async def _record_transcription(
        self,
        transcript: TranscriptDocument,
        stt_result: STTResult,
        audio_data: bytes,
    ) -> TranscriptDocument:
        """The single update moving a transcript out of ``processing``"""
        changes: Dict[str, Any] = {
            "processing_metrics": TranscriptProcessingMetrics(
                processing_time_ms=stt_result.processing_time_ms,
                model_version=self.stt_service.model_version,
                audio_quality=audio_quality(stt_result.confidence),
            ),
        }
        if stt_result.success:
            changes.update(
                status=TranscriptStatus.COMPLETED,
                text=stt_result.text,
                confidence=stt_result.confidence,
                duration=stt_result.duration or self.audio_processor.read_duration(audio_data),
                speaker_segments=stt_result.segments,
            )
        else:
            changes.update(
                status=TranscriptStatus.FAILED,
                error_details=stt_result.error or "Transcription failed",
            )

        updated = TranscriptDocument.model_validate({**transcript.model_dump(), **changes})
        await self.repos.transcripts.update(
            transcript.id,
            **{field: getattr(updated, field) for field in changes},
        )
        if not stt_result.success:
            logger.warning(f"Transcription failed for transcript {transcript.id}: {updated.error_details}")
        return updated


def _upload_message(completed: bool, outcome: str) -> str:
    if not completed:
        return "Audio processing failed"
    return {
        GENERATED: "Audio processed and notes generated successfully",
        SCHEDULED: "Audio processed; note generation scheduled",
        FAILED: "Audio processed; note generation failed",
    }[outcome]
