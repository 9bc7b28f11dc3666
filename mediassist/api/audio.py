"""
Audio upload, note generation and transcript routes
"""

from datetime import datetime
from typing import Optional

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    UploadFile,
    status,
)

from mediassist.api.deps import as_naive_utc, get_audio_processor, get_note_service, get_pipeline
from mediassist.core.security import get_current_user, get_repositories, require_role
from mediassist.db import Repositories
from mediassist.models.documents import TranscriptDocument, TranscriptStatus, UserDocument, UserRole
from mediassist.models.requests import GenerateNoteRequest
from mediassist.models.responses import (
    ErrorResponse,
    NoteResponse,
    TranscriptListResponse,
    TranscriptStatusResponse,
    UploadResult,
    pagination,
)
from mediassist.services.audio_processor import AudioProcessor
from mediassist.services.note_service import NoteService, note_view
from mediassist.services.pipeline import ConsultationPipeline

router = APIRouter(prefix="/api", tags=["audio"])


@router.post(
    "/upload-audio",
    response_model=UploadResult,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def upload_audio(
    request: Request,
    background_tasks: BackgroundTasks,
    doctor: UserDocument = Depends(require_role(UserRole.DOCTOR.value)),
    audio_processor: AudioProcessor = Depends(get_audio_processor),
    pipeline: ConsultationPipeline = Depends(get_pipeline),
    audio: Optional[UploadFile] = File(None),
    patientName: Optional[str] = Form(None),
    patientId: Optional[str] = Form(None),
    language: str = Form("en"),
):
    """
    Transcribe a consultation recording and generate its clinical note.
    Everything is validated before the first store write.
    """
    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No audio file provided")
    patient_name = (patientName or "").strip()
    if not patient_name:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Patient name is required")
    audio_processor.validate_language(language)
    content_type = audio_processor.validate_content_type(audio.content_type)

    audio_data = await audio.read()
    audio_processor.validate_size(audio_data)

    return await pipeline.process_upload(
        doctor=doctor,
        audio_data=audio_data,
        content_type=content_type,
        patient_name=patient_name,
        patient_id=(patientId or "").strip() or None,
        language=language,
        mode=request.app.state.note_generation_mode,
        background_tasks=background_tasks,
    )


@router.post("/generate-notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
async def generate_notes(
    body: GenerateNoteRequest,
    doctor: UserDocument = Depends(require_role(UserRole.DOCTOR.value)),
    note_service: NoteService = Depends(get_note_service),
):
    note = await note_service.generate_for_transcript(body.transcript_id, doctor, body.patient_name)
    return NoteResponse(message="Medical notes generated successfully", note=note_view(note, doctor))


async def _readable_transcript(transcript_id: str, user: UserDocument, repos: Repositories) -> TranscriptDocument:
    transcript = await repos.transcripts.get(transcript_id)
    if transcript is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Transcript not found")
    if transcript.doctor_id != user.id and (not transcript.patient_id or transcript.patient_id != user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return transcript


@router.get("/transcript/{transcript_id}/status", response_model=TranscriptStatusResponse)
async def transcript_status(
    transcript_id: str,
    user: UserDocument = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    transcript = await _readable_transcript(transcript_id, user, repos)
    return TranscriptStatusResponse(
        id=transcript.id,
        status=transcript.status,
        confidence=transcript.confidence,
        duration=transcript.duration,
        processing_time_ms=transcript.processing_metrics.processing_time_ms,
        error_details=transcript.error_details,
        created_at=transcript.created_at,
        updated_at=transcript.updated_at,
    )


@router.get("/transcript/{transcript_id}", response_model=TranscriptDocument)
async def get_transcript(
    transcript_id: str,
    user: UserDocument = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
):
    return await _readable_transcript(transcript_id, user, repos)


@router.get("/transcripts", response_model=TranscriptListResponse)
async def list_transcripts(
    user: UserDocument = Depends(get_current_user),
    repos: Repositories = Depends(get_repositories),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[TranscriptStatus] = Query(None, alias="status"),
    language: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
):
    query = {"doctor_id": user.id} if user.role == UserRole.DOCTOR.value else {"patient_id": user.id}
    if status_filter:
        query["status"] = status_filter.value
    if language:
        query["language"] = language
    if start_date or end_date:
        query["created_at"] = {}
        if start_date:
            query["created_at"]["$gte"] = as_naive_utc(start_date)
        if end_date:
            query["created_at"]["$lte"] = as_naive_utc(end_date)

    items, total = await repos.transcripts.page(query, page=page, limit=limit, sort=[("created_at", -1)])
    return TranscriptListResponse(items=items, pagination=pagination(page, limit, total))
