"""
Clinical note review routes
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from mediassist.api.deps import as_naive_utc, client_ip, get_note_service, get_translation_service
from mediassist.core.security import get_current_user, require_role
from mediassist.models.documents import NoteStatus, UserDocument, UserRole
from mediassist.models.requests import NoteTranslateRequest, NoteUpdateRequest, RejectNoteRequest
from mediassist.models.responses import NoteListResponse, NoteResponse, pagination
from mediassist.services.note_service import NoteService, note_view
from mediassist.services.translation_service import TranslationService

router = APIRouter(prefix="/api/notes", tags=["notes"])

require_doctor = require_role(UserRole.DOCTOR.value)


@router.get("", response_model=NoteListResponse)
async def list_notes(
    user: UserDocument = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[NoteStatus] = Query(None, alias="status"),
    patient_name: Optional[str] = Query(None),
    transcript_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
):
    """Doctors see their own notes; patients see approved notes about them"""
    items, total = await note_service.list_notes(
        user,
        page=page,
        limit=limit,
        status=status_filter.value if status_filter else None,
        patient_name=patient_name,
        transcript_id=transcript_id,
        start_date=as_naive_utc(start_date) if start_date else None,
        end_date=as_naive_utc(end_date) if end_date else None,
    )
    return NoteListResponse(items=items, pagination=pagination(page, limit, total))


@router.get("/{note_id}", response_model=NoteResponse)
async def get_note(
    note_id: str,
    request: Request,
    user: UserDocument = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service),
):
    return NoteResponse(note=await note_service.get_note(note_id, user, client_ip(request)))


@router.put("/{note_id}", response_model=NoteResponse)
async def update_note(
    note_id: str,
    body: NoteUpdateRequest,
    request: Request,
    doctor: UserDocument = Depends(require_doctor),
    note_service: NoteService = Depends(get_note_service),
):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    note = await note_service.update_note(note_id, doctor, changes, client_ip(request))
    return NoteResponse(message="Note updated successfully", note=note_view(note, doctor))


@router.put("/{note_id}/submit", response_model=NoteResponse)
async def submit_note(
    note_id: str,
    request: Request,
    doctor: UserDocument = Depends(require_doctor),
    note_service: NoteService = Depends(get_note_service),
):
    note = await note_service.submit_note(note_id, doctor, client_ip(request))
    return NoteResponse(message="Note submitted for review", note=note_view(note, doctor))


@router.put("/{note_id}/approve", response_model=NoteResponse)
async def approve_note(
    note_id: str,
    request: Request,
    doctor: UserDocument = Depends(require_doctor),
    note_service: NoteService = Depends(get_note_service),
):
    note = await note_service.approve_note(note_id, doctor, client_ip(request))
    return NoteResponse(message="Note approved successfully", note=note_view(note, doctor))


@router.put("/{note_id}/reject", response_model=NoteResponse)
async def reject_note(
    note_id: str,
    request: Request,
    body: Optional[RejectNoteRequest] = None,
    doctor: UserDocument = Depends(require_doctor),
    note_service: NoteService = Depends(get_note_service),
):
    note = await note_service.reject_note(note_id, doctor, body.reason if body else None, client_ip(request))
    return NoteResponse(message="Note rejected", note=note_view(note, doctor))


@router.post("/{note_id}/translate", response_model=NoteResponse)
async def translate_note(
    note_id: str,
    body: NoteTranslateRequest,
    request: Request,
    user: UserDocument = Depends(get_current_user),
    note_service: NoteService = Depends(get_note_service),
    translation_service: TranslationService = Depends(get_translation_service),
):
    if not translation_service.is_supported(body.target_language):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported language '{body.target_language}'",
        )
    note, result = await note_service.translate_note(note_id, user, body.target_language, client_ip(request))
    return NoteResponse(
        message=f"Summary translated to {result.target_language}",
        note=note_view(note, user),
    )
