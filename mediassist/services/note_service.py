"""
Clinical note generation and review workflow.

Notes move draft -> pending -> approved | rejected (rejected notes can be
resubmitted). Approved notes are read-only. Every read and write appends to
the note's access log.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from mediassist.core.errors import (
    AccessDeniedError,
    BadRequestError,
    InvalidStateError,
    MediAssistError,
    NotFoundError,
)
from mediassist.core.logging import get_logger, audit_logger
from mediassist.core.metrics import note_generation_total
from mediassist.db import Repositories
from mediassist.models.documents import (
    AccessLogEntry,
    EditHistoryEntry,
    NoteAction,
    NoteDocument,
    NoteProcessingMetrics,
    NoteStatus,
    NOTE_CONTENT_FIELDS,
    PATIENT_VIEW_FIELDS,
    TranscriptDocument,
    TranscriptStatus,
    UserDocument,
    UserRole,
)
from mediassist.services.nlp_service import NLPService, SOAP_SECTIONS
from mediassist.services.translation_service import TranslationResult, TranslationService

logger = get_logger(__name__)

SUBMITTABLE_STATUSES = (NoteStatus.DRAFT.value, NoteStatus.REJECTED.value)


def note_view(note: NoteDocument, user: UserDocument) -> Dict[str, Any]:
    """Full note for doctors, the limited patient view for patients"""
    data = note.model_dump(mode="json")
    if user.role == UserRole.PATIENT.value:
        return {field: data[field] for field in PATIENT_VIEW_FIELDS}
    return data


def can_read(note: NoteDocument, user: UserDocument) -> bool:
    if note.doctor_id == user.id:
        return True
    return note.patient_id == user.id and note.status == NoteStatus.APPROVED.value


class NoteService:
    def __init__(
        self,
        repos: Repositories,
        nlp_service: NLPService,
        translation_service: TranslationService,
    ):
        self.repos = repos
        self.nlp_service = nlp_service
        self.translation_service = translation_service

    # --- Generation ---

    async def create_from_transcript(
        self,
        transcript: TranscriptDocument,
        user_id: str,
        patient_name: Optional[str] = None,
    ) -> NoteDocument:
        """
        Generate and store a pending note for a completed transcript.
        Raises InvalidStateError for any other transcript status and
        NoteGenerationError when the text-generation service is unusable.
        """
        if transcript.status != TranscriptStatus.COMPLETED.value:
            raise InvalidStateError("Transcript is not ready for note generation")

        try:
            soap = await self.nlp_service.generate_soap_note(transcript.text)
        except MediAssistError:
            note_generation_total.labels(outcome="failed").inc()
            raise

        sections = {name: getattr(soap, name) for name in SOAP_SECTIONS}
        note = NoteDocument(
            transcript_id=transcript.id,
            doctor_id=transcript.doctor_id,
            patient_id=transcript.patient_id,
            patient_name=(patient_name or "").strip() or transcript.patient_name,
            session_id=transcript.session_id,
            **sections,
            medications=soap.medications,
            diagnoses=soap.diagnoses,
            recommendations=soap.recommendations,
            follow_up=soap.follow_up,
            patient_summary=self.nlp_service.generate_patient_summary(sections),
            status=NoteStatus.PENDING,
            processing_metrics=NoteProcessingMetrics(
                nlp_processing_time_ms=soap.processing_time_ms,
                confidence_score=soap.confidence,
                model_version=soap.model_version,
                extracted_entities=soap.entities,
            ),
            access_log=[AccessLogEntry(user_id=user_id, action=NoteAction.CREATED)],
        )
        await self.repos.notes.create(note)

        note_generation_total.labels(outcome="fallback" if soap.used_fallback else "generated").inc()
        audit_logger.log_note_action(
            note_id=note.id,
            user_id=user_id,
            action=NoteAction.CREATED.value,
            transcript_id=transcript.id,
            used_fallback=soap.used_fallback,
        )
        logger.info(f"Note {note.id} created for transcript {transcript.id}")
        return note

    async def generate_for_transcript(
        self,
        transcript_id: str,
        doctor: UserDocument,
        patient_name: Optional[str] = None,
    ) -> NoteDocument:
        transcript = await self.repos.transcripts.get(transcript_id)
        if transcript is None:
            raise NotFoundError("Transcript not found")
        if transcript.doctor_id != doctor.id:
            raise AccessDeniedError("Access denied")
        return await self.create_from_transcript(transcript, doctor.id, patient_name)

    async def generate_in_background(self, transcript: TranscriptDocument, user_id: str):
        """Detached generation after an upload; the result is only visible in the store"""
        try:
            await self.create_from_transcript(transcript, user_id)
        except Exception as e:
            logger.error(f"Background note generation failed for transcript {transcript.id}: {e}", exc_info=True)

    # --- Reads ---

    async def get_note(self, note_id: str, user: UserDocument, ip_address: Optional[str] = None) -> Dict[str, Any]:
        note = await self._get(note_id)
        if not can_read(note, user):
            raise AccessDeniedError("Access denied")
        await self._log_access(note, user, NoteAction.VIEWED, ip_address)
        return note_view(note, user)

    async def list_notes(
        self,
        user: UserDocument,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        patient_name: Optional[str] = None,
        transcript_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query: Dict[str, Any] = {}
        if user.role == UserRole.DOCTOR.value:
            query["doctor_id"] = user.id
            if status:
                query["status"] = status
            if patient_name:
                query["patient_name"] = {"$regex": re.escape(patient_name.strip()), "$options": "i"}
        else:
            # Patients only ever see approved notes about themselves
            query["patient_id"] = user.id
            query["status"] = NoteStatus.APPROVED.value

        if transcript_id:
            query["transcript_id"] = transcript_id
        if start_date or end_date:
            query["date_of_service"] = {}
            if start_date:
                query["date_of_service"]["$gte"] = start_date
            if end_date:
                query["date_of_service"]["$lte"] = end_date

        notes, total = await self.repos.notes.page(
            query, page=page, limit=limit, sort=[("date_of_service", -1)]
        )
        for note in notes:
            await self._log_access(note, user, NoteAction.VIEWED)
        return [note_view(note, user) for note in notes], total

    # --- Edits and workflow ---

    async def update_note(
        self,
        note_id: str,
        doctor: UserDocument,
        changes: Dict[str, Any],
        ip_address: Optional[str] = None,
    ) -> NoteDocument:
        note = await self._get_owned(note_id, doctor, "edit")
        if note.status == NoteStatus.APPROVED.value:
            raise InvalidStateError("Cannot edit approved notes")
        if not changes:
            raise BadRequestError("No editable fields provided")
        readonly = sorted(set(changes) - set(NOTE_CONTENT_FIELDS))
        if readonly:
            raise BadRequestError(f"Fields cannot be edited: {', '.join(readonly)}")

        updated = NoteDocument.model_validate({**note.model_dump(), **changes})
        entry = EditHistoryEntry(
            edited_by=doctor.id,
            changes=f"Updated: {', '.join(changes)}",
            version=note.current_version + 1,
        )
        # An approval committed after the read leaves the note untouched
        applied = await self.repos.notes.update(
            note.id,
            where={"status": {"$ne": NoteStatus.APPROVED.value}},
            push={
                "edit_history": entry,
                "access_log": AccessLogEntry(user_id=doctor.id, action=NoteAction.EDITED, ip_address=ip_address),
            },
            **{field: getattr(updated, field) for field in changes},
        )
        if not applied:
            raise InvalidStateError("Cannot edit approved notes")
        audit_logger.log_note_action(
            note_id=note.id,
            user_id=doctor.id,
            action=NoteAction.EDITED.value,
            fields=list(changes),
            version=entry.version,
        )
        return await self._get(note.id)

    async def submit_note(self, note_id: str, doctor: UserDocument, ip_address: Optional[str] = None) -> NoteDocument:
        note = await self._get_owned(note_id, doctor, "submit")
        if note.status not in SUBMITTABLE_STATUSES:
            raise InvalidStateError(f"Cannot submit a note with status '{note.status}'")
        return await self._transition(note, doctor, NoteAction.SUBMITTED, ip_address, status=NoteStatus.PENDING.value)

    async def approve_note(self, note_id: str, doctor: UserDocument, ip_address: Optional[str] = None) -> NoteDocument:
        note = await self._get_owned(note_id, doctor, "approve")
        if note.status == NoteStatus.APPROVED.value:
            raise InvalidStateError("Note is already approved")
        if note.status != NoteStatus.PENDING.value:
            raise InvalidStateError("Only pending notes can be approved")
        return await self._transition(
            note,
            doctor,
            NoteAction.APPROVED,
            ip_address,
            status=NoteStatus.APPROVED.value,
            approved_by=doctor.id,
            approved_at=datetime.utcnow(),
        )

    async def reject_note(
        self,
        note_id: str,
        doctor: UserDocument,
        reason: Optional[str],
        ip_address: Optional[str] = None,
    ) -> NoteDocument:
        reason = (reason or "").strip()
        if not reason:
            raise BadRequestError("Rejection reason is required")
        note = await self._get_owned(note_id, doctor, "reject")
        if note.status == NoteStatus.APPROVED.value:
            raise InvalidStateError("Cannot reject approved notes")
        return await self._transition(
            note,
            doctor,
            NoteAction.REJECTED,
            ip_address,
            status=NoteStatus.REJECTED.value,
            rejection_reason=reason,
        )

    async def translate_note(
        self,
        note_id: str,
        user: UserDocument,
        target_language: str,
        ip_address: Optional[str] = None,
    ) -> Tuple[NoteDocument, TranslationResult]:
        """Translate the patient summary and keep it on the note. Not a content edit."""
        note = await self._get(note_id)
        if not can_read(note, user):
            raise AccessDeniedError("Access denied")

        result = await self.translation_service.translate_summary(note.patient_summary, target_language)
        translations = {**note.translations, target_language: result.translated_text}
        await self.repos.notes.update(
            note.id,
            push={"access_log": AccessLogEntry(user_id=user.id, action=NoteAction.TRANSLATED, ip_address=ip_address)},
            translations=translations,
        )
        audit_logger.log_note_action(
            note_id=note.id,
            user_id=user.id,
            action=NoteAction.TRANSLATED.value,
            target_language=target_language,
            provider=result.provider,
        )
        return await self._get(note.id), result

    # --- Helpers ---

    async def _get(self, note_id: str) -> NoteDocument:
        note = await self.repos.notes.get(note_id)
        if note is None:
            raise NotFoundError("Note not found")
        return note

    async def _get_owned(self, note_id: str, doctor: UserDocument, verb: str) -> NoteDocument:
        note = await self._get(note_id)
        if note.doctor_id != doctor.id:
            raise AccessDeniedError(f"You can only {verb} your own notes")
        return note

    async def _transition(
        self,
        note: NoteDocument,
        doctor: UserDocument,
        action: NoteAction,
        ip_address: Optional[str],
        **fields: Any,
    ) -> NoteDocument:
        NoteDocument.model_validate({**note.model_dump(), **fields})
        applied = await self.repos.notes.update(
            note.id,
            where={"status": note.status},
            push={"access_log": AccessLogEntry(user_id=doctor.id, action=action, ip_address=ip_address)},
            **fields,
        )
        if not applied:
            raise InvalidStateError("Note status changed, reload and retry")
        audit_logger.log_note_action(
            note_id=note.id,
            user_id=doctor.id,
            action=action.value,
            from_status=note.status,
            to_status=fields["status"],
        )
        return await self._get(note.id)

    async def _log_access(
        self,
        note: NoteDocument,
        user: UserDocument,
        action: NoteAction,
        ip_address: Optional[str] = None,
    ):
        await self.repos.notes.update(
            note.id,
            push={"access_log": AccessLogEntry(user_id=user.id, action=action, ip_address=ip_address)},
            touch=False,
        )
