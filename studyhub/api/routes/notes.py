"""Note routes: explore, detail, upload, view/download tracking, moderation."""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from studyhub.api.deps import AdminSession, Session
from studyhub.config import sanitize_error
from studyhub.schemas.common import OperationResult
from studyhub.schemas.notes import (
    Note,
    NoteApprovalUpdate,
    NoteCreate,
    NoteDownloadResponse,
    NoteUploadURLRequest,
    NoteUploadURLResponse,
    NoteWithSubject,
)
from studyhub.services.pdf_processor import pdf_processor
from studyhub.services.storage import NoteStorage, StorageError, build_note_path, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notes", tags=["notes"])

Storage = Annotated[NoteStorage, Depends(get_storage)]


def _offline(action: str = "Uploads") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"{action} are unavailable in offline mode",
    )


# =============================================================================
# BROWSING
# =============================================================================


@router.get("/", response_model=list[NoteWithSubject])
async def list_notes(
    session: Session,
    q: str | None = None,
    subject_id: UUID | None = None,
    branch: str | None = None,
) -> list[NoteWithSubject]:
    """
    Explore notes, newest first.

    Filters:
    - q: case-insensitive match on title or description
    - subject_id: notes of one subject
    - branch: notes whose subject belongs to this branch
    """
    return await session.data.list_notes(search=q, subject_id=subject_id, branch=branch)


@router.get("/{note_id}", response_model=NoteWithSubject)
async def get_note(note_id: UUID, session: Session) -> NoteWithSubject:
    note = await session.data.get_note(note_id)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note


# =============================================================================
# UPLOAD
# =============================================================================


@router.post("/upload-url", response_model=NoteUploadURLResponse)
async def get_upload_url(
    request: NoteUploadURLRequest,
    session: Session,
    storage: Storage,
) -> NoteUploadURLResponse:
    """
    Generate a presigned URL for a direct upload to storage.

    Flow:
    1. Client calls this endpoint with the filename
    2. Client uploads the file to the returned URL
    3. Client calls POST /notes with the returned file_path and the note details
    """
    if session.data.offline:
        raise _offline()

    file_path = build_note_path(session.user_id, request.filename)
    try:
        presigned = await storage.generate_presigned_upload_url(file_path)
    except StorageError as e:
        logger.error("Could not presign upload for %s: %s", file_path, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=sanitize_error(e, generic_message="File storage is unavailable."),
        )

    return NoteUploadURLResponse(
        upload_url=presigned["url"],
        fields=presigned["fields"],
        file_path=file_path,
    )


@router.post("/", response_model=Note, status_code=status.HTTP_201_CREATED)
async def create_note(data: NoteCreate, session: Session, storage: Storage) -> Note:
    """
    Register an uploaded file as a note awaiting approval.

    The subject is found by (name, branch, year, semester) or created.
    Files that are not readable PDFs are deleted from storage and rejected.
    """
    if session.data.offline:
        raise _offline()

    if not data.file_path.startswith(f"notes/{session.user_id}/"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="File does not belong to you",
        )
    if not storage.exists(data.file_path):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Uploaded file not found. Please upload the file first.",
        )

    try:
        file_bytes = await storage.download(data.file_path)
        info = await pdf_processor.inspect(file_bytes)
        if not info.valid:
            logger.info("Rejecting %s: %s", data.file_path, info.error)
            await storage.delete(data.file_path)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="The uploaded file is not a valid PDF.",
            )
    except StorageError as e:
        logger.error("Storage failure while checking %s: %s", data.file_path, e, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=sanitize_error(e, generic_message="File storage is unavailable."),
        )
    logger.info("Accepted %s (%d pages)", data.file_path, info.page_count)

    subject = await session.data.find_or_create_subject(
        data.subject, data.branch, data.academic_year, data.semester
    )
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to upload note: could not resolve the subject.",
        )

    note = await session.data.create_note(
        session.user_id,
        data,
        subject_id=subject.id,
        file_url=storage.public_url(data.file_path),
    )
    if note is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to upload note. Please try again.",
        )
    return note


# =============================================================================
# TRACKING
# =============================================================================


@router.post("/{note_id}/view", response_model=OperationResult)
async def record_view(note_id: UUID, session: Session) -> OperationResult:
    """Add the note to the student's history and count the view."""
    return await session.data.record_view(session.user_id, note_id)


@router.post("/{note_id}/download", response_model=NoteDownloadResponse)
async def download_note(note_id: UUID, session: Session) -> NoteDownloadResponse:
    """Count a download and hand back the file URL with a suggested filename."""
    if session.data.offline:
        raise _offline("Downloads")
    note = await session.data.get_note(note_id)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")

    result = await session.data.record_download(note_id)
    if not result.success:
        logger.warning("Download of note %s not counted: %s", note_id, result.message)

    filename = note.file_url.rsplit("/", 1)[-1] or f"{note.title}.pdf"
    return NoteDownloadResponse(file_url=note.file_url, filename=filename)


# =============================================================================
# MODERATION
# =============================================================================


@router.patch("/{note_id}/approval", response_model=Note)
async def set_approval(note_id: UUID, data: NoteApprovalUpdate, session: AdminSession) -> Note:
    """Approve or reject an uploaded note (admin only)."""
    note = await session.data.set_note_approval(note_id, data.approval_status)
    if note is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note
