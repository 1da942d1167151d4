"""Subject routes."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from studyhub.api.deps import Session
from studyhub.schemas.notes import NoteWithSubject
from studyhub.schemas.subjects import Subject, SubjectWithBookmark

router = APIRouter(prefix="/subjects", tags=["subjects"])


@router.get("/mine", response_model=list[SubjectWithBookmark])
async def list_my_subjects(session: Session) -> list[SubjectWithBookmark]:
    """
    Subjects for the student's year and semester: their branch plus common ones.

    Empty when the profile is missing or onboarding is incomplete.
    """
    profile = await session.profile()
    return await session.data.subjects_with_bookmarks(profile, session.user_id)


@router.get("/", response_model=list[Subject])
async def list_subjects(session: Session) -> list[Subject]:
    """Every subject, by name (Explore filters, admin listing)."""
    return await session.data.list_subjects()


@router.get("/{subject_id}", response_model=Subject)
async def get_subject(subject_id: UUID, session: Session) -> Subject:
    subject = await session.data.get_subject(subject_id)
    if subject is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    return subject


@router.get("/{subject_id}/notes", response_model=list[NoteWithSubject])
async def list_subject_notes(subject_id: UUID, session: Session) -> list[NoteWithSubject]:
    """Notes uploaded for one subject, newest first."""
    return await session.data.list_notes(subject_id=subject_id)
