"""Note schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from studyhub.schemas.base import BaseSchema


class SubjectSummary(BaseSchema):
    """Subject fields embedded in note listings."""

    id: UUID
    name: str
    branch: str
    academic_year: int
    semester: int


class Note(BaseSchema):
    """A row of the notes table."""

    id: UUID
    subject_id: UUID
    student_id: UUID | None = None
    title: str
    description: str | None = None
    file_url: str
    file_path: str | None = None
    unit_number: int | None = None
    approval_status: str = "pending"
    views: int = 0
    downloads: int = 0
    rating: float | None = None
    created_at: datetime
    updated_at: datetime | None = None


class NoteWithSubject(Note):
    subject: SubjectSummary | None = None


# Request schemas
class NoteUploadURLRequest(BaseModel):
    """Request for a presigned upload URL."""

    filename: str = Field(..., min_length=1, max_length=255)


class NoteUploadURLResponse(BaseModel):
    upload_url: str
    fields: dict
    file_path: str


class NoteCreate(BaseSchema):
    """
    Metadata submitted after the file is in storage.

    The subject is named rather than referenced: it is looked up by
    (name, branch, year, semester) and created when missing.
    """

    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    file_path: str = Field(..., min_length=1, max_length=1024)
    subject: str = Field(..., min_length=1, max_length=255)
    branch: str = Field(..., min_length=1, max_length=50)
    academic_year: int = Field(..., ge=1, le=6)
    semester: int = Field(..., ge=1, le=2)
    unit_number: int | None = Field(None, ge=1)


class NoteApprovalUpdate(BaseSchema):
    approval_status: str = Field(..., pattern="^(pending|approved|rejected)$")


class NoteDownloadResponse(BaseModel):
    file_url: str
    filename: str
