"""View history schemas."""

from datetime import datetime
from uuid import UUID

from studyhub.schemas.base import BaseSchema
from studyhub.schemas.notes import SubjectSummary


class HistoryEntry(BaseSchema):
    """A viewed note with the subject it belongs to."""

    id: UUID
    title: str
    subject: SubjectSummary
    viewed_at: datetime
