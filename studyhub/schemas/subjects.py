"""Subject schemas."""

from datetime import datetime
from uuid import UUID

from studyhub.schemas.base import BaseSchema


class Subject(BaseSchema):
    id: UUID
    name: str
    branch: str
    academic_year: int
    semester: int
    is_common: bool = False
    created_at: datetime


class SubjectWithBookmark(Subject):
    is_bookmarked: bool = False


class BookmarkedSubject(Subject):
    bookmark_created_at: datetime
