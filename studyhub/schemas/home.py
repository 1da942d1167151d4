"""Home dashboard schema."""

from studyhub.schemas.base import BaseSchema
from studyhub.schemas.students import Student
from studyhub.schemas.subjects import SubjectWithBookmark


class HomeDashboard(BaseSchema):
    profile: Student | None
    subjects: list[SubjectWithBookmark]
    is_admin: bool
    emergency_mode: bool
