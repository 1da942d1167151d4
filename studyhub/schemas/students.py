"""Student profile schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from studyhub.schemas.base import BaseSchema


class Student(BaseSchema):
    """A row of the students table."""

    id: UUID
    full_name: str
    email: str | None = None
    academic_year: int | None = None
    semester: int | None = None
    branch: str | None = None
    is_admin: bool = False
    created_at: datetime

    @property
    def needs_onboarding(self) -> bool:
        """True until branch, year and semester are all set."""
        return not (self.branch and self.academic_year and self.semester)


class StudentProfileUpdate(BaseSchema):
    """Onboarding / profile edit form."""

    full_name: str | None = Field(None, min_length=1, max_length=255)
    academic_year: int = Field(..., ge=1, le=6)
    semester: int = Field(..., ge=1, le=2)
    branch: str = Field(..., min_length=1, max_length=50)
