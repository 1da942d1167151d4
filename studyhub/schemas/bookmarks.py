"""Bookmark schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from studyhub.schemas.base import BaseSchema


class Bookmark(BaseSchema):
    """
    Normalised bookmark.

    item_id is the single logical target; note_id/subject_id echo whichever
    column the stored row actually used.
    """

    id: UUID
    user_id: UUID
    item_id: UUID
    note_id: UUID | None = None
    subject_id: UUID | None = None
    created_at: datetime | None = None


class BookmarkToggleRequest(BaseSchema):
    item_id: UUID
    currently_bookmarked: bool


class BookmarkStatus(BaseSchema):
    item_id: UUID
    bookmarked: bool


class BookmarkToggleResult(BaseSchema):
    success: bool
    action: Literal["added", "removed"]
    message: str
