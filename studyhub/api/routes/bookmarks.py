"""
Bookmark Routes

Endpoints:
- GET /bookmarks - The student's bookmarks, newest first
- GET /bookmarks/subjects - Bookmarked subjects with their details
- GET /bookmarks/{item_id} - Whether an item is bookmarked
- POST /bookmarks/toggle - Add or remove a bookmark

Toggle never fails with a server error: the outcome, including failures and
offline mode, is reported in the body.
"""

from uuid import UUID

from fastapi import APIRouter

from studyhub.api.deps import Session
from studyhub.schemas.bookmarks import Bookmark, BookmarkStatus, BookmarkToggleRequest, BookmarkToggleResult
from studyhub.schemas.subjects import BookmarkedSubject

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.get("/", response_model=list[Bookmark])
async def list_bookmarks(session: Session) -> list[Bookmark]:
    return await session.data.fetch_bookmarks(session.user_id)


@router.get("/subjects", response_model=list[BookmarkedSubject])
async def list_bookmarked_subjects(session: Session) -> list[BookmarkedSubject]:
    return await session.data.bookmarked_subjects(session.user_id)


@router.get("/{item_id}", response_model=BookmarkStatus)
async def get_bookmark_status(item_id: UUID, session: Session) -> BookmarkStatus:
    bookmarked = await session.data.is_item_bookmarked(session.user_id, item_id)
    return BookmarkStatus(item_id=item_id, bookmarked=bookmarked)


@router.post("/toggle", response_model=BookmarkToggleResult)
async def toggle_bookmark(request: BookmarkToggleRequest, session: Session) -> BookmarkToggleResult:
    """
    Flip the bookmark on item_id.

    `currently_bookmarked` is the state the client is showing; the result's
    `action` says which way the bookmark went.
    """
    return await session.data.toggle_bookmark(
        session.user_id, request.item_id, request.currently_bookmarked
    )
