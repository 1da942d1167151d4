"""
Bookmark access with dual-key resolution.

A bookmark row references its target through note_id or subject_id; which
one depends on when (and against which schema revision) it was written, and
some deployments only have one of the two columns. Every lookup and
mutation therefore probes both keys and normalises the result to a single
`item_id`.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from studyhub.data.errors import ConstraintError, SchemaMismatchError
from studyhub.data.gateway import DataBackend, Query
from studyhub.data.resilience import ResilientCaller, RetryPolicy
from studyhub.schemas.bookmarks import Bookmark, BookmarkToggleResult
from studyhub.schemas.common import OperationResult
from studyhub.schemas.subjects import BookmarkedSubject

logger = logging.getLogger(__name__)

BOOKMARK_KEYS = ("note_id", "subject_id")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_bookmark(row: Mapping[str, Any]) -> Bookmark | None:
    """Collapse whichever key the row used into item_id. Rows with no target are dropped."""
    note_id = row.get("note_id")
    subject_id = row.get("subject_id")
    item_id = note_id or subject_id
    if item_id is None:
        return None
    return Bookmark(
        id=row["id"],
        user_id=row["user_id"],
        item_id=item_id,
        note_id=note_id,
        subject_id=subject_id,
        created_at=row.get("created_at"),
    )


def is_bookmarked(bookmarks: Iterable[Bookmark], item_id: UUID) -> bool:
    """True if either key of any bookmark points at item_id."""
    return any(b.note_id == item_id or b.subject_id == item_id for b in bookmarks)


class BookmarkStore:
    def __init__(
        self,
        backend: DataBackend,
        caller: ResilientCaller,
        *,
        write_policy: RetryPolicy | None = None,
    ):
        self.backend = backend
        self.caller = caller
        self.write_policy = write_policy

    async def _probe(self, user_id: UUID, key: str) -> list[dict[str, Any]] | None:
        """Rows stored under one key, or None if that key could not be queried."""
        query = Query(
            table="bookmarks",
            filters={"user_id": user_id},
            columns=("id", "user_id", key, "created_at"),
            order_by="created_at",
            descending=True,
        )
        try:
            return await self.caller.call(
                lambda: self.backend.select(query),
                default=None,
                description=f"fetch bookmarks by {key}",
                propagate=(SchemaMismatchError,),
            )
        except SchemaMismatchError as e:
            logger.info("Bookmarks cannot be read by %s: %s", key, e)
            return None

    async def fetch(self, user_id: UUID) -> list[Bookmark]:
        """All of a user's bookmarks, newest first, whichever key they use."""
        results = await asyncio.gather(*(self._probe(user_id, key) for key in BOOKMARK_KEYS))
        if all(rows is None for rows in results):
            logger.error("Could not fetch bookmarks with either note_id or subject_id")
            return []

        merged: dict[UUID, Bookmark] = {}
        for rows in results:
            for row in rows or []:
                bookmark = normalize_bookmark(row)
                if bookmark is None:
                    continue
                seen = merged.get(bookmark.id)
                if seen is None:
                    merged[bookmark.id] = bookmark
                else:
                    seen.note_id = seen.note_id or bookmark.note_id
                    seen.subject_id = seen.subject_id or bookmark.subject_id

        return sorted(merged.values(), key=lambda b: b.created_at or _EPOCH, reverse=True)

    async def add(self, user_id: UUID, item_id: UUID) -> OperationResult:
        if not user_id or not item_id:
            return OperationResult(success=False, message="Missing user ID or item ID")

        if is_bookmarked(await self.fetch(user_id), item_id):
            return OperationResult(success=True, message="Already bookmarked")

        last_error: Exception | None = None
        for key in BOOKMARK_KEYS:
            try:
                row = await self.caller.call(
                    lambda key=key: self.backend.insert("bookmarks", {"user_id": user_id, key: item_id}),
                    default=None,
                    description=f"add bookmark by {key}",
                    policy=self.write_policy,
                    propagate=(SchemaMismatchError, ConstraintError),
                )
            except (SchemaMismatchError, ConstraintError) as e:
                logger.info("Bookmark insert by %s rejected: %s", key, e)
                last_error = e
                continue

            if row is None:
                return OperationResult(success=False, message="Failed to add bookmark. Please try again.")
            logger.info("Bookmark added using %s", key)
            return OperationResult(success=True, message="Bookmark added successfully")

        logger.error("Error adding bookmark with either key: %s", last_error)
        return OperationResult(success=False, message="Failed to add bookmark. Please try again.")

    async def remove(self, user_id: UUID, item_id: UUID) -> OperationResult:
        if not user_id or not item_id:
            return OperationResult(success=False, message="Missing user ID or item ID")

        removed = 0
        probed = False
        for key in BOOKMARK_KEYS:
            try:
                count = await self.caller.call(
                    lambda key=key: self.backend.delete("bookmarks", {"user_id": user_id, key: item_id}),
                    default=None,
                    description=f"remove bookmark by {key}",
                    policy=self.write_policy,
                    propagate=(SchemaMismatchError,),
                )
            except SchemaMismatchError as e:
                logger.info("Bookmarks cannot be deleted by %s: %s", key, e)
                continue
            if count is None:
                if removed:
                    # Already gone under an earlier key
                    break
                return OperationResult(success=False, message="Failed to remove bookmark. Please try again.")
            probed = True
            removed += count

        if not probed:
            return OperationResult(success=False, message="Failed to remove bookmark. Please try again.")
        if not removed:
            return OperationResult(success=True, message="Bookmark was not set")
        return OperationResult(success=True, message="Bookmark removed successfully")

    async def toggle(self, user_id: UUID, item_id: UUID, currently_bookmarked: bool) -> BookmarkToggleResult:
        """
        Flip the bookmark the caller saw.

        The decision is made from the caller's observed state, so a repeated
        request with the same state settles on the same result instead of
        flipping back.
        """
        if currently_bookmarked:
            result = await self.remove(user_id, item_id)
            return BookmarkToggleResult(success=result.success, action="removed", message=result.message)
        result = await self.add(user_id, item_id)
        return BookmarkToggleResult(success=result.success, action="added", message=result.message)

    async def bookmarked_subjects(self, user_id: UUID) -> list[BookmarkedSubject]:
        """Subjects the user bookmarked, newest bookmark first. Note bookmarks are skipped."""
        bookmarks = await self.fetch(user_id)
        if not bookmarks:
            return []

        rows = await self.caller.call(
            lambda: self.backend.select(
                Query(table="subjects", filters={"id": [b.item_id for b in bookmarks]})
            ),
            default=[],
            description="fetch bookmarked subjects",
        )
        subjects = {row["id"]: row for row in rows}
        return [
            BookmarkedSubject(**subjects[b.item_id], bookmark_created_at=b.created_at or _EPOCH)
            for b in bookmarks
            if b.item_id in subjects
        ]
