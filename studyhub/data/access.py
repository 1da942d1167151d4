"""
Resilient data access layer.

StudyData is the only thing route handlers talk to for application data.
Reads go through ResilientCaller (timeout, retry, backoff, default on
exhaustion); writes get a single short attempt. While the emergency monitor
is active, reads are answered from placeholder data and writes are refused
with a user-facing message. Nothing here raises for data service trouble.
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from studyhub.data.bookmarks import BookmarkStore, is_bookmarked
from studyhub.data.emergency import EmergencyMonitor, placeholder_profile, placeholder_subjects
from studyhub.data.errors import BackendError, ConstraintError
from studyhub.data.gateway import DataBackend, Query
from studyhub.data.resilience import ResilientCaller, RetryPolicy
from studyhub.schemas.bookmarks import Bookmark, BookmarkToggleResult
from studyhub.schemas.common import OperationResult
from studyhub.schemas.history import HistoryEntry
from studyhub.schemas.notes import Note, NoteCreate, NoteWithSubject, SubjectSummary
from studyhub.schemas.students import Student, StudentProfileUpdate
from studyhub.schemas.subjects import BookmarkedSubject, Subject, SubjectWithBookmark

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Working in offline mode due to database connection issues"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StudyData:
    """Facade over the data service for one application instance."""

    def __init__(
        self,
        backend: DataBackend,
        monitor: EmergencyMonitor,
        *,
        read_policy: RetryPolicy | None = None,
        write_timeout: float = 2.0,
        connectivity_timeout: float = 2.5,
        caller: ResilientCaller | None = None,
    ):
        self.backend = backend
        self.monitor = monitor
        self.caller = caller or ResilientCaller(read_policy, monitor=monitor)
        self.read_policy = self.caller.policy
        self.write_policy = self.read_policy.single_shot(write_timeout)
        self.connectivity_timeout = connectivity_timeout
        self.bookmarks = BookmarkStore(backend, self.caller, write_policy=self.write_policy)

    @property
    def offline(self) -> bool:
        return self.monitor.active

    # =========================================================================
    # CONNECTIVITY
    # =========================================================================

    async def _ping(self) -> bool:
        try:
            await asyncio.wait_for(self.backend.ping(), timeout=self.connectivity_timeout)
        except asyncio.TimeoutError:
            logger.error("Connection test timed out after %.1fs", self.connectivity_timeout)
            return False
        except BackendError as e:
            logger.error("Connection test failed: %s", e)
            return False
        return True

    async def check_connection(self) -> bool:
        """Lightweight connectivity probe that feeds the emergency monitor."""
        if await self._ping():
            self.monitor.record_success()
            return True
        self.monitor.record_failure("connectivity check")
        return False

    async def reconnect(self) -> bool:
        """Explicit reconnection; the only way out of emergency mode."""
        return await self.monitor.reconnect(self._ping)

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _select(self, query: Query, description: str) -> list[dict[str, Any]]:
        return await self.caller.call(
            lambda: self.backend.select(query),
            default=[],
            description=description,
        )

    async def _select_one(self, query: Query, description: str) -> dict[str, Any] | None:
        async def first() -> dict[str, Any] | None:
            rows = await self.backend.select(query)
            return rows[0] if rows else None

        return await self.caller.call(first, default=None, description=description)

    async def _rows_by_id(self, table: str, ids: set[UUID], description: str) -> dict[UUID, dict[str, Any]]:
        if not ids:
            return {}
        rows = await self._select(Query(table=table, filters={"id": list(ids)}), description)
        return {row["id"]: row for row in rows}

    async def _write(self, operation, description: str):
        return await self.caller.call(
            operation,
            default=None,
            description=description,
            policy=self.write_policy,
        )

    # =========================================================================
    # STUDENTS
    # =========================================================================

    async def fetch_student_profile(self, user_id: UUID | None) -> Student | None:
        """Profile for user_id; None when missing or unreachable."""
        if not user_id:
            return None
        if self.offline:
            return placeholder_profile(user_id)

        row = await self._select_one(
            Query(table="students", filters={"id": user_id}, limit=1),
            f"fetch profile {user_id}",
        )
        if row is None:
            logger.info("No profile found for user %s", user_id)
            return None
        return Student.model_validate(row)

    async def save_student_profile(
        self,
        user_id: UUID,
        update: StudentProfileUpdate,
        *,
        email: str | None = None,
    ) -> Student | None:
        """Apply onboarding/profile edits, creating the profile if it is missing."""
        if self.offline:
            return None

        changes = update.model_dump(exclude_none=True)
        rows = await self._write(
            lambda: self.backend.update("students", {"id": user_id}, changes),
            f"update profile {user_id}",
        )
        if rows:
            return Student.model_validate(rows[0])
        if rows is None:
            return None

        full_name = changes.pop("full_name", None) or (email.split("@")[0] if email else "New User")
        payload = {
            "id": user_id,
            "email": email,
            "full_name": full_name,
            "is_admin": False,
            "created_at": _now(),
            **changes,
        }
        row = await self._write(
            lambda: self.backend.upsert("students", payload),
            f"create profile {user_id}",
        )
        return Student.model_validate(row) if row else None

    async def fetch_account_email(self, user_id: UUID) -> str | None:
        """Email of the student's most recently used sign-in identity."""
        if self.offline:
            return None
        row = await self._select_one(
            Query(
                table="auth_identities",
                filters={"student_id": user_id},
                columns=("email", "last_login_at"),
                order_by="last_login_at",
                descending=True,
                limit=1,
            ),
            f"fetch account email {user_id}",
        )
        return row["email"] if row else None

    async def reset_student_profile(self, user_id: UUID) -> OperationResult:
        """
        Delete the student's profile so they go through onboarding again.

        Bookmarks and history go with it; the sign-in identity stays.
        """
        if self.offline:
            return OperationResult(success=False, message=OFFLINE_MESSAGE)

        removed = await self._write(
            lambda: self.backend.delete("students", {"id": user_id}),
            f"reset profile {user_id}",
        )
        if removed is None:
            return OperationResult(success=False, message="Failed to reset profile. Please try again.")
        if not removed:
            return OperationResult(success=True, message="No profile to reset")
        logger.info("Reset profile for user %s", user_id)
        return OperationResult(success=True, message="Profile reset successfully")

    async def list_students(self) -> list[Student]:
        if self.offline:
            return []
        rows = await self._select(
            Query(table="students", order_by="created_at", descending=True),
            "list students",
        )
        return [Student.model_validate(row) for row in rows]

    # =========================================================================
    # SUBJECTS
    # =========================================================================

    async def fetch_subjects_for_student(self, student: Student | UUID | None) -> list[Subject]:
        """
        Subjects for the student's year and semester, either in their branch
        or flagged common.
        """
        if self.offline:
            return placeholder_subjects()
        if student is None:
            return []
        if isinstance(student, UUID):
            profile = await self.fetch_student_profile(student)
            if profile is None:
                logger.info("Could not fetch profile for student %s", student)
                return []
        else:
            profile = student

        if profile.needs_onboarding:
            logger.info("Student %s has not completed onboarding", profile.id)
            return []

        rows = await self._select(
            Query(
                table="subjects",
                filters={"academic_year": profile.academic_year, "semester": profile.semester},
                any_of=({"branch": profile.branch}, {"is_common": True}),
                order_by="name",
            ),
            f"fetch subjects for year {profile.academic_year} sem {profile.semester} {profile.branch}",
        )
        if not rows:
            logger.info(
                "No subjects for year %s, semester %s, branch %s",
                profile.academic_year, profile.semester, profile.branch,
            )
        return [Subject.model_validate(row) for row in rows]

    async def list_subjects(self) -> list[Subject]:
        if self.offline:
            return placeholder_subjects()
        rows = await self._select(Query(table="subjects", order_by="name"), "list subjects")
        return [Subject.model_validate(row) for row in rows]

    async def get_subject(self, subject_id: UUID) -> Subject | None:
        if self.offline:
            return next((s for s in placeholder_subjects() if s.id == subject_id), None)
        row = await self._select_one(
            Query(table="subjects", filters={"id": subject_id}, limit=1),
            f"fetch subject {subject_id}",
        )
        return Subject.model_validate(row) if row else None

    async def find_or_create_subject(
        self, name: str, branch: str, academic_year: int, semester: int
    ) -> Subject | None:
        scope = {"name": name, "branch": branch, "academic_year": academic_year, "semester": semester}
        query = Query(table="subjects", filters=scope, limit=1)

        row = await self._select_one(query, f"find subject {name}")
        if row is not None:
            return Subject.model_validate(row)

        try:
            row = await self.caller.call(
                lambda: self.backend.insert("subjects", {**scope, "is_common": False}),
                default=None,
                description=f"create subject {name}",
                policy=self.write_policy,
                propagate=(ConstraintError,),
            )
        except ConstraintError:
            # Created concurrently by another upload
            row = await self._select_one(query, f"find subject {name}")
        return Subject.model_validate(row) if row else None

    async def subjects_with_bookmarks(self, profile: Student | None, user_id: UUID) -> list[SubjectWithBookmark]:
        subjects, bookmarks = await asyncio.gather(
            self.fetch_subjects_for_student(profile),
            self.fetch_bookmarks(user_id),
        )
        return [
            SubjectWithBookmark(**s.model_dump(), is_bookmarked=is_bookmarked(bookmarks, s.id))
            for s in subjects
        ]

    # =========================================================================
    # NOTES
    # =========================================================================

    async def _attach_subjects(self, rows: list[Mapping[str, Any]]) -> list[NoteWithSubject]:
        subjects = await self._rows_by_id(
            "subjects", {row["subject_id"] for row in rows}, "fetch note subjects"
        )
        notes = []
        for row in rows:
            subject = subjects.get(row["subject_id"])
            notes.append(
                NoteWithSubject(
                    **row,
                    subject=SubjectSummary.model_validate(subject) if subject else None,
                )
            )
        return notes

    async def list_notes(
        self,
        *,
        search: str | None = None,
        subject_id: UUID | None = None,
        branch: str | None = None,
    ) -> list[NoteWithSubject]:
        """Explore listing, newest first, filtered by text, subject and branch."""
        if self.offline:
            return []
        filters = {"subject_id": subject_id} if subject_id else {}
        rows = await self._select(
            Query(table="notes", filters=filters, order_by="created_at", descending=True),
            "list notes",
        )
        notes = await self._attach_subjects(rows)

        if branch:
            notes = [n for n in notes if n.subject is not None and n.subject.branch == branch]
        if search:
            needle = search.lower()
            notes = [
                n for n in notes
                if needle in n.title.lower() or (n.description and needle in n.description.lower())
            ]
        return notes

    async def get_note(self, note_id: UUID) -> NoteWithSubject | None:
        if self.offline:
            return None
        row = await self._select_one(
            Query(table="notes", filters={"id": note_id}, limit=1),
            f"fetch note {note_id}",
        )
        if row is None:
            return None
        return (await self._attach_subjects([row]))[0]

    async def create_note(
        self,
        student_id: UUID,
        data: NoteCreate,
        *,
        subject_id: UUID,
        file_url: str,
    ) -> Note | None:
        if self.offline:
            return None
        payload = {
            "title": data.title,
            "description": data.description,
            "file_url": file_url,
            "file_path": data.file_path,
            "subject_id": subject_id,
            "student_id": student_id,
            "unit_number": data.unit_number,
            "approval_status": "pending",
        }
        row = await self._write(lambda: self.backend.insert("notes", payload), "create note")
        return Note.model_validate(row) if row else None

    async def set_note_approval(self, note_id: UUID, approval_status: str) -> Note | None:
        if self.offline:
            return None
        rows = await self._write(
            lambda: self.backend.update(
                "notes", {"id": note_id}, {"approval_status": approval_status, "updated_at": _now()}
            ),
            f"set approval of note {note_id}",
        )
        return Note.model_validate(rows[0]) if rows else None

    async def record_view(self, user_id: UUID, note_id: UUID) -> OperationResult:
        """Add a history row and bump the note's view counter."""
        if self.offline:
            return OperationResult(success=False, message=OFFLINE_MESSAGE)
        row = await self._write(
            lambda: self.backend.insert(
                "history", {"note_id": note_id, "user_id": user_id, "viewed_at": _now()}
            ),
            f"record view of note {note_id}",
        )
        counted = await self._increment(note_id, "increment_note_views")
        if row is None or not counted:
            return OperationResult(success=False, message="Error recording view")
        return OperationResult(success=True, message="View recorded")

    async def record_download(self, note_id: UUID) -> OperationResult:
        if self.offline:
            return OperationResult(success=False, message=OFFLINE_MESSAGE)
        if not await self._increment(note_id, "increment_note_downloads"):
            return OperationResult(success=False, message="Error recording download")
        return OperationResult(success=True, message="Download recorded")

    async def _increment(self, note_id: UUID, rpc: str) -> bool:
        async def call() -> bool:
            await self.backend.rpc(rpc, {"note_id": note_id})
            return True

        return bool(await self._write(call, f"{rpc} {note_id}"))

    # =========================================================================
    # HISTORY
    # =========================================================================

    async def fetch_history(self, user_id: UUID, limit: int = 10) -> list[HistoryEntry]:
        """Most recent views; entries whose note or subject is gone are dropped."""
        if self.offline:
            return []
        rows = await self._select(
            Query(
                table="history",
                filters={"user_id": user_id},
                order_by="viewed_at",
                descending=True,
                limit=limit,
            ),
            f"fetch history for {user_id}",
        )
        notes = await self._rows_by_id("notes", {row["note_id"] for row in rows}, "fetch history notes")
        subjects = await self._rows_by_id(
            "subjects", {note["subject_id"] for note in notes.values()}, "fetch history subjects"
        )

        entries = []
        for row in rows:
            note = notes.get(row["note_id"])
            subject = subjects.get(note["subject_id"]) if note else None
            if note is None or subject is None:
                continue
            entries.append(
                HistoryEntry(
                    id=note["id"],
                    title=note["title"],
                    subject=SubjectSummary.model_validate(subject),
                    viewed_at=row["viewed_at"],
                )
            )
        return entries

    # =========================================================================
    # BOOKMARKS
    # =========================================================================

    async def fetch_bookmarks(self, user_id: UUID) -> list[Bookmark]:
        if self.offline:
            return []
        return await self.bookmarks.fetch(user_id)

    async def is_item_bookmarked(self, user_id: UUID, item_id: UUID) -> bool:
        return is_bookmarked(await self.fetch_bookmarks(user_id), item_id)

    async def toggle_bookmark(
        self, user_id: UUID, item_id: UUID, currently_bookmarked: bool
    ) -> BookmarkToggleResult:
        if self.offline:
            return BookmarkToggleResult(
                success=False,
                action="removed" if currently_bookmarked else "added",
                message=OFFLINE_MESSAGE,
            )
        return await self.bookmarks.toggle(user_id, item_id, currently_bookmarked)

    async def bookmarked_subjects(self, user_id: UUID) -> list[BookmarkedSubject]:
        if self.offline:
            return []
        return await self.bookmarks.bookmarked_subjects(user_id)
