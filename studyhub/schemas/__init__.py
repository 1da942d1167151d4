"""Pydantic schemas for API request/response validation."""

from studyhub.schemas.auth import GoogleAuthRequest, LoginRequest, SessionInfo, SignUpRequest, TokenResponse
from studyhub.schemas.bookmarks import (
    Bookmark,
    BookmarkStatus,
    BookmarkToggleRequest,
    BookmarkToggleResult,
)
from studyhub.schemas.common import OperationResult
from studyhub.schemas.connectivity import ConnectivityStatus, ReconnectResult
from studyhub.schemas.history import HistoryEntry
from studyhub.schemas.home import HomeDashboard
from studyhub.schemas.notes import (
    Note,
    NoteApprovalUpdate,
    NoteCreate,
    NoteDownloadResponse,
    NoteUploadURLRequest,
    NoteUploadURLResponse,
    NoteWithSubject,
    SubjectSummary,
)
from studyhub.schemas.students import Student, StudentProfileUpdate
from studyhub.schemas.subjects import BookmarkedSubject, Subject, SubjectWithBookmark

__all__ = [
    # Auth
    "GoogleAuthRequest",
    "LoginRequest",
    "SessionInfo",
    "SignUpRequest",
    "TokenResponse",
    # Students
    "Student",
    "StudentProfileUpdate",
    # Subjects
    "Subject",
    "SubjectWithBookmark",
    "BookmarkedSubject",
    # Notes
    "Note",
    "NoteWithSubject",
    "NoteCreate",
    "NoteApprovalUpdate",
    "NoteDownloadResponse",
    "NoteUploadURLRequest",
    "NoteUploadURLResponse",
    "SubjectSummary",
    # Bookmarks
    "Bookmark",
    "BookmarkStatus",
    "BookmarkToggleRequest",
    "BookmarkToggleResult",
    # History
    "HistoryEntry",
    # Home / connectivity
    "HomeDashboard",
    "ConnectivityStatus",
    "ReconnectResult",
    "OperationResult",
]
