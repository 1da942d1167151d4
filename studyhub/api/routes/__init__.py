"""API routes package."""

from studyhub.api.routes import (
    auth,
    bookmarks,
    connectivity,
    history,
    home,
    notes,
    students,
    subjects,
)

__all__ = [
    "auth",
    "bookmarks",
    "connectivity",
    "history",
    "home",
    "notes",
    "students",
    "subjects",
]
