"""Resilient access to the data service."""

from studyhub.data.access import OFFLINE_MESSAGE, StudyData
from studyhub.data.bookmarks import BOOKMARK_KEYS, BookmarkStore, is_bookmarked, normalize_bookmark
from studyhub.data.emergency import EmergencyMonitor, placeholder_profile, placeholder_subjects
from studyhub.data.errors import BackendError, ConstraintError, SchemaMismatchError, TransportError
from studyhub.data.gateway import DataBackend, Query, SqlTableGateway
from studyhub.data.resilience import ResilientCaller, RetryPolicy

__all__ = [
    "OFFLINE_MESSAGE",
    "StudyData",
    "BOOKMARK_KEYS",
    "BookmarkStore",
    "is_bookmarked",
    "normalize_bookmark",
    "EmergencyMonitor",
    "placeholder_profile",
    "placeholder_subjects",
    "BackendError",
    "ConstraintError",
    "SchemaMismatchError",
    "TransportError",
    "DataBackend",
    "Query",
    "SqlTableGateway",
    "ResilientCaller",
    "RetryPolicy",
]
