"""Error taxonomy for calls into the data service."""


class BackendError(Exception):
    """The data service rejected or failed an operation."""


class TransportError(BackendError):
    """Connection-level failure; safe to retry."""


class SchemaMismatchError(BackendError):
    """Unknown table or column for the live schema."""


class ConstraintError(BackendError):
    """Foreign key, uniqueness or check constraint violation."""
