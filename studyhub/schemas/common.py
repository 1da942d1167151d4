"""Shared response shapes."""

from studyhub.schemas.base import BaseSchema


class OperationResult(BaseSchema):
    """Outcome of a write that should not fail the request."""

    success: bool
    message: str
