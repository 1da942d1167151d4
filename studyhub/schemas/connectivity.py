"""Connectivity / emergency mode schemas."""

from datetime import datetime

from studyhub.schemas.base import BaseSchema


class ConnectivityStatus(BaseSchema):
    emergency_mode: bool
    consecutive_failures: int
    threshold: int
    reconnect_attempts: int
    activated_at: datetime | None = None
    reason: str | None = None


class ReconnectResult(BaseSchema):
    reconnected: bool
    status: ConnectivityStatus
