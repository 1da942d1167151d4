"""
Emergency (offline) mode.

The monitor counts consecutive failures reported by connectivity checks and
exhausted resilient calls. Once the count reaches the threshold, or a client
reports that it has gone offline, reads are served from the placeholder data
below instead of the data service. The mode is sticky: only an explicit
reconnect with a successful probe turns it off.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from uuid import UUID, uuid5, NAMESPACE_URL

from studyhub.schemas.connectivity import ConnectivityStatus
from studyhub.schemas.students import Student
from studyhub.schemas.subjects import Subject

logger = logging.getLogger(__name__)

OFFLINE_USER_NAME = "Offline User"


class EmergencyMonitor:
    """Process-wide connectivity state."""

    def __init__(self, threshold: int = 3):
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold
        self.active = False
        self.consecutive_failures = 0
        self.reconnect_attempts = 0
        self.activated_at: datetime | None = None
        self.reason: str | None = None

    def record_failure(self, reason: str) -> bool:
        """Count a failure. Returns True if this failure switched the mode on."""
        self.consecutive_failures += 1
        if self.active:
            return False
        if self.consecutive_failures >= self.threshold:
            self._activate(f"{self.consecutive_failures} consecutive failures (last: {reason})")
            return True
        logger.info(
            "Data service failure %d/%d: %s",
            self.consecutive_failures, self.threshold, reason,
        )
        return False

    def record_success(self) -> None:
        # Successes only reset the streak; leaving the mode needs reconnect()
        if not self.active:
            self.consecutive_failures = 0

    def report_offline(self, reason: str = "client reported offline") -> None:
        if not self.active:
            self._activate(reason)

    async def reconnect(self, probe: Callable[[], Awaitable[bool]]) -> bool:
        """Explicit user-initiated reconnection attempt."""
        self.reconnect_attempts += 1
        logger.info("Reconnection attempt %d", self.reconnect_attempts)
        if not await probe():
            logger.warning("Reconnection attempt %d failed; staying in emergency mode", self.reconnect_attempts)
            return False
        if self.active:
            logger.info("Data service reachable again; leaving emergency mode")
        self.active = False
        self.consecutive_failures = 0
        self.reconnect_attempts = 0
        self.activated_at = None
        self.reason = None
        return True

    def status(self) -> ConnectivityStatus:
        return ConnectivityStatus(
            emergency_mode=self.active,
            consecutive_failures=self.consecutive_failures,
            threshold=self.threshold,
            reconnect_attempts=self.reconnect_attempts,
            activated_at=self.activated_at,
            reason=self.reason,
        )

    def _activate(self, reason: str) -> None:
        self.active = True
        self.activated_at = datetime.now(timezone.utc)
        self.reason = reason
        logger.error("Entering emergency mode: %s", reason)


# =============================================================================
# PLACEHOLDER DATA
# =============================================================================


def _offline_id(name: str) -> UUID:
    return uuid5(NAMESPACE_URL, f"studyhub:{name}")


def placeholder_profile(
    user_id: UUID | None = None,
    *,
    email: str | None = None,
    full_name: str | None = None,
) -> Student:
    """Year 1 / semester 1 / CSE stand-in for the signed-in student."""
    if not full_name:
        full_name = email.split("@")[0] if email else OFFLINE_USER_NAME
    return Student(
        id=user_id or _offline_id("emergency-user"),
        full_name=full_name,
        email=email,
        academic_year=1,
        semester=1,
        branch="CSE",
        is_admin=False,
        created_at=datetime.now(timezone.utc),
    )


def placeholder_subjects() -> list[Subject]:
    now = datetime.now(timezone.utc)
    return [
        Subject(
            id=_offline_id("offline-subject-1"),
            name="Computer Science 101",
            branch="CSE",
            academic_year=1,
            semester=1,
            is_common=True,
            created_at=now,
        ),
        Subject(
            id=_offline_id("offline-subject-2"),
            name="Data Structures",
            branch="CSE",
            academic_year=1,
            semester=1,
            is_common=False,
            created_at=now,
        ),
    ]
