"""
Timeout + retry-with-backoff wrapper for data service calls.

    caller = ResilientCaller(RetryPolicy(), monitor=monitor)
    subjects = await caller.call(
        lambda: backend.select(query),
        default=[],
        description="fetch subjects",
    )

The operation is a zero-argument factory so every attempt gets a fresh
coroutine. The caller never raises for backend trouble: once the attempts are
spent it hands back `default`.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, TypeVar

from studyhub.data.errors import BackendError, TransportError

if TYPE_CHECKING:
    from studyhub.config import Settings
    from studyhub.data.emergency import EmergencyMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How hard to try before giving up on a call."""

    max_attempts: int = 3
    timeout: float = 5.0
    timeout_step: float = 1.0
    base_delay: float = 0.5
    backoff_factor: float = 2.0

    def timeout_for(self, attempt: int) -> float:
        """Per-attempt timeout; later attempts get more room."""
        return self.timeout + (attempt - 1) * self.timeout_step

    def delay_for(self, attempt: int) -> float:
        """Sleep after a failed attempt (1-based)."""
        return self.base_delay * self.backoff_factor ** (attempt - 1)

    def single_shot(self, timeout: float) -> "RetryPolicy":
        return replace(self, max_attempts=1, timeout=timeout, timeout_step=0.0)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RetryPolicy":
        return cls(
            max_attempts=settings.fetch_max_attempts,
            timeout=settings.fetch_timeout_seconds,
            timeout_step=settings.fetch_timeout_step_seconds,
            base_delay=settings.fetch_backoff_base_seconds,
            backoff_factor=settings.fetch_backoff_factor,
        )


class ResilientCaller:
    """Runs backend operations under a RetryPolicy and reports health to the emergency monitor."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        monitor: "EmergencyMonitor | None" = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.monitor = monitor
        self._sleep = sleep

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        default: T,
        description: str,
        policy: RetryPolicy | None = None,
        propagate: tuple[type[BackendError], ...] = (),
    ) -> T:
        """
        Run `operation` until it succeeds or the policy is exhausted.

        Retried: TransportError and timeouts.
        Re-raised: exceptions listed in `propagate` (dual-key probing needs
        to see schema mismatches).
        Everything else is logged and turned into `default`.
        """
        policy = policy or self.policy

        for attempt in range(1, policy.max_attempts + 1):
            timeout = policy.timeout_for(attempt)
            started = time.monotonic()
            try:
                result = await asyncio.wait_for(operation(), timeout=timeout)
            except propagate:
                raise
            except asyncio.TimeoutError:
                logger.warning(
                    "%s timed out after %.1fs (attempt %d/%d)",
                    description, timeout, attempt, policy.max_attempts,
                )
            except TransportError as e:
                logger.warning(
                    "%s failed (attempt %d/%d): %s",
                    description, attempt, policy.max_attempts, e,
                )
            except BackendError as e:
                logger.error("%s rejected by data service: %s", description, e)
                return default
            except Exception:
                logger.exception("Unexpected error during %s", description)
                return default
            else:
                logger.debug(
                    "%s succeeded in %.0fms (attempt %d)",
                    description, (time.monotonic() - started) * 1000, attempt,
                )
                if self.monitor is not None:
                    self.monitor.record_success()
                return result

            if attempt < policy.max_attempts:
                delay = policy.delay_for(attempt)
                logger.info("Waiting %.2fs before retrying %s", delay, description)
                await self._sleep(delay)

        logger.error("All %d attempts of %s failed", policy.max_attempts, description)
        if self.monitor is not None:
            self.monitor.record_failure(description)
        return default
