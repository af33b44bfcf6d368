"""Cancellation tokens and the shared GraphQL rate limiter.

One ``RateLimiter`` is created per run and handed to the GraphQL client, so
every concurrent fetch for every user draws from the same budget.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone

from rich.console import Console

console = Console()

# GitHub allows 5000 GraphQL requests per hour; stay below it so that metadata
# queries (rate limit, user info) still have headroom.
DEFAULT_REQUESTS_PER_HOUR = 4500


class Cancelled(Exception):
    """Raised when a blocking operation is aborted by its cancel token."""


class RateLimitWaitCancelled(Cancelled):
    """The cancel token fired while waiting for the rate limiter."""


class CancelToken:
    """Cancellation signal with an optional deadline.

    Waits are done on a ``threading.Event`` so that ``cancel()`` wakes every
    waiter immediately instead of letting them sleep out their delay.
    """

    def __init__(
        self,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._event = threading.Event()
        self._deadline = deadline
        self._clock = clock

    @classmethod
    def with_timeout(cls, seconds: float) -> CancelToken:
        return cls(deadline=time.monotonic() + seconds)

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds left before the deadline, ``None`` without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def wait(self, seconds: float) -> bool:
        """Sleep for up to *seconds*; return True if cancelled meanwhile."""
        if seconds <= 0:
            return self.cancelled
        remaining = self.remaining()
        if remaining is not None and remaining < seconds:
            self._event.wait(remaining)
            return True
        return self._event.wait(seconds) or self.cancelled

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self.cancelled:
            raise Cancelled(f"{operation} cancelled")


class RateLimiter:
    """Token bucket (burst of 1) plus a server-reported reset deadline.

    ``wait`` blocks until the reset deadline recorded by ``record_reset`` has
    passed and a request slot is available. The deadline is shared: once a
    rate limit status says the quota resets at some instant, every caller
    waits for that instant.
    """

    def __init__(
        self,
        requests_per_hour: int = DEFAULT_REQUESTS_PER_HOUR,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] | None = None,
    ):
        if requests_per_hour <= 0:
            raise ValueError("requests_per_hour must be positive")
        self.interval = 3600.0 / requests_per_hour
        self._clock = clock
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._reset_lock = threading.Lock()
        self._next_slot: float | None = None
        self._reset_at: datetime | None = None

    @property
    def reset_at(self) -> datetime | None:
        with self._reset_lock:
            return self._reset_at

    def record_reset(self, reset_at: datetime | None) -> None:
        with self._reset_lock:
            self._reset_at = reset_at

    def seconds_until_reset(self) -> float:
        reset_at = self.reset_at
        if reset_at is None:
            return 0.0
        return max(0.0, (reset_at - self._now()).total_seconds())

    def _claim(self) -> tuple[float, float]:
        with self._lock:
            now = self._clock()
            if self._next_slot is None or self._next_slot < now:
                ready_at = now
            else:
                ready_at = self._next_slot
            self._next_slot = ready_at + self.interval
        return ready_at, ready_at - now

    def reserve(self) -> float:
        """Claim the next request slot and return how long to wait for it."""
        return self._claim()[1]

    def _release(self, ready_at: float) -> None:
        # Only the most recent slot can be handed back; an earlier one is
        # already followed by other callers' reservations.
        with self._lock:
            if self._next_slot == ready_at + self.interval:
                self._next_slot = ready_at

    def wait(self, cancel: CancelToken | None = None) -> None:
        cancel = cancel or CancelToken()
        if cancel.cancelled:
            raise RateLimitWaitCancelled("rate limit wait cancelled")

        reset_wait = self.seconds_until_reset()
        if reset_wait > 0:
            console.print(
                f"[yellow]Rate limit exhausted, waiting {reset_wait:.0f}s "
                "for the quota to reset...[/yellow]"
            )
            if cancel.wait(reset_wait):
                raise RateLimitWaitCancelled(
                    "cancelled while waiting for the rate limit reset"
                )

        ready_at, delay = self._claim()
        if cancel.wait(delay):
            self._release(ready_at)
            raise RateLimitWaitCancelled("rate limit wait cancelled")
