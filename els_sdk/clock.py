"""
Time Providers
==============
Sources of "now" used to sign requests and to stamp failures.
"""

import threading
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class TimeProvider(Protocol):
    """Anything able to tell the current time."""

    def now(self) -> datetime:
        ...


class SystemTimeProvider:
    """Reports the wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedTimeProvider:
    """
    Reports a controllable instant.

    Useful in tests where the signing time must be deterministic.
    """

    def __init__(self, now: Optional[datetime] = None):
        self._lock = threading.Lock()
        self._now = now or datetime.now(timezone.utc)

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set_now(self, now: datetime) -> None:
        with self._lock:
            self._now = now

    def advance(self, delta: timedelta) -> datetime:
        with self._lock:
            self._now = self._now + delta
            return self._now
