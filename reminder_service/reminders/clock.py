"""
Clock sources for the scheduler.

The evaluator and recurrence calculator are time driven, so the scheduler and
the service take a clock instead of calling ``datetime.now`` themselves.
"""
from datetime import datetime, timedelta, timezone as dt_timezone
import threading

from reminder_service.utils.timezone import to_utc_aware


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(dt_timezone.utc)


class FrozenClock:
    """Manually driven clock for tests and replays."""

    def __init__(self, start: datetime) -> None:
        self._lock = threading.Lock()
        self._now = to_utc_aware(start)

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = to_utc_aware(value)

    def advance(self, *, minutes: float = 0, seconds: float = 0) -> datetime:
        delta = timedelta(minutes=minutes, seconds=seconds)
        if delta < timedelta(0):
            raise ValueError("clock cannot move backwards")
        with self._lock:
            self._now = self._now + delta
            return self._now
