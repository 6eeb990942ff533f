"""
Run locks keeping at most one scheduler pass in flight.

The timer tick and the reactivation trigger both call ``run_once``. Inside one
process a ``threading.Lock`` is enough; when the Celery worker and the API run
as separate processes they share a Redis lock instead.
"""
import contextlib
import logging
import threading
from typing import Iterator, Optional

import redis
from redis.exceptions import LockError, RedisError

logger = logging.getLogger(__name__)

RUN_LOCK_NAME = "reminders:run_once"


class LocalRunLock:
    def __init__(self) -> None:
        self._lock = threading.Lock()

    @contextlib.contextmanager
    def hold(self, wait_seconds: float) -> Iterator[bool]:
        acquired = self._lock.acquire(timeout=max(0.0, float(wait_seconds)))
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


class RedisRunLock:
    """Cross-process lock; the lease expires so a crashed holder cannot wedge the scheduler."""

    def __init__(self, client: "redis.Redis", lease_seconds: int = 300, name: str = RUN_LOCK_NAME) -> None:
        self._client = client
        self._lease_seconds = lease_seconds
        self._name = name

    @classmethod
    def from_url(cls, url: str, lease_seconds: int = 300) -> "RedisRunLock":
        return cls(redis.Redis.from_url(url), lease_seconds=lease_seconds)

    @contextlib.contextmanager
    def hold(self, wait_seconds: float) -> Iterator[bool]:
        lock = self._client.lock(self._name, timeout=self._lease_seconds)
        try:
            acquired = bool(lock.acquire(blocking=True, blocking_timeout=max(0.0, float(wait_seconds))))
        except RedisError as e:
            logger.error(f"[Scheduler] Run lock unavailable, skipping pass: {e}")
            acquired = False
        try:
            yield acquired
        finally:
            if acquired:
                try:
                    lock.release()
                except LockError:
                    logger.warning(f"[Scheduler] Run lock lease expired before release ({self._lease_seconds}s)")
                except RedisError as e:
                    logger.error(f"[Scheduler] Failed to release run lock: {e}")


def build_run_lock(redis_url: Optional[str], lease_seconds: int = 300):
    if redis_url:
        logger.info("[Scheduler] Using Redis run lock")
        return RedisRunLock.from_url(redis_url, lease_seconds=lease_seconds)
    return LocalRunLock()
