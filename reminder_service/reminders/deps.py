"""Process-wide wiring for the store, channel, scheduler and service.

The API, the in-process tick and the Celery task all resolve the scheduler
through ``get_scheduler`` so they share one run lock per process.
"""
from functools import lru_cache

from reminder_service.db.session import SessionLocal
from .channels import DeliveryChannel, build_channel
from .clock import SystemClock
from .config import settings
from .dispatcher import Dispatcher
from .locking import build_run_lock
from .repository import ReminderStore
from .scheduler import ReminderScheduler
from .service import ReminderService


@lru_cache
def get_store() -> ReminderStore:
    return ReminderStore(SessionLocal)


@lru_cache
def get_channel() -> DeliveryChannel:
    return build_channel(settings)


@lru_cache
def get_scheduler() -> ReminderScheduler:
    store = get_store()
    dispatcher = Dispatcher(
        get_channel(),
        store,
        max_workers=settings.DISPATCH_MAX_WORKERS,
        timeout_seconds=settings.DISPATCH_TIMEOUT_SECONDS,
    )
    return ReminderScheduler(
        store,
        dispatcher,
        clock=SystemClock(),
        lock=build_run_lock(settings.REDIS_URL, settings.RUN_LOCK_LEASE_SECONDS),
        cfg=settings,
    )


@lru_cache
def get_service() -> ReminderService:
    return ReminderService(get_store(), get_scheduler(), cfg=settings)
