import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reminder_service.db.base import Base
from reminder_service.reminders import models  # noqa: F401
from reminder_service.reminders.clock import FrozenClock
from reminder_service.reminders.config import ReminderSettings
from reminder_service.reminders.dispatcher import Dispatcher
from reminder_service.reminders.domain import ReminderData, SubscriptionData
from reminder_service.reminders.scheduler import ReminderScheduler
from reminder_service.reminders.service import ReminderService

from factories import T0, FakeChannel, RecordingStore, make_reminder


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory) -> RecordingStore:
    return RecordingStore(session_factory)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def cfg() -> ReminderSettings:
    return ReminderSettings(
        DISPATCH_MAX_WORKERS=4,
        DISPATCH_TIMEOUT_SECONDS=2.0,
        RUN_LOCK_WAIT_SECONDS=0.1,
        MARK_SENT_REQUIRES_DELIVERY=False,
        REACTIVATE_PRESERVE_PHASE=False,
    )


@pytest.fixture
def dispatcher(channel, store, cfg) -> Dispatcher:
    return Dispatcher(channel, store, max_workers=cfg.DISPATCH_MAX_WORKERS, timeout_seconds=cfg.DISPATCH_TIMEOUT_SECONDS)


@pytest.fixture
def scheduler(store, dispatcher, clock, cfg) -> ReminderScheduler:
    return ReminderScheduler(store, dispatcher, clock=clock, cfg=cfg)


@pytest.fixture
def service(store, scheduler, cfg) -> ReminderService:
    return ReminderService(store, scheduler, cfg=cfg)


@pytest.fixture
def add_reminder(store):
    def _add(**kwargs) -> ReminderData:
        return store.upsert_reminder(make_reminder(**kwargs))
    return _add


@pytest.fixture
def add_subscription(store):
    def _add(endpoint: str, platform: str = "web") -> SubscriptionData:
        return store.upsert_subscription(
            SubscriptionData(endpoint=endpoint, keys={"auth": "a", "p256dh": "k"}, platform=platform)
        )
    return _add
