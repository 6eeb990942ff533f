from datetime import timedelta

import pytest
from sqlalchemy import text

from reminder_service.reminders.domain import SubscriptionData
from reminder_service.reminders.exceptions import PersistenceError
from reminder_service.reminders.models import Reminder, Subscription
from reminder_service.reminders.repository import ReminderStore

from factories import T0, make_reminder


def test_upsert_and_read_back(store):
    stored = store.upsert_reminder(make_reminder(scheduled_time=T0, repeat_interval=15))
    assert stored.version == 1
    fetched = store.get_reminder("r1")
    assert fetched.scheduled_time == T0
    assert fetched.scheduled_time.tzinfo is not None
    assert fetched.repeat_interval == 15


def test_list_is_ordered_by_scheduled_time(store):
    store.upsert_reminder(make_reminder("late", scheduled_time=T0 + timedelta(hours=1)))
    store.upsert_reminder(make_reminder("early", scheduled_time=T0))
    assert [r.id for r in store.list_reminders()] == ["early", "late"]


def test_save_reminder_rejects_stale_version(store):
    first = store.upsert_reminder(make_reminder())
    assert store.save_reminder(first, expected_version=first.version)
    # A second write based on the same snapshot must lose
    assert not store.save_reminder(first, expected_version=first.version)
    assert store.get_reminder("r1").version == first.version + 1


def test_save_reminder_on_deleted_row_returns_false(store):
    first = store.upsert_reminder(make_reminder())
    assert store.delete_reminder("r1")
    assert not store.save_reminder(first, expected_version=first.version)
    assert not store.delete_reminder("r1")


def test_malformed_rows_are_ignored(store, session_factory):
    store.upsert_reminder(make_reminder("good"))
    with session_factory() as db:
        db.add(Reminder(id="no-time", message="x", scheduled_time=None))
        db.add(Reminder(id="negative", message="x", scheduled_time=T0, repeat_interval=-5))
        db.add(Subscription(endpoint="https://push/bad", keys=["not", "a", "dict"]))
        db.commit()
    store.upsert_subscription(SubscriptionData(endpoint="https://push/good"))

    assert [r.id for r in store.list_reminders()] == ["good"]
    assert store.get_reminder("no-time") is None
    assert [s.endpoint for s in store.list_subscriptions()] == ["https://push/good"]


CORRUPT_REMINDER_SQL = text(
    "INSERT INTO reminders (id, message, scheduled_time, is_active, sent, repeat_interval, version, created_at, updated_at) "
    "VALUES ('corrupt', 'x', 'not-a-date', 1, 0, 0, 1, '2024-01-01 00:00:00', '2024-01-01 00:00:00')"
)


def test_unparseable_timestamp_does_not_hide_other_rows(store, session_factory):
    store.upsert_reminder(make_reminder("good"))
    with session_factory() as db:
        db.execute(CORRUPT_REMINDER_SQL)
        db.execute(text(
            "INSERT INTO subscriptions (endpoint, keys, platform, created_at, updated_at) "
            "VALUES ('https://push/bad', '{not json', 'web', '2024-01-01 00:00:00', '2024-01-01 00:00:00')"
        ))
        db.commit()
    store.upsert_subscription(SubscriptionData(endpoint="https://push/good"))

    assert [r.id for r in store.list_reminders()] == ["good"]
    assert store.get_reminder("corrupt") is None
    assert [s.endpoint for s in store.list_subscriptions()] == ["https://push/good"]
    assert store.get_subscription("https://push/bad") is None


def test_upsert_overwrites_unreadable_row(store, session_factory):
    with session_factory() as db:
        db.execute(CORRUPT_REMINDER_SQL)
        db.commit()

    repaired = store.upsert_reminder(make_reminder("corrupt", scheduled_time=T0))

    assert repaired.scheduled_time == T0
    assert repaired.version == 2
    assert [r.id for r in store.list_reminders()] == ["corrupt"]


def test_subscription_upsert_by_endpoint(store):
    store.upsert_subscription(SubscriptionData(endpoint="https://push/1", keys={"auth": "old"}))
    store.upsert_subscription(SubscriptionData(endpoint="https://push/1", keys={"auth": "new"}, platform="ios"))

    subs = store.list_subscriptions()
    assert len(subs) == 1
    assert subs[0].keys == {"auth": "new"}
    assert subs[0].platform == "ios"
    assert store.delete_subscription("https://push/1")
    assert store.get_subscription("https://push/1") is None


def test_database_errors_surface_as_persistence_error(session_factory):
    store = ReminderStore(session_factory)
    with session_factory() as db:
        db.execute(text("DROP TABLE reminders"))
        db.commit()
    with pytest.raises(PersistenceError):
        store.list_reminders()
