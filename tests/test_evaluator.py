from datetime import timedelta

from reminder_service.reminders.domain import Verdict
from reminder_service.reminders.evaluator import (
    STATUS_ALREADY_SENT,
    STATUS_DUE,
    STATUS_INACTIVE,
    STATUS_PENDING,
    describe,
    evaluate,
)

from factories import T0, make_reminder


def test_fires_exactly_at_scheduled_time():
    assert evaluate(make_reminder(scheduled_time=T0), T0) is Verdict.FIRE


def test_fires_when_overdue():
    assert evaluate(make_reminder(scheduled_time=T0 - timedelta(hours=3)), T0) is Verdict.FIRE


def test_skips_future_reminder():
    reminder = make_reminder(scheduled_time=T0 + timedelta(minutes=5))
    assert evaluate(reminder, T0) is Verdict.SKIP
    assert describe(reminder, T0) == (STATUS_PENDING, 5)


def test_skips_inactive_even_when_due():
    reminder = make_reminder(is_active=False)
    assert evaluate(reminder, T0) is Verdict.SKIP
    assert describe(reminder, T0) == (STATUS_INACTIVE, None)


def test_skips_sent_one_shot():
    reminder = make_reminder(sent=True)
    assert evaluate(reminder, T0) is Verdict.SKIP
    assert describe(reminder, T0) == (STATUS_ALREADY_SENT, None)


def test_describe_due():
    assert describe(make_reminder(), T0) == (STATUS_DUE, None)
