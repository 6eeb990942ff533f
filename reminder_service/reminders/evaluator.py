"""
Due evaluation for a single reminder.

``evaluate`` has no side effects: the scheduler acts on the verdict.
"""
from datetime import datetime
from typing import Optional, Tuple

from .domain import ReminderData, Verdict

STATUS_INACTIVE = "inactive"
STATUS_ALREADY_SENT = "already_sent"
STATUS_DUE = "due"
STATUS_PENDING = "pending"


def evaluate(reminder: ReminderData, now: datetime) -> Verdict:
    """Return FIRE when the reminder's current occurrence is due and unprocessed.

    A sent reminder is always skipped: a sent one-shot is done, and a recurring
    reminder is never stored as sent because firing advances its schedule.
    The comparison is inclusive, so a reminder scheduled exactly at ``now`` fires.
    """
    if not reminder.is_active:
        return Verdict.SKIP
    if reminder.sent:
        return Verdict.SKIP
    if reminder.scheduled_time <= now:
        return Verdict.FIRE
    return Verdict.SKIP


def describe(reminder: ReminderData, now: datetime) -> Tuple[str, Optional[int]]:
    """Operator-facing status and, for pending reminders, whole minutes until due."""
    if not reminder.is_active:
        return STATUS_INACTIVE, None
    if reminder.sent:
        return STATUS_ALREADY_SENT, None
    if reminder.scheduled_time <= now:
        return STATUS_DUE, None
    minutes = round((reminder.scheduled_time - now).total_seconds() / 60)
    return STATUS_PENDING, minutes
