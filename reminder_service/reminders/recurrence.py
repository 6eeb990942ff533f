"""
Recurrence calculation for fixed-interval reminders
"""
from dataclasses import replace
from datetime import datetime, timedelta

from .domain import ReminderData


def next_occurrence(last_scheduled: datetime, repeat_interval_minutes: int, now: datetime) -> datetime:
    """First occurrence strictly after ``now`` on the grid ``last_scheduled + k * interval``, k >= 1.

    Computed in closed form so a reminder dormant for months at a one-minute
    interval costs the same as one that missed a single window.
    """
    if repeat_interval_minutes <= 0:
        raise ValueError(f"repeat_interval_minutes must be positive, got {repeat_interval_minutes}")

    interval = timedelta(minutes=repeat_interval_minutes)
    if now < last_scheduled:
        return last_scheduled + interval

    steps = (now - last_scheduled) // interval + 1
    return last_scheduled + steps * interval


def advance_after_fire(reminder: ReminderData, now: datetime) -> ReminderData:
    """State of a reminder after its current occurrence has been processed."""
    if reminder.is_recurring:
        return replace(
            reminder,
            scheduled_time=next_occurrence(reminder.scheduled_time, reminder.repeat_interval, now),
            sent=False,
            updated_at=now,
        )
    return replace(reminder, sent=True, updated_at=now)


def reactivate(reminder: ReminderData, now: datetime, preserve_phase: bool = False) -> ReminderData:
    """Re-arm a reminder that a user switched back on.

    Overdue recurring reminders jump to the next future occurrence instead of
    firing a backlog. The jump is anchored at ``now`` unless ``preserve_phase``
    keeps the reminder on its original schedule grid. One-shot reminders keep
    their time, so an overdue one fires on the next pass.
    """
    scheduled_time = reminder.scheduled_time
    if reminder.is_recurring and scheduled_time <= now:
        anchor = scheduled_time if preserve_phase else now
        scheduled_time = next_occurrence(anchor, reminder.repeat_interval, now)
    return replace(
        reminder,
        is_active=True,
        sent=False,
        scheduled_time=scheduled_time,
        updated_at=now,
    )
