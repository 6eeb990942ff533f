"""
Scheduler loop.

One pass (``run_once``) loads every reminder and subscription, fires the due
reminders through the dispatcher and writes back only the reminders it fired.
The pass runs under a run lock, and each write is additionally guarded by the
reminder's version so a concurrent edit is never overwritten.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging
import time

from .clock import SystemClock
from .config import ReminderSettings, settings as reminder_settings
from .dispatcher import Dispatcher
from .domain import ReminderData, RunLogEntry, RunReport, SubscriptionData, Verdict
from .evaluator import STATUS_PENDING, describe, evaluate
from .exceptions import PersistenceError
from .locking import LocalRunLock
from .metrics import (
    reminders_fired_total,
    reminders_persistence_errors_total,
    reminders_write_conflicts_total,
    scheduler_run_duration_seconds,
    scheduler_runs_skipped_total,
    scheduler_runs_total,
)
from .recurrence import advance_after_fire
from .repository import ReminderStore
from reminder_service.utils.timezone import to_local, to_utc_aware

logger = logging.getLogger(__name__)


def build_payload(reminder: ReminderData, title: str) -> Dict[str, Any]:
    scheduled = reminder.scheduled_time
    return {
        "title": title,
        "body": reminder.message,
        "reminder_id": reminder.id,
        "scheduled_time": scheduled.isoformat(),
        # Stable per occurrence so receivers can drop duplicate deliveries
        "notification_id": f"{reminder.id}:{int(scheduled.timestamp())}",
    }


class ReminderScheduler:
    def __init__(
        self,
        store: ReminderStore,
        dispatcher: Dispatcher,
        clock=None,
        lock=None,
        cfg: Optional[ReminderSettings] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()
        self.lock = lock or LocalRunLock()
        self.cfg = cfg or reminder_settings

    def run_once(self, now: Optional[datetime] = None) -> RunReport:
        """Run one scheduler pass and return its report.

        Used by the periodic tick and by the reactivation path. If another pass
        holds the run lock for longer than the configured wait, or the lock
        backend is unreachable, this pass is skipped and the report says so.
        """
        with self.lock.hold(self.cfg.RUN_LOCK_WAIT_SECONDS) as acquired:
            if not acquired:
                scheduler_runs_skipped_total.inc()
                logger.warning("[Scheduler] Run lock not acquired; skipping this trigger")
                return RunReport(started_at=self.clock.now(), finished_at=self.clock.now(), skipped_busy=True)
            started = time.monotonic()
            try:
                return self._run(to_utc_aware(now) if now else self.clock.now())
            finally:
                scheduler_runs_total.inc()
                scheduler_run_duration_seconds.observe(time.monotonic() - started)

    def _run(self, now: datetime) -> RunReport:
        report = RunReport(started_at=now)
        logger.info(f"[Scheduler] Pass started at {now.isoformat()} (local {to_local(now).isoformat()})")

        try:
            reminders = self.store.list_reminders()
            subscriptions = self.store.list_subscriptions()
        except PersistenceError as e:
            reminders_persistence_errors_total.inc()
            report.persistence_errors += 1
            report.log.append(RunLogEntry(None, "", "error", "load_failed", str(e)))
            logger.error(f"[Scheduler] Could not load reminders/subscriptions: {e}")
            return self._finish(report)

        report.subscriptions = len(subscriptions)
        live: List[SubscriptionData] = list(subscriptions)
        logger.info(f"[Scheduler] Loaded {len(reminders)} reminders, {len(subscriptions)} subscriptions")

        for reminder in reminders:
            report.processed += 1
            status, minutes = describe(reminder, now)
            if evaluate(reminder, now) is Verdict.SKIP:
                detail = f"in {minutes}m" if status == STATUS_PENDING else ""
                report.log.append(RunLogEntry(reminder.id, reminder.message, status, detail=detail))
                continue
            report.log.append(self._fire(reminder, live, now, report))

        return self._finish(report)

    def _fire(self, reminder: ReminderData, live: List[SubscriptionData], now: datetime, report: RunReport) -> RunLogEntry:
        entry = RunLogEntry(reminder.id, reminder.message, "due")

        outcome = self.dispatcher.dispatch(build_payload(reminder, self.cfg.NOTIFICATION_TITLE), list(live))
        reminders_fired_total.inc()
        report.fired += 1
        report.delivered += outcome.delivered
        report.failed += outcome.failed
        report.pruned.extend(outcome.pruned)
        if outcome.pruned:
            gone = set(outcome.pruned)
            live[:] = [s for s in live if s.endpoint not in gone]

        delivery = f"delivered {outcome.delivered}/{outcome.total}"
        if self.cfg.MARK_SENT_REQUIRES_DELIVERY and not outcome.succeeded:
            entry.action = "retry_next_tick"
            entry.detail = delivery
            logger.info(f"[Scheduler] {reminder.id}: no delivery succeeded, left due for the next tick")
            return entry

        updated = advance_after_fire(reminder, now)
        try:
            written = self.store.save_reminder(updated, expected_version=reminder.version)
        except PersistenceError as e:
            reminders_persistence_errors_total.inc()
            report.persistence_errors += 1
            entry.action = "persist_failed"
            entry.detail = f"{delivery}; {e}"
            logger.error(f"[Scheduler] {reminder.id}: state write failed, will be re-evaluated next tick: {e}")
            return entry

        if not written:
            reminders_write_conflicts_total.inc()
            report.conflicts += 1
            entry.action = "conflict"
            entry.detail = f"{delivery}; reminder changed concurrently, write skipped"
            logger.warning(f"[Scheduler] {reminder.id}: version {reminder.version} is stale, write skipped")
            return entry

        if updated.is_recurring:
            entry.action = "rescheduled"
            entry.detail = f"{delivery}; next at {updated.scheduled_time.isoformat()}"
        else:
            entry.action = "marked_sent"
            entry.detail = delivery
        logger.info(f"[Scheduler] {reminder.id}: {entry.action} ({entry.detail})")
        return entry

    def _finish(self, report: RunReport) -> RunReport:
        report.finished_at = self.clock.now()
        logger.info(f"[Scheduler] {report.summary()}")
        return report
