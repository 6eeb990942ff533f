"""
Reminder service: user-facing operations on reminders and subscriptions,
including the reactivation path that triggers an out-of-band scheduler pass
"""
from dataclasses import replace
from typing import List, Optional, Tuple
import logging
import uuid

from .config import ReminderSettings, settings as reminder_settings
from .domain import DispatchResult, ReminderData, RunReport, SubscriptionData
from .exceptions import ReminderConflictError, ReminderNotFoundError
from .metrics import reminders_created_total
from .recurrence import reactivate
from .repository import ReminderStore
from .scheduler import ReminderScheduler
from .schemas import ReminderCreate, SubscriptionCreate
from reminder_service.utils.timezone import to_utc_aware

logger = logging.getLogger(__name__)

TOGGLE_ATTEMPTS = 3


class ReminderService:
    def __init__(self, store: ReminderStore, scheduler: ReminderScheduler, cfg: Optional[ReminderSettings] = None):
        self.store = store
        self.scheduler = scheduler
        self.clock = scheduler.clock
        self.cfg = cfg or reminder_settings

    # --- Reminders ---

    def create_reminder(self, data: ReminderCreate) -> ReminderData:
        now = self.clock.now()
        reminder = ReminderData(
            id=uuid.uuid4().hex,
            message=data.message,
            scheduled_time=to_utc_aware(data.scheduled_time),
            is_active=data.is_active,
            sent=False,
            repeat_interval=data.repeat_interval,
            created_at=now,
            updated_at=now,
        )
        stored = self.store.upsert_reminder(reminder)
        reminders_created_total.inc()
        kind = f"every {stored.repeat_interval}m" if stored.repeat_interval else "one-shot"
        logger.info(f"[Reminders] Created {stored.id} at {stored.scheduled_time.isoformat()} ({kind})")
        return stored

    def list_reminders(self) -> List[ReminderData]:
        return sorted(self.store.list_reminders(), key=lambda r: r.scheduled_time)

    def get_reminder(self, reminder_id: str) -> ReminderData:
        reminder = self.store.get_reminder(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    def delete_reminder(self, reminder_id: str) -> None:
        if not self.store.delete_reminder(reminder_id):
            raise ReminderNotFoundError(reminder_id)
        logger.info(f"[Reminders] Deleted {reminder_id}")

    def set_active(self, reminder_id: str, is_active: bool) -> Tuple[ReminderData, Optional[RunReport]]:
        """Switch a reminder on or off.

        Switching on re-arms it (``sent`` cleared, overdue recurring reminders
        moved to their next future occurrence), persists it and then runs a
        scheduler pass right away, so a reminder re-armed at its due time fires
        in the same request. Switching off only clears ``is_active``.
        """
        for _ in range(TOGGLE_ATTEMPTS):
            current = self.get_reminder(reminder_id)
            now = self.clock.now()
            if is_active:
                updated = reactivate(current, now, preserve_phase=self.cfg.REACTIVATE_PRESERVE_PHASE)
            else:
                updated = replace(current, is_active=False, updated_at=now)
            if self.store.save_reminder(updated, expected_version=current.version):
                break
            logger.info(f"[Reminders] Toggle of {reminder_id} raced with another write, retrying")
        else:
            raise ReminderConflictError(reminder_id)

        if not is_active:
            logger.info(f"[Reminders] Deactivated {reminder_id}")
            return self.get_reminder(reminder_id), None

        logger.info(f"[Reminders] Reactivated {reminder_id}, next at {updated.scheduled_time.isoformat()}")
        report = self.scheduler.run_once()
        return self.get_reminder(reminder_id), report

    def run_now(self) -> RunReport:
        return self.scheduler.run_once()

    # --- Subscriptions ---

    def register_subscription(self, data: SubscriptionCreate) -> SubscriptionData:
        stored = self.store.upsert_subscription(
            SubscriptionData(endpoint=data.endpoint, keys=dict(data.keys), platform=data.platform)
        )
        logger.info(f"[Reminders] Registered {stored.platform} subscription")
        return stored

    def list_subscriptions(self) -> List[SubscriptionData]:
        return self.store.list_subscriptions()

    def remove_subscription(self, endpoint: str) -> bool:
        return self.store.delete_subscription(endpoint)

    def send_test_notification(self) -> DispatchResult:
        """Push a fixed test payload to every subscription without touching reminder state."""
        subscriptions = self.store.list_subscriptions()
        payload = {
            "title": "Test Notification",
            "body": "If you see this, push works!",
            "notification_id": f"test:{uuid.uuid4().hex}",
        }
        return self.scheduler.dispatcher.dispatch(payload, subscriptions)
