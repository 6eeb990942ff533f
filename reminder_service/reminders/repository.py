import contextlib
import json
import logging
from typing import Any, Callable, Iterator, List, Mapping, Optional

from sqlalchemy import String, delete, insert, select, type_coerce, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .domain import ReminderData, SubscriptionData
from .exceptions import PersistenceError
from .models import Reminder, Subscription
from reminder_service.utils.timezone import parse_utc, to_utc_aware, utcnow

logger = logging.getLogger(__name__)


def _raw(column, name: str):
    # Read without the column type's result processor so a corrupt value
    # reaches the row converter instead of failing the whole result set
    return type_coerce(column, String).label(name)


_REMINDER_COLUMNS = (
    Reminder.id,
    Reminder.message,
    _raw(Reminder.scheduled_time, "scheduled_time"),
    Reminder.is_active,
    Reminder.sent,
    _raw(Reminder.repeat_interval, "repeat_interval"),
    _raw(Reminder.version, "version"),
    _raw(Reminder.created_at, "created_at"),
    _raw(Reminder.updated_at, "updated_at"),
)

_SUBSCRIPTION_COLUMNS = (
    Subscription.endpoint,
    _raw(Subscription.keys, "keys"),
    Subscription.platform,
    _raw(Subscription.created_at, "created_at"),
    _raw(Subscription.updated_at, "updated_at"),
)


def _parse_keys(value: Any) -> dict:
    if value is None:
        return {}
    if isinstance(value, str):
        value = json.loads(value) if value.strip() else {}
    if not isinstance(value, dict):
        raise ValueError("keys is not an object")
    return dict(value)


def _reminder_from_row(row: Mapping[str, Any]) -> Optional[ReminderData]:
    """Convert a stored row; unreadable rows are reported and treated as absent."""
    try:
        if not row["id"]:
            raise ValueError("missing id")
        scheduled_time = parse_utc(row["scheduled_time"])
        if scheduled_time is None:
            raise ValueError("missing scheduled_time")
        repeat_interval = int(row["repeat_interval"] or 0)
        if repeat_interval < 0:
            raise ValueError(f"negative repeat_interval {repeat_interval}")
        return ReminderData(
            id=str(row["id"]),
            message=str(row["message"] or ""),
            scheduled_time=scheduled_time,
            is_active=bool(row["is_active"]),
            sent=bool(row["sent"]),
            repeat_interval=repeat_interval,
            created_at=parse_utc(row["created_at"]),
            updated_at=parse_utc(row["updated_at"]),
            version=int(row["version"] or 1),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"[Store] Ignoring malformed reminder {row.get('id')!r}: {e}")
        return None


def _subscription_from_row(row: Mapping[str, Any]) -> Optional[SubscriptionData]:
    try:
        if not row["endpoint"]:
            raise ValueError("missing endpoint")
        return SubscriptionData(
            endpoint=str(row["endpoint"]),
            keys=_parse_keys(row["keys"]),
            platform=str(row["platform"] or "web"),
            created_at=parse_utc(row["created_at"]),
            updated_at=parse_utc(row["updated_at"]),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"[Store] Ignoring malformed subscription {row.get('endpoint')!r}: {e}")
        return None


class ReminderStore:
    """Reminder and subscription persistence.

    Every call runs in its own session and transaction, so one failed write
    never rolls back another reminder's state.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextlib.contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # --- Reminders ---

    def _read_reminder(self, db: Session, reminder_id: str) -> Optional[ReminderData]:
        row = db.execute(select(*_REMINDER_COLUMNS).where(Reminder.id == reminder_id)).first()
        return _reminder_from_row(row._mapping) if row else None

    def list_reminders(self) -> List[ReminderData]:
        with self._session() as db:
            rows = db.execute(select(*_REMINDER_COLUMNS).order_by(Reminder.scheduled_time.asc())).all()
        items = [_reminder_from_row(r._mapping) for r in rows]
        return [r for r in items if r is not None]

    def get_reminder(self, reminder_id: str) -> Optional[ReminderData]:
        with self._session() as db:
            return self._read_reminder(db, reminder_id)

    def upsert_reminder(self, reminder: ReminderData) -> ReminderData:
        """Insert or overwrite a reminder unconditionally and bump its version.

        Overwriting also repairs a row whose stored values could not be read.
        """
        now = utcnow()
        values = dict(
            message=reminder.message,
            scheduled_time=to_utc_aware(reminder.scheduled_time),
            is_active=reminder.is_active,
            sent=reminder.sent,
            repeat_interval=reminder.repeat_interval,
            updated_at=to_utc_aware(reminder.updated_at) or now,
        )
        with self._session() as db:
            current = db.execute(
                select(_raw(Reminder.version, "version")).where(Reminder.id == reminder.id)
            ).first()
            if current is None:
                db.execute(insert(Reminder).values(
                    id=reminder.id,
                    version=1,
                    created_at=to_utc_aware(reminder.created_at) or now,
                    **values,
                ))
            else:
                try:
                    version = int(current.version or 1) + 1
                except (TypeError, ValueError):
                    version = 1
                db.execute(
                    update(Reminder)
                    .where(Reminder.id == reminder.id)
                    .values(version=version, **values)
                    .execution_options(synchronize_session=False)
                )
            stored = self._read_reminder(db, reminder.id)
        return stored

    def save_reminder(self, reminder: ReminderData, expected_version: int) -> bool:
        """Write a reminder only if nobody else wrote it since ``expected_version`` was read.

        Returns False when the row changed or disappeared in the meantime.
        """
        with self._session() as db:
            result = db.execute(
                update(Reminder)
                .where(Reminder.id == reminder.id)
                .where(Reminder.version == expected_version)
                .values(
                    message=reminder.message,
                    scheduled_time=to_utc_aware(reminder.scheduled_time),
                    is_active=reminder.is_active,
                    sent=reminder.sent,
                    repeat_interval=reminder.repeat_interval,
                    updated_at=to_utc_aware(reminder.updated_at) or utcnow(),
                    version=expected_version + 1,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    def delete_reminder(self, reminder_id: str) -> bool:
        with self._session() as db:
            result = db.execute(delete(Reminder).where(Reminder.id == reminder_id))
            return result.rowcount > 0

    # --- Subscriptions ---

    def _read_subscription(self, db: Session, endpoint: str) -> Optional[SubscriptionData]:
        row = db.execute(select(*_SUBSCRIPTION_COLUMNS).where(Subscription.endpoint == endpoint)).first()
        return _subscription_from_row(row._mapping) if row else None

    def list_subscriptions(self) -> List[SubscriptionData]:
        with self._session() as db:
            rows = db.execute(select(*_SUBSCRIPTION_COLUMNS).order_by(Subscription.created_at.asc())).all()
        items = [_subscription_from_row(s._mapping) for s in rows]
        return [s for s in items if s is not None]

    def get_subscription(self, endpoint: str) -> Optional[SubscriptionData]:
        with self._session() as db:
            return self._read_subscription(db, endpoint)

    def upsert_subscription(self, subscription: SubscriptionData) -> SubscriptionData:
        """Register an endpoint; registering it again refreshes keys and platform."""
        now = utcnow()
        values = dict(
            keys=dict(subscription.keys or {}),
            platform=subscription.platform,
            updated_at=now,
        )
        with self._session() as db:
            exists = db.execute(
                select(Subscription.endpoint).where(Subscription.endpoint == subscription.endpoint)
            ).first()
            if exists is None:
                db.execute(insert(Subscription).values(endpoint=subscription.endpoint, created_at=now, **values))
            else:
                db.execute(
                    update(Subscription)
                    .where(Subscription.endpoint == subscription.endpoint)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
            stored = self._read_subscription(db, subscription.endpoint)
        return stored

    def delete_subscription(self, endpoint: str) -> bool:
        with self._session() as db:
            result = db.execute(delete(Subscription).where(Subscription.endpoint == endpoint))
            return result.rowcount > 0
