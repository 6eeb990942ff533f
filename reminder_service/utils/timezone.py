from datetime import datetime, timezone as dt_timezone
from typing import Optional

try:
    from zoneinfo import ZoneInfo  # Python 3.9+
except Exception:  # pragma: no cover
    ZoneInfo = None  # type: ignore

from reminder_service.core.config import settings


def get_zoneinfo() -> Optional["ZoneInfo"]:
    tz_name = getattr(settings, "DEFAULT_TIMEZONE", None)
    if not tz_name or not ZoneInfo:
        return None
    try:
        return ZoneInfo(tz_name)
    except Exception:
        return None


def utcnow() -> datetime:
    return datetime.now(dt_timezone.utc)


def to_utc_aware(dt: datetime | None) -> datetime | None:
    """
    Normalize any datetime to UTC-aware (tzinfo=UTC).
    - Aware datetimes are converted to UTC
    - Naive datetimes are assumed UTC and tz attached
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def parse_utc(value) -> datetime | None:
    """Parse a stored timestamp (datetime or ISO-8601 string, 'Z' accepted) into UTC-aware form."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_utc_aware(value)
    if isinstance(value, str) and value.strip():
        return to_utc_aware(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    raise ValueError(f"Unsupported timestamp value: {value!r}")


def to_local(dt: datetime | None) -> datetime | None:
    """Convert a UTC datetime to settings.DEFAULT_TIMEZONE for display."""
    if dt is None:
        return None
    tz = get_zoneinfo()
    aware = to_utc_aware(dt)
    return aware.astimezone(tz) if tz else aware
