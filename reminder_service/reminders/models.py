"""
Reminder and subscription tables
"""
from datetime import datetime, timezone as dt_timezone
from sqlalchemy import Column, String, DateTime, Boolean, Integer, JSON, Index

from reminder_service.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(dt_timezone.utc)


class Reminder(Base):
    """One-shot (repeat_interval == 0) or recurring reminder"""
    __tablename__ = "reminders"

    id = Column(String, primary_key=True)
    message = Column(String, nullable=False)
    scheduled_time = Column(DateTime(timezone=True), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    sent = Column(Boolean, nullable=False, default=False)
    repeat_interval = Column(Integer, nullable=False, default=0)  # minutes, 0 = one-shot

    # Optimistic concurrency: every write bumps the version
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_reminders_active_sent_time", "is_active", "sent", "scheduled_time"),
    )


class Subscription(Base):
    """Push endpoint registered by a client device"""
    __tablename__ = "subscriptions"

    endpoint = Column(String, primary_key=True)
    keys = Column(JSON, nullable=False, default=dict)
    platform = Column(String, nullable=False, default="web")  # web, ios, android
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
