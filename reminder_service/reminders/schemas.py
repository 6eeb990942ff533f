"""
API schemas for reminders, subscriptions and scheduler reports
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from .domain import DispatchResult, ReminderData, RunReport, SubscriptionData


class ReminderCreate(BaseModel):
    """Schema for creating a reminder; naive times are taken as UTC"""
    message: str = Field(..., min_length=1)
    scheduled_time: datetime
    repeat_interval: int = Field(default=0, ge=0, description="Minutes between occurrences, 0 = one-shot")
    is_active: bool = True


class ReminderToggle(BaseModel):
    is_active: bool


class ReminderRead(BaseModel):
    id: str
    message: str
    scheduled_time: datetime
    is_active: bool
    sent: bool
    repeat_interval: int
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_data(cls, r: ReminderData) -> "ReminderRead":
        return cls(
            id=r.id,
            message=r.message,
            scheduled_time=r.scheduled_time,
            is_active=r.is_active,
            sent=r.sent,
            repeat_interval=r.repeat_interval,
            version=r.version,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )


class SubscriptionCreate(BaseModel):
    """Push subscription as posted by a client (web-push JSON or an FCM token)"""
    endpoint: str = Field(..., min_length=1)
    keys: Dict[str, Any] = Field(default_factory=dict)
    platform: str = Field(default="web", pattern="^(ios|android|web)$")


class SubscriptionRead(BaseModel):
    endpoint: str
    keys: Dict[str, Any]
    platform: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_data(cls, s: SubscriptionData) -> "SubscriptionRead":
        return cls(
            endpoint=s.endpoint,
            keys=s.keys,
            platform=s.platform,
            created_at=s.created_at,
            updated_at=s.updated_at,
        )


class RunLogEntryRead(BaseModel):
    reminder_id: Optional[str]
    message: str
    status: str
    action: str
    detail: str


class RunReportRead(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime]
    processed: int
    fired: int
    delivered: int
    failed: int
    subscriptions: int
    pruned: List[str]
    persistence_errors: int
    conflicts: int
    skipped_busy: bool
    summary: str
    log: List[RunLogEntryRead]

    @classmethod
    def from_report(cls, report: RunReport) -> "RunReportRead":
        return cls(**report.to_dict())


class ReminderToggleResult(BaseModel):
    success: bool = True
    reminder: ReminderRead
    run: Optional[RunReportRead] = None


class NotificationTestResult(BaseModel):
    success: bool = True
    sent: int
    failed: int
    pruned: List[str]

    @classmethod
    def from_dispatch(cls, result: DispatchResult) -> "NotificationTestResult":
        return cls(sent=result.delivered, failed=result.failed, pruned=list(result.pruned))
