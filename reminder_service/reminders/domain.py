"""
Plain snapshots of stored records and the value types passed between
evaluator, dispatcher and scheduler
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Verdict(Enum):
    """Outcome of evaluating one reminder at one instant"""
    SKIP = "skip"
    FIRE = "fire"


class DeliveryStatus(Enum):
    """Outcome of one send to one endpoint"""
    OK = "ok"
    TERMINAL = "terminal"    # endpoint is gone for good, prune it
    TRANSIENT = "transient"  # may succeed on a later tick


@dataclass(frozen=True)
class ReminderData:
    id: str
    message: str
    scheduled_time: datetime
    is_active: bool = True
    sent: bool = False
    repeat_interval: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    version: int = 1

    @property
    def is_recurring(self) -> bool:
        return self.repeat_interval > 0


@dataclass(frozen=True)
class SubscriptionData:
    endpoint: str
    keys: Dict[str, Any] = field(default_factory=dict)
    platform: str = "web"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class DeliveryResult:
    status: DeliveryStatus
    status_code: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(DeliveryStatus.OK, status_code=status_code)

    @classmethod
    def terminal(cls, error: str, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(DeliveryStatus.TERMINAL, status_code=status_code, error=error)

    @classmethod
    def transient(cls, error: str, status_code: Optional[int] = None) -> "DeliveryResult":
        return cls(DeliveryStatus.TRANSIENT, status_code=status_code, error=error)


@dataclass
class DispatchResult:
    total: int = 0
    delivered: int = 0
    failed: int = 0
    pruned: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """No subscribers is not an error for the reminder's own state machine."""
        return self.delivered > 0 or self.total == 0


@dataclass
class RunLogEntry:
    reminder_id: Optional[str]
    message: str
    status: str
    action: str = "none"
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reminder_id": self.reminder_id,
            "message": self.message,
            "status": self.status,
            "action": self.action,
            "detail": self.detail,
        }


@dataclass
class RunReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    processed: int = 0
    fired: int = 0
    delivered: int = 0
    failed: int = 0
    subscriptions: int = 0
    pruned: List[str] = field(default_factory=list)
    persistence_errors: int = 0
    conflicts: int = 0
    skipped_busy: bool = False
    log: List[RunLogEntry] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.delivered + self.failed + len(self.pruned)

    def summary(self) -> str:
        if self.skipped_busy:
            return "skipped: run lock not acquired"
        pruned = len(self.pruned)
        text = (
            f"{self.processed} reminders evaluated, {self.fired} fired, "
            f"{self.delivered} of {self.attempted} subscriptions delivered, "
            f"{pruned} subscription{'' if pruned == 1 else 's'} pruned"
        )
        if self.persistence_errors:
            text += f", {self.persistence_errors} persistence errors"
        if self.conflicts:
            text += f", {self.conflicts} write conflicts"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "processed": self.processed,
            "fired": self.fired,
            "delivered": self.delivered,
            "failed": self.failed,
            "subscriptions": self.subscriptions,
            "pruned": list(self.pruned),
            "persistence_errors": self.persistence_errors,
            "conflicts": self.conflicts,
            "skipped_busy": self.skipped_busy,
            "summary": self.summary(),
            "log": [entry.to_dict() for entry in self.log],
        }
