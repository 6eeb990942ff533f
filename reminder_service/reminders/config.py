from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Literal, Optional


class ReminderSettings(BaseSettings):
    # Scheduling
    SCHEDULER_SCAN_INTERVAL_SECONDS: int = Field(default=60, ge=1)
    RUN_TICK_IN_PROCESS: bool = False
    RUN_LOCK_WAIT_SECONDS: float = 30.0
    RUN_LOCK_LEASE_SECONDS: int = 300

    # Delivery
    DELIVERY_CHANNEL: Literal["fcm", "webpush", "webhook"] = "fcm"
    DISPATCH_MAX_WORKERS: int = Field(default=10, ge=1)
    DISPATCH_TIMEOUT_SECONDS: float = 10.0
    NOTIFICATION_TITLE: str = "SliderApp Reminder"

    # State machine policy
    MARK_SENT_REQUIRES_DELIVERY: bool = False
    REACTIVATE_PRESERVE_PHASE: bool = False

    # FCM
    FCM_PROJECT_ID: Optional[str] = None
    FCM_CREDENTIALS_JSON: Optional[str] = None  # path or inline JSON via env

    # Web Push (VAPID)
    VAPID_PUBLIC_KEY: Optional[str] = None  # handed to browsers for PushManager.subscribe
    VAPID_PRIVATE_KEY: Optional[str] = None  # base64url key or path to a PEM file
    VAPID_SUBJECT: str = "mailto:admin@example.com"

    # Celery / Redis
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    REDIS_URL: Optional[str] = None
    WORKER_CONCURRENCY: int = 1

    # Metrics
    METRICS_ENABLED: bool = False

    model_config = SettingsConfigDict(env_prefix="REMINDER_", env_file=".env", extra="ignore")


settings = ReminderSettings()
