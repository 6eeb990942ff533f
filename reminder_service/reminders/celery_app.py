from celery import Celery
from .config import settings


broker_url = settings.CELERY_BROKER_URL or settings.REDIS_URL or "redis://localhost:6379/0"
result_backend = settings.CELERY_RESULT_BACKEND or None

celery_app = Celery(
    "reminders",
    broker=broker_url,
    backend=result_backend,
)

celery_app.conf.update(
    task_acks_late=True,
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.WORKER_CONCURRENCY,
    include=["reminder_service.reminders.tasks"],
    task_time_limit=settings.RUN_LOCK_LEASE_SECONDS,
)

# Celery Beat schedule for the periodic scheduler pass
celery_app.conf.beat_schedule = {
    "run-reminders": {
        "task": "reminders.run_once",
        "schedule": settings.SCHEDULER_SCAN_INTERVAL_SECONDS,
        # A tick that could not start in time is superseded by the next one
        "options": {"expires": settings.SCHEDULER_SCAN_INTERVAL_SECONDS},
    },
}
