import logging
from typing import Any, Dict

from celery import shared_task
from celery.signals import worker_process_init

from reminder_service.core.logging_config import configure_logging
from reminder_service.db.session import init_db
from .deps import get_scheduler

logger = logging.getLogger(__name__)


@worker_process_init.connect
def _init_worker(**_kwargs) -> None:
    configure_logging()
    init_db()


@shared_task(name="reminders.run_once")
def run_once_task() -> Dict[str, Any]:
    """Run one scheduler pass. Returns the pass report as a JSON-able dict."""
    report = get_scheduler().run_once()
    logger.info(f"[Reminders] Tick finished: {report.summary()}")
    return report.to_dict()
