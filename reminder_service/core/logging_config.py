import logging
import sys
from typing import Optional

from reminder_service.core.config import settings


_configured = False


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure root logging once for the API process and the Celery worker."""
    global _configured
    if _configured:
        return

    handlers = [logging.StreamHandler(sys.stdout)]
    target_file = log_file or settings.LOG_FILE
    if target_file:
        handlers.append(logging.FileHandler(target_file))

    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    _configured = True
