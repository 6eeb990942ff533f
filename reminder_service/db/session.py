import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from reminder_service.core.config import settings
from reminder_service.db.base import Base

logger = logging.getLogger(__name__)


def build_engine(url: str = None) -> Engine:
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        # The scheduler and the API share the engine across threads
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            echo=settings.SQL_ECHO,
        )
    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_recycle=300,      # Recycle connections every 5 minutes
        pool_pre_ping=True,    # Validate connections before use
        pool_timeout=30,
        echo=settings.SQL_ECHO,
    )


engine = build_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(bind: Engine = None) -> None:
    """Create the reminder tables if they do not exist yet."""
    # Models must be imported so they register with Base.metadata
    import reminder_service.reminders.models  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.info(f"Database initialized: {bind.url.render_as_string(hide_password=True)}")
