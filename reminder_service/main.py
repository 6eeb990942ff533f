from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
import uvicorn

from reminder_service.core.config import settings
from reminder_service.core.logging_config import configure_logging
from reminder_service.db.session import init_db
from reminder_service.reminders.api import router as reminders_router
from reminder_service.reminders.config import settings as reminder_settings
from reminder_service.reminders.deps import get_channel, get_scheduler
from reminder_service.reminders.exceptions import PersistenceError
from reminder_service.runtime.periodic import start_periodic_task, stop_periodic_tasks

logger = logging.getLogger(__name__)


async def _scheduler_tick() -> None:
    # run_once blocks on the store and on delivery; keep it off the event loop
    await asyncio.to_thread(get_scheduler().run_once)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    configure_logging()
    logger.info(f"Starting up {settings.PROJECT_NAME} ({settings.ENVIRONMENT.value})...")

    try:
        init_db()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    if reminder_settings.RUN_TICK_IN_PROCESS:
        start_periodic_task(
            app,
            name="reminders-tick",
            interval_seconds=reminder_settings.SCHEDULER_SCAN_INTERVAL_SECONDS,
            func=_scheduler_tick,
            logger=logger,
        )
    else:
        logger.info("In-process tick disabled; expecting Celery beat to drive reminders.run_once")

    yield

    await stop_periodic_tasks(app, logger=logger)
    if get_channel.cache_info().currsize:
        get_channel().close()
    logger.info("Shutdown complete")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url=f"{settings.API_V1_STR}/docs",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"[API] Store error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=503, content={"detail": "Reminder store unavailable"})

    app.include_router(reminders_router, prefix=f"{settings.API_V1_STR}/reminders", tags=["reminders"])

    if reminder_settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
        logger.info("Prometheus metrics exposed at /metrics")

    return app


# Create the FastAPI app instance
app = create_application()


if __name__ == "__main__":
    uvicorn.run(
        "reminder_service.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
