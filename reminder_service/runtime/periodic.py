"""
Periodic asyncio tasks bound to the FastAPI lifespan.

Used to run the scheduler tick inside the API process when no Celery beat is
deployed. A failing iteration is logged and the loop keeps going.
"""
import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from fastapi import FastAPI

_TASKS_STATE_KEY = "_periodic_tasks"


def start_periodic_task(
    app: FastAPI,
    *,
    name: str,
    interval_seconds: float,
    func: Callable[[], Awaitable[None]],
    logger: logging.Logger,
) -> "asyncio.Task[None]":
    """Start ``func`` every ``interval_seconds`` and register the task on ``app.state``."""
    tasks = getattr(app.state, _TASKS_STATE_KEY, None)
    if tasks is None:
        tasks = []
        setattr(app.state, _TASKS_STATE_KEY, tasks)

    async def _runner() -> None:
        while True:
            try:
                await func()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"[Periodic] Task {name} failed: {e}")
            await asyncio.sleep(float(interval_seconds))

    task = asyncio.create_task(_runner(), name=name)
    tasks.append(task)
    logger.info(f"[Periodic] Started {name} every {interval_seconds}s")
    return task


async def stop_periodic_tasks(app: FastAPI, *, logger: logging.Logger) -> None:
    tasks: Optional[List["asyncio.Task[None]"]] = getattr(app.state, _TASKS_STATE_KEY, None)
    if not tasks:
        return
    for t in tasks:
        t.cancel()
    try:
        await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        setattr(app.state, _TASKS_STATE_KEY, [])
        logger.info("[Periodic] Tasks stopped")
