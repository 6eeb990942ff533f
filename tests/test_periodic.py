import asyncio
import logging

from fastapi import FastAPI

from reminder_service.runtime.periodic import start_periodic_task, stop_periodic_tasks

logger = logging.getLogger("test.periodic")


def test_tick_runs_at_startup_survives_failures_and_stops():
    app = FastAPI()
    calls = []

    async def tick():
        calls.append(len(calls))
        if len(calls) == 1:
            raise RuntimeError("store unavailable")

    async def scenario():
        task = start_periodic_task(app, name="tick", interval_seconds=0.01, func=tick, logger=logger)
        await asyncio.sleep(0)
        # first iteration does not wait for the interval
        assert calls == [0]
        while len(calls) < 3:
            await asyncio.sleep(0.01)
        await stop_periodic_tasks(app, logger=logger)
        return task

    task = asyncio.run(scenario())

    assert task.cancelled()
    assert app.state._periodic_tasks == []
