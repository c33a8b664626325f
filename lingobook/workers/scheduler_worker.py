"""Executable worker running the periodic sweeps."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from datetime import timedelta

from lingobook.core.config import get_settings
from lingobook.core.database import SessionLocal, close_engine
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.scheduler.sweeps import SweepService
from lingobook.modules.scheduler.ticker import SweepSchedule, SweepTicker
from lingobook.modules.tenants.repository import TenantsRepository

logger = logging.getLogger(__name__)
settings = get_settings()


async def run_sweep(sweep: Callable[[SweepService], Awaitable[int]]) -> int:
    """Run one sweep in its own transaction."""
    async with SessionLocal() as session:
        service = SweepService(
            LessonsRepository(session),
            TenantsRepository(session),
            JobsRepository(session),
            settings=settings,
        )
        count = await sweep(service)
        await session.commit()
        return count


def build_schedules() -> list[SweepSchedule]:
    reminder_interval = timedelta(minutes=settings.reminder_sweep_minutes)
    return [
        SweepSchedule(
            name="reminders-24h",
            interval=reminder_interval,
            func=lambda: run_sweep(lambda service: service.sweep_reminders("24h")),
        ),
        SweepSchedule(
            name="reminders-1h",
            interval=reminder_interval,
            func=lambda: run_sweep(lambda service: service.sweep_reminders("1h")),
        ),
        SweepSchedule(
            name="payment-chase",
            interval=timedelta(hours=settings.payment_chase_sweep_hours),
            func=lambda: run_sweep(lambda service: service.sweep_payment_chase()),
        ),
        SweepSchedule(
            name="follow-ups",
            interval=timedelta(hours=settings.follow_up_sweep_hours),
            func=lambda: run_sweep(lambda service: service.sweep_follow_ups()),
        ),
    ]


async def main() -> None:
    logging.basicConfig(level=settings.log_level)
    mode = os.getenv("SCHEDULER_WORKER_MODE", "loop").strip().lower()
    ticker = SweepTicker(build_schedules())

    try:
        if mode == "once":
            logger.info("Scheduler sweep results: %s", await ticker.tick())
            return

        while True:
            results = await ticker.tick()
            if results:
                logger.info("Scheduler sweep results: %s", results)
            await asyncio.sleep(settings.sweep_tick_seconds)
    finally:
        await close_engine()


if __name__ == "__main__":
    asyncio.run(main())
