"""Executable worker draining the job outbox."""

from __future__ import annotations

import asyncio
import logging
import os

from lingobook.core.config import get_settings
from lingobook.core.database import SessionLocal, close_engine
from lingobook.core.enums import QueueEnum
from lingobook.modules.billing.repository import BillingRepository
from lingobook.modules.jobs.contracts import QUEUE_CONCURRENCY
from lingobook.modules.jobs.dispatcher import JobDispatcher
from lingobook.modules.jobs.handlers import JobHandlers
from lingobook.modules.jobs.providers import EmailProvider, build_email_provider
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.tenants.repository import TenantsRepository

logger = logging.getLogger(__name__)
settings = get_settings()


async def run_queue_slot(queue: QueueEnum, email_provider: EmailProvider) -> dict[str, int]:
    """Process one batch of a queue in its own transaction."""
    async with SessionLocal() as session:
        jobs_repository = JobsRepository(session)
        handlers = JobHandlers(
            lessons_repository=LessonsRepository(session),
            tenants_repository=TenantsRepository(session),
            billing_repository=BillingRepository(session),
            jobs_repository=jobs_repository,
            email_provider=email_provider,
            settings=settings,
        )
        dispatcher = JobDispatcher(
            jobs_repository,
            handlers,
            str(queue),
            batch_size=settings.job_batch_size,
            base_backoff_seconds=settings.job_base_backoff_seconds,
            max_backoff_seconds=settings.job_max_backoff_seconds,
        )
        stats = await dispatcher.run_once()
        await session.commit()
        return stats


async def run_cycle(email_provider: EmailProvider | None = None) -> dict[str, dict[str, int]]:
    """Run every queue with its configured number of concurrent slots."""
    provider = email_provider or build_email_provider(settings)
    summary: dict[str, dict[str, int]] = {}
    for queue, concurrency in QUEUE_CONCURRENCY.items():
        results = await asyncio.gather(
            *(run_queue_slot(queue, provider) for _ in range(concurrency)),
            return_exceptions=True,
        )
        totals = {"claimed": 0, "processed": 0, "retried": 0, "dead_letter": 0}
        for result in results:
            if isinstance(result, BaseException):
                logger.error("Queue %s slot failed: %r", queue, result)
                continue
            for key, value in result.items():
                totals[key] += value
        summary[str(queue)] = totals
    return summary


async def main() -> None:
    """Run once or keep polling according to worker mode."""
    logging.basicConfig(level=settings.log_level)
    mode = os.getenv("JOBS_WORKER_MODE", "loop").strip().lower()
    provider = build_email_provider(settings)

    try:
        if mode == "once":
            stats = await run_cycle(provider)
            logger.info("Jobs worker stats: %s", stats)
            return

        while True:
            try:
                stats = await run_cycle(provider)
                logger.debug("Jobs worker stats: %s", stats)
            except Exception:
                logger.exception("Jobs worker cycle failed")
            await asyncio.sleep(settings.job_poll_seconds)
    finally:
        await close_engine()


if __name__ == "__main__":
    asyncio.run(main())
