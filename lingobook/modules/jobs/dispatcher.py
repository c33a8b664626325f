"""Outbox job dispatcher: claim, execute, retry, dead-letter."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from lingobook.core.enums import JobRunStatusEnum
from lingobook.core.metrics import JOBS_TOTAL
from lingobook.modules.jobs.contracts import parse_job_request
from lingobook.modules.jobs.handlers import JobHandlers
from lingobook.modules.jobs.models import OutboxJob
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.shared.utils import utc_now

logger = logging.getLogger(__name__)


class JobDispatcher:
    """Process due jobs of one queue inside the caller's session."""

    def __init__(
        self,
        repository: JobsRepository,
        handlers: JobHandlers,
        queue: str,
        *,
        batch_size: int = 50,
        base_backoff_seconds: int = 5,
        max_backoff_seconds: int = 300,
        now_provider=utc_now,
    ) -> None:
        self.repository = repository
        self.handlers = handlers
        self.queue = queue
        self.batch_size = batch_size
        self.base_backoff_seconds = base_backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds
        self.now_provider = now_provider

    async def run_once(self) -> dict[str, int]:
        """Run one processing cycle."""
        stats = {"claimed": 0, "processed": 0, "retried": 0, "dead_letter": 0}
        jobs = await self.repository.claim_batch(self.queue, self.batch_size, self.now_provider())
        for job in jobs:
            stats["claimed"] += 1
            outcome = await self._run_job(job)
            stats[outcome] += 1
        return stats

    def backoff_for(self, attempts: int) -> timedelta:
        attempts = max(attempts, 1)
        seconds = min(self.max_backoff_seconds, self.base_backoff_seconds * (2 ** (attempts - 1)))
        return timedelta(seconds=seconds)

    async def _run_job(self, job: OutboxJob) -> str:
        started_at = self.now_provider()
        job.attempts += 1
        run = await self.repository.start_job_run(job, started_at)
        try:
            request = parse_job_request(job.payload)
            # Handler writes roll back on failure; the run and retry bookkeeping survive.
            async with self.repository.savepoint():
                result = await self.handlers.handle(request)
        except Exception as exc:
            return await self._record_failure(job, run, exc, started_at)

        finished_at = self.now_provider()
        await self.repository.mark_processed(job, finished_at)
        await self.repository.finish_job_run(run, JobRunStatusEnum.COMPLETED, finished_at, result=result)
        JOBS_TOTAL.labels(queue=job.queue, job_name=job.job_name, outcome="completed").inc()
        return "processed"

    async def _record_failure(self, job: OutboxJob, run, exc: Exception, started_at: datetime) -> str:
        error = f"{type(exc).__name__}: {exc}"
        finished_at = self.now_provider()
        if job.attempts >= job.max_attempts:
            logger.error("Job %s dead-lettered after %s attempts: %s", job.job_key, job.attempts, error)
            await self.repository.mark_failed(job, error)
            await self.repository.finish_job_run(run, JobRunStatusEnum.DEAD_LETTER, finished_at, error=error)
            JOBS_TOTAL.labels(queue=job.queue, job_name=job.job_name, outcome="dead_letter").inc()
            return "dead_letter"

        retry_at = started_at + self.backoff_for(job.attempts)
        logger.warning("Job %s failed (attempt %s), retrying at %s: %s", job.job_key, job.attempts, retry_at, error)
        await self.repository.schedule_retry(job, error, retry_at)
        await self.repository.finish_job_run(run, JobRunStatusEnum.FAILED, finished_at, error=error)
        JOBS_TOTAL.labels(queue=job.queue, job_name=job.job_name, outcome="failed").inc()
        return "retried"
