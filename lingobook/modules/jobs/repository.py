"""Job outbox repository layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction

from lingobook.core.config import get_settings
from lingobook.core.enums import JobRunStatusEnum, OutboxStatusEnum
from lingobook.modules.jobs.contracts import JobRequestBase, dump_job_request
from lingobook.modules.jobs.models import JobRun, OutboxJob
from lingobook.shared.utils import utc_now

settings = get_settings()


class JobsRepository:
    """DB access for outbox jobs and job runs."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def enqueue(
        self,
        request: JobRequestBase,
        job_key: str,
        *,
        available_at: datetime | None = None,
        max_attempts: int | None = None,
    ) -> bool:
        """Insert a job unless one with the same key exists; returns whether a row was written."""
        stmt = (
            insert(OutboxJob)
            .values(
                tenant_id=request.tenant_id,
                queue=str(request.queue),
                job_name=request.job_name,
                job_key=job_key,
                payload=dump_job_request(request),
                status=OutboxStatusEnum.PENDING,
                attempts=0,
                max_attempts=max_attempts or settings.job_max_attempts,
                available_at=available_at or utc_now(),
            )
            .on_conflict_do_nothing(index_elements=[OutboxJob.job_key])
            .returning(OutboxJob.id)
        )
        created_id = await self.session.scalar(stmt)
        return created_id is not None

    async def claim_batch(self, queue: str, limit: int, now: datetime) -> list[OutboxJob]:
        """Lock due pending jobs of a queue; other workers skip the locked rows."""
        stmt = (
            select(OutboxJob)
            .where(
                OutboxJob.queue == queue,
                OutboxJob.status == OutboxStatusEnum.PENDING,
                OutboxJob.available_at <= now,
            )
            .order_by(OutboxJob.available_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    def savepoint(self) -> AsyncSessionTransaction:
        return self.session.begin_nested()

    async def mark_processed(self, job: OutboxJob, processed_at: datetime) -> OutboxJob:
        job.status = OutboxStatusEnum.PROCESSED
        job.processed_at = processed_at
        job.error_message = None
        await self.session.flush()
        return job

    async def schedule_retry(self, job: OutboxJob, error_message: str, available_at: datetime) -> OutboxJob:
        job.status = OutboxStatusEnum.PENDING
        job.error_message = error_message
        job.available_at = available_at
        await self.session.flush()
        return job

    async def mark_failed(self, job: OutboxJob, error_message: str) -> OutboxJob:
        job.status = OutboxStatusEnum.FAILED
        job.error_message = error_message
        await self.session.flush()
        return job

    async def start_job_run(self, job: OutboxJob, started_at: datetime) -> JobRun:
        run = JobRun(
            tenant_id=job.tenant_id,
            queue=job.queue,
            job_name=job.job_name,
            job_id=job.job_key,
            status=JobRunStatusEnum.RUNNING,
            payload=job.payload,
            attempts=job.attempts,
            started_at=started_at,
        )
        self.session.add(run)
        await self.session.flush()
        return run

    async def finish_job_run(
        self,
        run: JobRun,
        status: JobRunStatusEnum,
        completed_at: datetime,
        result: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> JobRun:
        run.status = status
        run.completed_at = completed_at
        run.result = result
        run.error = error
        await self.session.flush()
        return run

    async def count_completed_runs_for_lesson(self, job_name: str, lesson_id: UUID) -> int:
        stmt = select(func.count(JobRun.id)).where(
            JobRun.job_name == job_name,
            JobRun.status == JobRunStatusEnum.COMPLETED,
            JobRun.payload["lesson_id"].astext == str(lesson_id),
        )
        return int((await self.session.scalar(stmt)) or 0)
