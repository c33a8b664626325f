"""Periodic sweeps that turn lesson state into keyed background jobs."""

from __future__ import annotations

import logging
from datetime import timedelta

from lingobook.core.config import Settings, get_settings
from lingobook.core.enums import LessonStatusEnum
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.modules.jobs.service import JobQueue
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.tenants.repository import TenantsRepository
from lingobook.shared.timegrid import local_day_bounds, resolve_timezone
from lingobook.shared.utils import utc_now

logger = logging.getLogger(__name__)

REMINDER_WINDOWS: dict[str, tuple[timedelta, str]] = {
    "24h": (timedelta(hours=24), "reminder_24h_sent"),
    "1h": (timedelta(hours=1), "reminder_1h_sent"),
}

CHASE_JOB_NAME = "chase-payment"


class SweepService:
    """Reminder, payment-chase and follow-up sweeps over one DB session."""

    def __init__(
        self,
        lessons_repository: LessonsRepository,
        tenants_repository: TenantsRepository,
        jobs_repository: JobsRepository,
        *,
        settings: Settings | None = None,
        now_provider=utc_now,
    ) -> None:
        self.lessons_repository = lessons_repository
        self.tenants_repository = tenants_repository
        self.jobs_repository = jobs_repository
        self.job_queue = JobQueue(jobs_repository)
        self.settings = settings or get_settings()
        self.now_provider = now_provider

    async def sweep_reminders(self, window: str) -> int:
        """Queue reminders for confirmed lessons starting around ``now + lead``.

        The window is centered on the lead time and as wide as the sweep
        interval, so each lesson falls into exactly one run.
        """
        lead, flag_name = REMINDER_WINDOWS[window]
        half_width = timedelta(minutes=self.settings.reminder_window_minutes) / 2
        target = self.now_provider() + lead
        lessons = await self.lessons_repository.list_due_for_reminder(
            target - half_width,
            target + half_width,
            flag_name,
        )
        for lesson in lessons:
            await self.job_queue.reminder_due(lesson.tenant_id, lesson.id, window, lesson.starts_at)
            await self.lessons_repository.update_lesson(lesson, **{flag_name: True})

        if lessons:
            logger.info("Reminder sweep %s queued %s lessons", window, len(lessons))
        return len(lessons)

    async def sweep_payment_chase(self) -> int:
        """Queue the next payment reminder for each stale unpaid reservation."""
        now = self.now_provider()
        created_before = now - timedelta(hours=self.settings.payment_chase_min_age_hours)
        lessons = await self.lessons_repository.list_unpaid_reservations(created_before, now)

        queued = 0
        for lesson in lessons:
            attempt = await self.jobs_repository.count_completed_runs_for_lesson(CHASE_JOB_NAME, lesson.id) + 1
            if attempt > self.settings.payment_chase_max_attempts:
                continue
            if await self.job_queue.payment_chase_due(lesson.tenant_id, lesson.id, attempt):
                queued += 1

        if queued:
            logger.info("Payment chase sweep queued %s lessons", queued)
        return queued

    async def sweep_follow_ups(self) -> int:
        """Complete and follow up lessons that ended during each tenant's local yesterday."""
        now = self.now_provider()
        total = 0
        for tenant in await self.tenants_repository.list_active_tenants():
            tz = resolve_timezone(tenant.timezone)
            yesterday = now.astimezone(tz).date() - timedelta(days=1)
            day_start, day_end = local_day_bounds(yesterday, tz)
            lessons = await self.lessons_repository.list_follow_up_candidates(tenant.id, day_start, day_end)
            for lesson in lessons:
                changes: dict[str, object] = {"follow_up_sent": True}
                if lesson.status == LessonStatusEnum.CONFIRMED:
                    changes["status"] = LessonStatusEnum.COMPLETED
                await self.lessons_repository.update_lesson(lesson, **changes)
                await self.job_queue.follow_up_due(tenant.id, lesson.id)
            total += len(lessons)

        if total:
            logger.info("Follow-up sweep queued %s lessons", total)
        return total
