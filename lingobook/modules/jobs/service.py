"""Job enqueue facade: one method per lifecycle event, owning the job keys."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from lingobook.modules.jobs.contracts import (
    ChasePayment,
    CreateCalendarEvent,
    DeleteCalendarEvent,
    FollowUp,
    JobRequestBase,
    LeadContact,
    ScheduleReminders,
    SendConfirmationEmail,
    SendReminder1hEmail,
    SendReminder24hEmail,
    SendWelcome,
    UpdateCalendarEvent,
)
from lingobook.modules.jobs.repository import JobsRepository

logger = logging.getLogger(__name__)

REMINDER_REQUESTS: dict[str, type[JobRequestBase]] = {
    "24h": SendReminder24hEmail,
    "1h": SendReminder1hEmail,
}


def reminder_job_key(window: str, lesson_id: UUID, starts_at: datetime) -> str:
    return f"reminder-{window}-{lesson_id}-{int(starts_at.timestamp())}"


class JobQueue:
    """Writes keyed outbox jobs in the caller's transaction."""

    def __init__(self, repository: JobsRepository) -> None:
        self.repository = repository

    async def _enqueue(self, request: JobRequestBase, job_key: str) -> bool:
        created = await self.repository.enqueue(request, job_key)
        if created:
            logger.info("Enqueued %s/%s as %s", request.queue, request.job_name, job_key)
        else:
            logger.debug("Job %s already enqueued", job_key)
        return created

    async def lesson_confirmed(self, tenant_id: UUID, lesson_id: UUID, key_suffix: str) -> None:
        """Calendar event, confirmation email and reminder tracking for a confirmed lesson."""
        await self._enqueue(
            CreateCalendarEvent(tenant_id=tenant_id, lesson_id=lesson_id),
            f"calendar-create-event-{lesson_id}-{key_suffix}",
        )
        await self._enqueue(
            SendConfirmationEmail(tenant_id=tenant_id, lesson_id=lesson_id),
            f"confirmation-{lesson_id}-{key_suffix}",
        )
        await self._enqueue(
            ScheduleReminders(tenant_id=tenant_id, lesson_id=lesson_id),
            f"schedule-reminders-{lesson_id}-{key_suffix}",
        )

    async def lesson_confirmed_without_payment(self, tenant_id: UUID, lesson_id: UUID, key_suffix: str) -> None:
        await self._enqueue(
            CreateCalendarEvent(tenant_id=tenant_id, lesson_id=lesson_id),
            f"calendar-create-event-{lesson_id}-{key_suffix}",
        )
        await self._enqueue(
            SendConfirmationEmail(tenant_id=tenant_id, lesson_id=lesson_id),
            f"confirmation-{lesson_id}-{key_suffix}",
        )

    async def lesson_rescheduled(self, tenant_id: UUID, lesson_id: UUID, key_suffix: str) -> bool:
        return await self._enqueue(
            UpdateCalendarEvent(tenant_id=tenant_id, lesson_id=lesson_id),
            f"calendar-update-event-{lesson_id}-{key_suffix}",
        )

    async def lesson_cancelled(self, tenant_id: UUID, lesson_id: UUID, calendar_event_id: str) -> bool:
        return await self._enqueue(
            DeleteCalendarEvent(tenant_id=tenant_id, lesson_id=lesson_id, calendar_event_id=calendar_event_id),
            f"calendar-delete-event-{lesson_id}",
        )

    async def reminder_due(self, tenant_id: UUID, lesson_id: UUID, window: str, starts_at: datetime) -> bool:
        """Keyed per start instant so a rescheduled lesson gets a fresh reminder."""
        request_cls = REMINDER_REQUESTS[window]
        return await self._enqueue(
            request_cls(tenant_id=tenant_id, lesson_id=lesson_id),
            reminder_job_key(window, lesson_id, starts_at),
        )

    async def payment_chase_due(self, tenant_id: UUID, lesson_id: UUID, attempt: int) -> bool:
        return await self._enqueue(
            ChasePayment(tenant_id=tenant_id, lesson_id=lesson_id, attempt=attempt),
            f"chase-{lesson_id}-{attempt}",
        )

    async def follow_up_due(self, tenant_id: UUID, lesson_id: UUID) -> bool:
        return await self._enqueue(
            FollowUp(tenant_id=tenant_id, lesson_id=lesson_id),
            f"followup-{lesson_id}",
        )

    async def lead_captured(self, tenant_id: UUID, lead_id: UUID, lead: LeadContact) -> bool:
        return await self._enqueue(
            SendWelcome(tenant_id=tenant_id, lead=lead),
            f"welcome-{lead_id}",
        )
