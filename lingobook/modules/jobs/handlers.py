"""Worker-side handlers, one per job kind."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from lingobook.core.config import Settings, get_settings
from lingobook.core.enums import LessonStatusEnum, PaymentStatusEnum
from lingobook.modules.billing.repository import BillingRepository
from lingobook.modules.jobs.contracts import (
    ChasePayment,
    CreateCalendarEvent,
    DeleteCalendarEvent,
    FollowUp,
    JobRequest,
    LessonJobRequest,
    ScheduleReminders,
    SendConfirmationEmail,
    SendFollowUpEmail,
    SendPaymentChaseEmail,
    SendReminder1hEmail,
    SendReminder24hEmail,
    SendWelcome,
    UpdateCalendarEvent,
)
from lingobook.modules.jobs.providers import CalendarProvider, EmailProvider, build_calendar_provider
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.modules.jobs.templates import DEFAULT_TEMPLATES, render_email
from lingobook.modules.lessons.models import Lesson
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.tenants.models import Tenant
from lingobook.modules.tenants.repository import TenantsRepository
from lingobook.shared.exceptions import NotFoundException
from lingobook.shared.timegrid import format_with_offset, resolve_timezone

logger = logging.getLogger(__name__)

CalendarProviderFactory = Callable[[Tenant], CalendarProvider]


def default_calendar_provider_factory(settings: Settings) -> CalendarProviderFactory:
    def factory(tenant: Tenant) -> CalendarProvider:
        tenant_settings = tenant.settings
        return build_calendar_provider(
            settings,
            refresh_token=tenant_settings.calendar_refresh_token if tenant_settings else None,
            calendar_id=tenant_settings.calendar_id if tenant_settings else None,
            timezone=tenant.timezone,
        )

    return factory


class JobHandlers:
    """Execute parsed job requests against the database and external providers."""

    def __init__(
        self,
        lessons_repository: LessonsRepository,
        tenants_repository: TenantsRepository,
        billing_repository: BillingRepository,
        jobs_repository: JobsRepository,
        email_provider: EmailProvider,
        calendar_provider_factory: CalendarProviderFactory | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.lessons_repository = lessons_repository
        self.tenants_repository = tenants_repository
        self.billing_repository = billing_repository
        self.jobs_repository = jobs_repository
        self.email_provider = email_provider
        self.settings = settings or get_settings()
        self.calendar_provider_factory = calendar_provider_factory or default_calendar_provider_factory(self.settings)
        self._routes: dict[type, Callable[[Any], Awaitable[dict[str, Any]]]] = {
            CreateCalendarEvent: self.create_calendar_event,
            UpdateCalendarEvent: self.update_calendar_event,
            DeleteCalendarEvent: self.delete_calendar_event,
            SendConfirmationEmail: self.send_lesson_email,
            SendReminder24hEmail: self.send_lesson_email,
            SendReminder1hEmail: self.send_lesson_email,
            SendPaymentChaseEmail: self.send_lesson_email,
            SendFollowUpEmail: self.send_lesson_email,
            ScheduleReminders: self.schedule_reminders,
            ChasePayment: self.chase_payment,
            FollowUp: self.follow_up,
            SendWelcome: self.send_welcome,
        }

    async def handle(self, request: JobRequest) -> dict[str, Any]:
        handler = self._routes.get(type(request))
        if handler is None:
            raise ValueError(f"No handler registered for {request.kind}")
        return await handler(request)

    async def _load(self, request: LessonJobRequest) -> tuple[Tenant, Lesson]:
        tenant = await self.tenants_repository.get_tenant_by_id(request.tenant_id)
        if tenant is None:
            raise NotFoundException(f"Tenant {request.tenant_id} not found")
        lesson = await self.lessons_repository.get_lesson_by_id(request.lesson_id)
        if lesson is None or lesson.tenant_id != tenant.id:
            raise NotFoundException(f"Lesson {request.lesson_id} not found")
        return tenant, lesson

    async def create_calendar_event(self, request: CreateCalendarEvent) -> dict[str, Any]:
        tenant, lesson = await self._load(request)
        if lesson.status not in (LessonStatusEnum.RESERVED, LessonStatusEnum.CONFIRMED):
            return {"skipped": "lesson_not_active"}
        if lesson.calendar_event_id or lesson.meeting_url:
            return {"skipped": "already_created", "meeting_url": lesson.meeting_url}

        user = lesson.student.user
        provider = self.calendar_provider_factory(tenant)
        event = await provider.create_event(
            request_id=str(lesson.id),
            summary=f"{lesson.lesson_type.name}: {user.name}",
            description=f"{lesson.lesson_type.name}\nStudent: {user.name}\nLevel: {lesson.student.level or 'TBD'}",
            attendee_email=user.email,
            starts_at=lesson.starts_at,
            ends_at=lesson.ends_at,
        )
        await self.lessons_repository.update_lesson(
            lesson,
            calendar_event_id=event.external_event_id,
            meeting_url=event.meeting_url,
        )
        return {"calendar_event_id": event.external_event_id, "meeting_url": event.meeting_url}

    async def update_calendar_event(self, request: UpdateCalendarEvent) -> dict[str, Any]:
        tenant, lesson = await self._load(request)
        if not lesson.calendar_event_id:
            return {"skipped": "no_calendar_event"}
        provider = self.calendar_provider_factory(tenant)
        await provider.update_event(lesson.calendar_event_id, lesson.starts_at, lesson.ends_at)
        return {"updated": True}

    async def delete_calendar_event(self, request: DeleteCalendarEvent) -> dict[str, Any]:
        tenant = await self.tenants_repository.get_tenant_by_id(request.tenant_id)
        if tenant is None:
            raise NotFoundException(f"Tenant {request.tenant_id} not found")
        provider = self.calendar_provider_factory(tenant)
        await provider.delete_event(request.calendar_event_id)
        return {"deleted": True}

    async def _lesson_variables(self, tenant: Tenant, lesson: Lesson) -> dict[str, str]:
        tz = resolve_timezone(tenant.timezone)
        local_start = lesson.starts_at.astimezone(tz)
        lesson_type = lesson.lesson_type
        payment = await self.billing_repository.get_pending_lesson_payment(tenant.id, lesson.id)
        web_url = self.settings.web_url.rstrip("/")
        portal_url = f"{web_url}/t/{tenant.slug}/portal"
        return {
            "studentName": lesson.student.user.name,
            "lessonType": lesson_type.name,
            "date": local_start.strftime("%A %d %B %Y"),
            "time": local_start.strftime("%H:%M"),
            "startsAt": format_with_offset(lesson.starts_at, tz),
            "meetUrl": lesson.meeting_url or "To be assigned",
            "amount": f"{lesson_type.price_amount:,} {lesson_type.currency}",
            "tenantName": tenant.name,
            "bookingUrl": portal_url,
            "checkoutUrl": payment.checkout_url if payment and payment.checkout_url else portal_url,
        }

    async def send_lesson_email(self, request: LessonJobRequest) -> dict[str, Any]:
        tenant, lesson = await self._load(request)
        to = lesson.student.user.email
        if not to:
            logger.warning("No email for student %s; skipping %s", lesson.student_id, request.job_name)
            return {"skipped": "no_email"}

        template = DEFAULT_TEMPLATES[request.job_name]
        override = getattr(tenant.settings, template.override_field, None) if tenant.settings else None
        subject, html = render_email(
            request.job_name,
            await self._lesson_variables(tenant, lesson),
            override_body=override,
            tenant_name=tenant.name,
        )
        message_id = await self.email_provider.send(to, subject, html)
        return {"to": to, "subject": subject, "message_id": message_id}

    async def schedule_reminders(self, request: ScheduleReminders) -> dict[str, Any]:
        # Reminders are sent by the periodic sweep; this run only records that tracking started.
        return {"scheduled": True, "lesson_id": str(request.lesson_id)}

    async def chase_payment(self, request: ChasePayment) -> dict[str, Any]:
        """Send a payment reminder or, on the final attempt, cancel the unpaid reservation."""
        lesson = await self.lessons_repository.get_lesson_for_update(request.lesson_id)
        if (
            lesson is None
            or lesson.tenant_id != request.tenant_id
            or lesson.status != LessonStatusEnum.RESERVED
            or lesson.payment_status != PaymentStatusEnum.PENDING
        ):
            return {"skipped": "not_pending"}

        max_attempts = self.settings.payment_chase_max_attempts
        if request.attempt >= max_attempts:
            await self.lessons_repository.update_lesson(
                lesson,
                status=LessonStatusEnum.CANCELLED,
                cancellation_reason=f"Payment not received after {max_attempts} reminders",
            )
            failed = await self.billing_repository.fail_pending_lesson_payments(lesson.id)
            logger.info("Lesson %s cancelled after %s payment reminders", lesson.id, request.attempt)
            return {"cancelled": True, "failed_payments": failed}

        await self.jobs_repository.enqueue(
            SendPaymentChaseEmail(tenant_id=request.tenant_id, lesson_id=lesson.id, attempt=request.attempt),
            f"chase-email-{lesson.id}-{request.attempt}",
        )
        return {"attempt": request.attempt, "email_enqueued": True}

    async def follow_up(self, request: FollowUp) -> dict[str, Any]:
        await self.jobs_repository.enqueue(
            SendFollowUpEmail(tenant_id=request.tenant_id, lesson_id=request.lesson_id),
            f"followup-email-{request.lesson_id}",
        )
        return {"email_enqueued": True}

    async def send_welcome(self, request: SendWelcome) -> dict[str, Any]:
        tenant = await self.tenants_repository.get_tenant_by_id(request.tenant_id)
        if tenant is None:
            raise NotFoundException(f"Tenant {request.tenant_id} not found")
        lead = request.lead
        logger.info("Welcoming lead %s (%s) of tenant %s", lead.name, lead.phone, tenant.slug)
        if not lead.email:
            return {"sent": False, "name": lead.name}

        override = tenant.settings.welcome_template if tenant.settings else None
        subject, html = render_email(
            request.job_name,
            {"studentName": lead.name, "tenantName": tenant.name},
            override_body=override,
            tenant_name=tenant.name,
        )
        message_id = await self.email_provider.send(str(lead.email), subject, html)
        return {"sent": True, "name": lead.name, "message_id": message_id}
