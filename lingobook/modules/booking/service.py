"""Booking state machine: create, reschedule, cancel and admin edits of lessons."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.database import get_db_session
from lingobook.core.enums import ACTIVE_LESSON_STATUSES, LessonStatusEnum, PaymentStatusEnum
from lingobook.core.metrics import BOOKINGS_TOTAL
from lingobook.modules.billing.ledger import CreditLedger
from lingobook.modules.billing.models import Payment
from lingobook.modules.billing.repository import BillingRepository
from lingobook.modules.billing.service import create_lesson_payment
from lingobook.modules.booking.schemas import (
    AdminLessonUpdate,
    BookingCreate,
    LessonCancelRequest,
    LessonRescheduleRequest,
)
from lingobook.modules.catalog.repository import CatalogRepository
from lingobook.modules.identity.repository import IdentityRepository
from lingobook.modules.identity.service import require_student
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.modules.jobs.service import JobQueue
from lingobook.modules.lessons.models import Lesson
from lingobook.modules.lessons.repository import SLOT_TAKEN_MESSAGE, LessonsRepository
from lingobook.modules.tenants.context import RequestContext
from lingobook.shared.exceptions import (
    AuthzException,
    ConflictException,
    NotFoundException,
    PolicyViolationException,
)
from lingobook.shared.timegrid import hours_until
from lingobook.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CANCELLATION_REASON = "Cancelled by student"


@dataclass(slots=True)
class BookingResult:
    lesson: Lesson
    payment: Payment | None
    covered_by_pack: bool
    requires_payment: bool
    message: str


class BookingService:
    """Lesson lifecycle rules for students and tenant admins."""

    def __init__(
        self,
        lessons_repository: LessonsRepository,
        billing_repository: BillingRepository,
        catalog_repository: CatalogRepository,
        identity_repository: IdentityRepository,
        job_queue: JobQueue,
    ) -> None:
        self.lessons_repository = lessons_repository
        self.billing_repository = billing_repository
        self.catalog_repository = catalog_repository
        self.identity_repository = identity_repository
        self.job_queue = job_queue
        self.ledger = CreditLedger(billing_repository)

    async def _ensure_slot_free(
        self,
        ctx: RequestContext,
        starts_at: datetime,
        ends_at: datetime,
        exclude_lesson_id: UUID | None = None,
    ) -> None:
        clash = await self.lessons_repository.find_overlapping_active_lesson(
            ctx.tenant.id,
            starts_at,
            ends_at,
            exclude_lesson_id=exclude_lesson_id,
        )
        if clash is not None:
            BOOKINGS_TOTAL.labels(outcome="conflict").inc()
            raise ConflictException(SLOT_TAKEN_MESSAGE)

    async def _get_own_lesson(self, ctx: RequestContext, lesson_id: UUID) -> Lesson:
        student = await require_student(self.identity_repository, ctx)
        lesson = await self.lessons_repository.get_lesson(ctx.tenant.id, lesson_id)
        if lesson is None or lesson.student_id != student.id:
            raise NotFoundException("Lesson not found")
        return lesson

    @staticmethod
    def _check_notice(lesson: Lesson, min_hours: int, action: str, now: datetime) -> None:
        if hours_until(lesson.starts_at, now) < min_hours:
            raise PolicyViolationException(f"Lessons can only be {action} at least {min_hours} hours in advance")

    @staticmethod
    def _check_active(lesson: Lesson, action: str) -> None:
        if lesson.status not in ACTIVE_LESSON_STATUSES:
            raise PolicyViolationException(f"Only reserved or confirmed lessons can be {action}")

    async def create_booking(self, ctx: RequestContext, payload: BookingCreate) -> BookingResult:
        """Book a lesson, paying with the oldest usable pack when the student has one."""
        student = await require_student(self.identity_repository, ctx)
        lesson_type = await self.catalog_repository.get_lesson_type(ctx.tenant.id, payload.lesson_type_id)
        if lesson_type is None or not lesson_type.is_active:
            raise NotFoundException("Lesson type not found")

        now = utc_now()
        starts_at = ensure_utc(payload.starts_at)
        ends_at = starts_at + timedelta(minutes=lesson_type.duration_min)
        if starts_at <= now:
            raise PolicyViolationException("Cannot book a lesson in the past")

        await self._ensure_slot_free(ctx, starts_at, ends_at)

        pack = await self.billing_repository.find_usable_pack_for_update(ctx.tenant.id, student.id, now)
        if pack is not None:
            lesson = await self.lessons_repository.create_lesson(
                tenant_id=ctx.tenant.id,
                student_id=student.id,
                lesson_type_id=lesson_type.id,
                starts_at=starts_at,
                ends_at=ends_at,
                status=LessonStatusEnum.CONFIRMED,
                payment_status=PaymentStatusEnum.COVERED_BY_PACK,
                pack_id=pack.id,
            )
            await self.ledger.consume(pack, lesson.id)
            await self.job_queue.lesson_confirmed(ctx.tenant.id, lesson.id, "booking")
            BOOKINGS_TOTAL.labels(outcome="covered_by_pack").inc()
            logger.info("Lesson %s booked with pack %s", lesson.id, pack.id)
            return BookingResult(
                lesson=lesson,
                payment=None,
                covered_by_pack=True,
                requires_payment=False,
                message=f"Lesson confirmed using your pack ({pack.remaining_credits} credits left)",
            )

        if ctx.tenant.policy.require_payment_to_confirm:
            lesson = await self.lessons_repository.create_lesson(
                tenant_id=ctx.tenant.id,
                student_id=student.id,
                lesson_type_id=lesson_type.id,
                starts_at=starts_at,
                ends_at=ends_at,
                status=LessonStatusEnum.RESERVED,
                payment_status=PaymentStatusEnum.PENDING,
            )
            payment = await create_lesson_payment(
                self.billing_repository,
                ctx,
                lesson.id,
                lesson_type.price_amount,
                lesson_type.currency,
            )
            BOOKINGS_TOTAL.labels(outcome="payment_required").inc()
            logger.info("Lesson %s reserved pending payment %s", lesson.id, payment.provider_reference)
            return BookingResult(
                lesson=lesson,
                payment=payment,
                covered_by_pack=False,
                requires_payment=True,
                message="Lesson reserved. Complete the payment to confirm it",
            )

        lesson = await self.lessons_repository.create_lesson(
            tenant_id=ctx.tenant.id,
            student_id=student.id,
            lesson_type_id=lesson_type.id,
            starts_at=starts_at,
            ends_at=ends_at,
            status=LessonStatusEnum.CONFIRMED,
            payment_status=PaymentStatusEnum.PENDING,
        )
        await self.job_queue.lesson_confirmed_without_payment(ctx.tenant.id, lesson.id, "booking")
        BOOKINGS_TOTAL.labels(outcome="confirmed_unpaid").inc()
        return BookingResult(
            lesson=lesson,
            payment=None,
            covered_by_pack=False,
            requires_payment=False,
            message="Lesson confirmed",
        )

    async def reschedule_lesson(
        self,
        ctx: RequestContext,
        lesson_id: UUID,
        payload: LessonRescheduleRequest,
    ) -> Lesson:
        """Move an own lesson to a new start time, respecting the tenant's notice period."""
        lesson = await self._get_own_lesson(ctx, lesson_id)
        now = utc_now()
        self._check_notice(lesson, ctx.tenant.policy.reschedule_min_hours, "rescheduled", now)
        self._check_active(lesson, "rescheduled")

        new_starts_at = ensure_utc(payload.new_starts_at)
        if new_starts_at <= now:
            raise PolicyViolationException("Cannot move a lesson into the past")
        new_ends_at = new_starts_at + (lesson.ends_at - lesson.starts_at)
        await self._ensure_slot_free(ctx, new_starts_at, new_ends_at, exclude_lesson_id=lesson.id)

        lesson = await self.lessons_repository.update_lesson(
            lesson,
            starts_at=new_starts_at,
            ends_at=new_ends_at,
            reminder_24h_sent=False,
            reminder_1h_sent=False,
        )
        if lesson.calendar_event_id:
            await self.job_queue.lesson_rescheduled(ctx.tenant.id, lesson.id, str(int(new_starts_at.timestamp())))
        logger.info("Lesson %s rescheduled to %s", lesson.id, new_starts_at.isoformat())
        return lesson

    async def cancel_lesson(self, ctx: RequestContext, lesson_id: UUID, payload: LessonCancelRequest) -> Lesson:
        """Cancel an own lesson; a pack-covered lesson gets its credit back."""
        lesson = await self._get_own_lesson(ctx, lesson_id)
        self._check_notice(lesson, ctx.tenant.policy.cancel_min_hours, "cancelled", utc_now())
        self._check_active(lesson, "cancelled")

        lesson = await self.lessons_repository.update_lesson(
            lesson,
            status=LessonStatusEnum.CANCELLED,
            cancellation_reason=payload.reason or DEFAULT_CANCELLATION_REASON,
        )

        if lesson.payment_status == PaymentStatusEnum.COVERED_BY_PACK and lesson.pack_id is not None:
            pack = await self.billing_repository.get_pack_for_update(ctx.tenant.id, lesson.pack_id)
            if pack is not None:
                await self.ledger.refund(pack, lesson.id)

        if lesson.calendar_event_id:
            await self.job_queue.lesson_cancelled(ctx.tenant.id, lesson.id, lesson.calendar_event_id)
        logger.info("Lesson %s cancelled", lesson.id)
        return lesson

    async def admin_update_lesson(self, ctx: RequestContext, lesson_id: UUID, payload: AdminLessonUpdate) -> Lesson:
        """Apply an admin edit; a no-show keeps its pack credit consumed."""
        if ctx.principal is None or not ctx.principal.is_tenant_admin:
            raise AuthzException("Only tenant admins can update lessons")

        lesson = await self.lessons_repository.get_lesson(ctx.tenant.id, lesson_id)
        if lesson is None:
            raise NotFoundException("Lesson not found")

        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        became_no_show = (
            changes.get("status") == LessonStatusEnum.NO_SHOW and lesson.status != LessonStatusEnum.NO_SHOW
        )
        lesson = await self.lessons_repository.update_lesson(lesson, **changes)

        if (
            became_no_show
            and lesson.pack_id is not None
            and lesson.payment_status == PaymentStatusEnum.COVERED_BY_PACK
            and ctx.tenant.policy.no_show_consume_credit
        ):
            pack = await self.billing_repository.get_pack_for_update(ctx.tenant.id, lesson.pack_id)
            if pack is not None:
                await self.ledger.forfeit(pack, lesson.id)

        logger.info("Lesson %s updated by admin: %s", lesson.id, sorted(changes))
        return lesson

    async def list_my_lessons(self, ctx: RequestContext) -> list[Lesson]:
        student = await require_student(self.identity_repository, ctx)
        return await self.lessons_repository.list_student_lessons(ctx.tenant.id, student.id)

    async def list_lessons(
        self,
        ctx: RequestContext,
        status: LessonStatusEnum | None,
        starts_from: datetime | None,
        starts_to: datetime | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Lesson], int]:
        """List tenant lessons filtered by status and start range (tenant admin)."""
        if ctx.principal is None or not ctx.principal.is_tenant_admin:
            raise AuthzException("Only tenant admins can list lessons")
        return await self.lessons_repository.list_tenant_lessons(
            ctx.tenant.id,
            status=status,
            starts_from=ensure_utc(starts_from) if starts_from else None,
            starts_to=ensure_utc(starts_to) if starts_to else None,
            limit=limit,
            offset=offset,
        )


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    return BookingService(
        lessons_repository=LessonsRepository(session),
        billing_repository=BillingRepository(session),
        catalog_repository=CatalogRepository(session),
        identity_repository=IdentityRepository(session),
        job_queue=JobQueue(JobsRepository(session)),
    )
