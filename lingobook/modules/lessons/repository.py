"""Lessons repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.enums import ACTIVE_LESSON_STATUSES, LessonStatusEnum, PaymentStatusEnum
from lingobook.modules.lessons.models import Lesson
from lingobook.shared.exceptions import ConflictException

SLOT_TAKEN_MESSAGE = "This time slot is already booked"


class LessonsRepository:
    """DB operations for lessons."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_lesson(
        self,
        tenant_id: UUID,
        student_id: UUID,
        lesson_type_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        status: LessonStatusEnum,
        payment_status: PaymentStatusEnum,
        pack_id: UUID | None = None,
    ) -> Lesson:
        lesson = Lesson(
            tenant_id=tenant_id,
            student_id=student_id,
            lesson_type_id=lesson_type_id,
            pack_id=pack_id,
            starts_at=starts_at,
            ends_at=ends_at,
            status=status,
            payment_status=payment_status,
        )
        self.session.add(lesson)
        try:
            async with self.session.begin_nested():
                await self.session.flush()
        except IntegrityError as exc:
            # Partial unique index on (tenant_id, starts_at) for active lessons.
            raise ConflictException(SLOT_TAKEN_MESSAGE) from exc
        return lesson

    async def get_lesson(self, tenant_id: UUID, lesson_id: UUID) -> Lesson | None:
        stmt = select(Lesson).where(Lesson.tenant_id == tenant_id, Lesson.id == lesson_id)
        return await self.session.scalar(stmt)

    async def get_lesson_by_id(self, lesson_id: UUID) -> Lesson | None:
        stmt = select(Lesson).where(Lesson.id == lesson_id)
        return await self.session.scalar(stmt)

    async def get_lesson_for_update(self, lesson_id: UUID) -> Lesson | None:
        stmt = select(Lesson).where(Lesson.id == lesson_id).with_for_update(of=Lesson)
        return await self.session.scalar(stmt)

    async def find_overlapping_active_lesson(
        self,
        tenant_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_lesson_id: UUID | None = None,
    ) -> Lesson | None:
        stmt = select(Lesson).where(
            Lesson.tenant_id == tenant_id,
            Lesson.status.in_(ACTIVE_LESSON_STATUSES),
            Lesson.starts_at < ends_at,
            Lesson.ends_at > starts_at,
        )
        if exclude_lesson_id is not None:
            stmt = stmt.where(Lesson.id != exclude_lesson_id)
        return await self.session.scalar(stmt.limit(1))

    async def list_active_lessons_between(
        self,
        tenant_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[Lesson]:
        stmt = select(Lesson).where(
            Lesson.tenant_id == tenant_id,
            Lesson.status.in_(ACTIVE_LESSON_STATUSES),
            Lesson.starts_at < window_end,
            Lesson.ends_at > window_start,
        )
        return (await self.session.scalars(stmt)).all()

    async def list_student_lessons(self, tenant_id: UUID, student_id: UUID) -> list[Lesson]:
        stmt = (
            select(Lesson)
            .where(Lesson.tenant_id == tenant_id, Lesson.student_id == student_id)
            .order_by(Lesson.starts_at.desc())
        )
        return (await self.session.scalars(stmt)).all()

    async def list_tenant_lessons(
        self,
        tenant_id: UUID,
        status: LessonStatusEnum | None,
        starts_from: datetime | None,
        starts_to: datetime | None,
        limit: int,
        offset: int,
    ) -> tuple[list[Lesson], int]:
        base_stmt: Select[tuple[Lesson]] = select(Lesson).where(Lesson.tenant_id == tenant_id)
        if status is not None:
            base_stmt = base_stmt.where(Lesson.status == status)
        if starts_from is not None:
            base_stmt = base_stmt.where(Lesson.starts_at >= starts_from)
        if starts_to is not None:
            base_stmt = base_stmt.where(Lesson.starts_at < starts_to)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Lesson.starts_at.asc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def list_due_for_reminder(
        self,
        window_start: datetime,
        window_end: datetime,
        flag_name: str,
    ) -> list[Lesson]:
        flag = getattr(Lesson, flag_name)
        stmt = (
            select(Lesson)
            .where(
                Lesson.status == LessonStatusEnum.CONFIRMED,
                Lesson.starts_at >= window_start,
                Lesson.starts_at <= window_end,
                flag.is_(False),
            )
            .with_for_update(of=Lesson, skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    async def list_unpaid_reservations(self, created_before: datetime, now: datetime) -> list[Lesson]:
        stmt = select(Lesson).where(
            Lesson.status == LessonStatusEnum.RESERVED,
            Lesson.payment_status == PaymentStatusEnum.PENDING,
            Lesson.created_at <= created_before,
            Lesson.starts_at > now,
        )
        return (await self.session.scalars(stmt)).all()

    async def list_follow_up_candidates(
        self,
        tenant_id: UUID,
        ended_from: datetime,
        ended_to: datetime,
    ) -> list[Lesson]:
        stmt = (
            select(Lesson)
            .where(
                Lesson.tenant_id == tenant_id,
                Lesson.status.in_((LessonStatusEnum.CONFIRMED, LessonStatusEnum.COMPLETED)),
                Lesson.ends_at >= ended_from,
                Lesson.ends_at < ended_to,
                Lesson.follow_up_sent.is_(False),
            )
            .with_for_update(of=Lesson, skip_locked=True)
        )
        return (await self.session.scalars(stmt)).all()

    async def update_lesson(self, lesson: Lesson, **changes) -> Lesson:
        for key, value in changes.items():
            setattr(lesson, key, value)
        try:
            async with self.session.begin_nested():
                await self.session.flush()
        except IntegrityError as exc:
            raise ConflictException(SLOT_TAKEN_MESSAGE) from exc
        return lesson
