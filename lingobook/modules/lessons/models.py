"""Lessons ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lingobook.core.database import Base, BaseModelMixin, TenantScopedMixin, enum_column
from lingobook.core.enums import LessonStatusEnum, PaymentStatusEnum

if TYPE_CHECKING:
    from lingobook.modules.catalog.models import LessonType
    from lingobook.modules.identity.models import Student


class Lesson(TenantScopedMixin, BaseModelMixin, Base):
    """Booked lesson; never hard-deleted."""

    __tablename__ = "lessons"
    __table_args__ = (
        Index(
            "uq_lessons_tenant_active_start",
            "tenant_id",
            "starts_at",
            unique=True,
            postgresql_where=text("status IN ('reserved', 'confirmed')"),
        ),
    )

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lesson_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("lesson_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    pack_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("packs.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[LessonStatusEnum] = mapped_column(
        enum_column(LessonStatusEnum, "lesson_status_enum"),
        default=LessonStatusEnum.RESERVED,
        nullable=False,
        index=True,
    )
    payment_status: Mapped[PaymentStatusEnum] = mapped_column(
        enum_column(PaymentStatusEnum, "lesson_payment_status_enum"),
        default=PaymentStatusEnum.PENDING,
        nullable=False,
    )
    calendar_event_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    meeting_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    reminder_24h_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reminder_1h_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    follow_up_sent: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    teacher_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    student: Mapped[Student] = relationship(lazy="joined")
    lesson_type: Mapped[LessonType] = relationship(lazy="joined")
