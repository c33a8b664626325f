"""Booking schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from lingobook.core.enums import LessonStatusEnum, PaymentStatusEnum
from lingobook.modules.billing.schemas import PaymentRead


class BookingCreate(BaseModel):
    lesson_type_id: UUID
    starts_at: datetime


class LessonRescheduleRequest(BaseModel):
    new_starts_at: datetime


class LessonCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=512)


class AdminLessonUpdate(BaseModel):
    """Arbitrary admin edit of a lesson."""

    status: LessonStatusEnum | None = None
    payment_status: PaymentStatusEnum | None = None
    teacher_notes: str | None = None


class LessonRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    lesson_type_id: UUID
    pack_id: UUID | None
    starts_at: datetime
    ends_at: datetime
    status: LessonStatusEnum
    payment_status: PaymentStatusEnum
    meeting_url: str | None
    cancellation_reason: str | None
    teacher_notes: str | None
    created_at: datetime


class BookingRead(BaseModel):
    """Outcome of a booking request."""

    lesson: LessonRead
    payment: PaymentRead | None
    covered_by_pack: bool
    requires_payment: bool
    message: str
