"""Booking API router."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from lingobook.core.enums import LessonStatusEnum
from lingobook.modules.billing.schemas import PaymentRead
from lingobook.modules.booking.schemas import (
    AdminLessonUpdate,
    BookingCreate,
    BookingRead,
    LessonCancelRequest,
    LessonRead,
    LessonRescheduleRequest,
)
from lingobook.modules.booking.service import BookingService, get_booking_service
from lingobook.modules.identity.service import get_admin_context, get_request_context
from lingobook.modules.tenants.context import RequestContext
from lingobook.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/t/{tenant_slug}", tags=["booking"])


@router.post("/bookings", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
) -> BookingRead:
    """Book a lesson for the current student."""
    result = await service.create_booking(ctx, payload)
    return BookingRead(
        lesson=LessonRead.model_validate(result.lesson),
        payment=PaymentRead.model_validate(result.payment) if result.payment else None,
        covered_by_pack=result.covered_by_pack,
        requires_payment=result.requires_payment,
        message=result.message,
    )


@router.get("/me/lessons", response_model=list[LessonRead])
async def list_my_lessons(
    ctx: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
) -> list[LessonRead]:
    lessons = await service.list_my_lessons(ctx)
    return [LessonRead.model_validate(lesson) for lesson in lessons]


@router.post("/lessons/{lesson_id}/reschedule", response_model=LessonRead)
async def reschedule_lesson(
    lesson_id: UUID,
    payload: LessonRescheduleRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
) -> LessonRead:
    lesson = await service.reschedule_lesson(ctx, lesson_id, payload)
    return LessonRead.model_validate(lesson)


@router.post("/lessons/{lesson_id}/cancel", response_model=LessonRead)
async def cancel_lesson(
    lesson_id: UUID,
    payload: LessonCancelRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: BookingService = Depends(get_booking_service),
) -> LessonRead:
    """Cancel lesson and refund pack credit when applicable."""
    lesson = await service.cancel_lesson(ctx, lesson_id, payload)
    return LessonRead.model_validate(lesson)


@router.get("/admin/lessons", response_model=Page[LessonRead])
async def list_lessons(
    lesson_status: LessonStatusEnum | None = Query(default=None, alias="status"),
    starts_from: datetime | None = Query(default=None, alias="from"),
    starts_to: datetime | None = Query(default=None, alias="to"),
    pagination=Depends(get_pagination_params),
    ctx: RequestContext = Depends(get_admin_context),
    service: BookingService = Depends(get_booking_service),
) -> Page[LessonRead]:
    items, total = await service.list_lessons(
        ctx,
        status=lesson_status,
        starts_from=starts_from,
        starts_to=starts_to,
        limit=pagination.limit,
        offset=pagination.offset,
    )
    serialized = [LessonRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)


@router.patch("/admin/lessons/{lesson_id}", response_model=LessonRead)
async def admin_update_lesson(
    lesson_id: UUID,
    payload: AdminLessonUpdate,
    ctx: RequestContext = Depends(get_admin_context),
    service: BookingService = Depends(get_booking_service),
) -> LessonRead:
    lesson = await service.admin_update_lesson(ctx, lesson_id, payload)
    return LessonRead.model_validate(lesson)
