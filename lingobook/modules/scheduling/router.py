"""Scheduling API router."""

from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from lingobook.modules.identity.service import get_admin_context, get_public_context
from lingobook.modules.scheduling.schemas import (
    AvailabilityRuleCreate,
    AvailabilityRuleRead,
    BlockedTimeCreate,
    BlockedTimeRead,
    SlotRead,
)
from lingobook.modules.scheduling.service import AvailabilityService, get_availability_service
from lingobook.modules.tenants.context import RequestContext

router = APIRouter(prefix="/t/{tenant_slug}", tags=["scheduling"])


@router.get("/slots", response_model=list[SlotRead])
async def list_slots(
    lesson_type_id: UUID = Query(alias="lessonTypeId"),
    from_date: date = Query(alias="from"),
    to_date: date = Query(alias="to"),
    timezone: str | None = Query(default=None),
    ctx: RequestContext = Depends(get_public_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[SlotRead]:
    """Available slots of a lesson type; ``timezone`` only changes how offsets are rendered."""
    slots = await service.generate_slots(ctx, lesson_type_id, from_date, to_date, timezone=timezone)
    return [
        SlotRead(
            start=slot.start.isoformat(timespec="seconds"),
            end=slot.end.isoformat(timespec="seconds"),
            available=slot.available,
        )
        for slot in slots
    ]


@router.get("/admin/availability/rules", response_model=list[AvailabilityRuleRead])
async def list_rules(
    ctx: RequestContext = Depends(get_admin_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[AvailabilityRuleRead]:
    rules = await service.list_rules(ctx)
    return [AvailabilityRuleRead.model_validate(rule) for rule in rules]


@router.post(
    "/admin/availability/rules",
    response_model=AvailabilityRuleRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_rule(
    payload: AvailabilityRuleCreate,
    ctx: RequestContext = Depends(get_admin_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityRuleRead:
    """Create weekly availability rule."""
    rule = await service.create_rule(ctx, payload)
    return AvailabilityRuleRead.model_validate(rule)


@router.delete("/admin/availability/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(
    rule_id: UUID,
    ctx: RequestContext = Depends(get_admin_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> Response:
    await service.delete_rule(ctx, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/admin/blocked-times", response_model=list[BlockedTimeRead])
async def list_blocked_times(
    ctx: RequestContext = Depends(get_admin_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[BlockedTimeRead]:
    """List blocked times that have not ended yet."""
    items = await service.list_blocked_times(ctx)
    return [BlockedTimeRead.model_validate(item) for item in items]


@router.post("/admin/blocked-times", response_model=BlockedTimeRead, status_code=status.HTTP_201_CREATED)
async def create_blocked_time(
    payload: BlockedTimeCreate,
    ctx: RequestContext = Depends(get_admin_context),
    service: AvailabilityService = Depends(get_availability_service),
) -> BlockedTimeRead:
    blocked = await service.create_blocked_time(ctx, payload)
    return BlockedTimeRead.model_validate(blocked)
