"""Availability engine and schedule administration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.config import get_settings
from lingobook.core.database import get_db_session
from lingobook.modules.catalog.repository import CatalogRepository
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.scheduling.models import AvailabilityRule, BlockedTime
from lingobook.modules.scheduling.repository import SchedulingRepository
from lingobook.modules.scheduling.schemas import AvailabilityRuleCreate, BlockedTimeCreate
from lingobook.modules.tenants.context import RequestContext
from lingobook.shared.exceptions import NotFoundException, ValidationException
from lingobook.shared.timegrid import (
    intervals_overlap,
    iter_days,
    local_day_bounds,
    local_instant,
    parse_hhmm,
    resolve_timezone,
    sunday_based_weekday,
)
from lingobook.shared.utils import ensure_utc, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Slot:
    start: datetime
    end: datetime
    available: bool


def tile_rule(day: date, rule: AvailabilityRule, duration: timedelta, tz: ZoneInfo) -> list[tuple[datetime, datetime]]:
    """Candidate ``(start, end)`` pairs of one rule on one local day, in UTC.

    Tiles advance by ``slot_minutes``; a slot whose end would overflow the
    rule's end time is not produced.
    """
    rule_start = local_instant(day, parse_hhmm(rule.start_time), tz)
    rule_end = local_instant(day, parse_hhmm(rule.end_time), tz)
    step = timedelta(minutes=rule.slot_minutes)

    candidates: list[tuple[datetime, datetime]] = []
    slot_start = rule_start
    while slot_start + duration <= rule_end:
        candidates.append((slot_start, slot_start + duration))
        slot_start += step
    return candidates


class AvailabilityService:
    """Bookable slot generation plus rule and blocked-time management."""

    def __init__(
        self,
        repository: SchedulingRepository,
        catalog_repository: CatalogRepository,
        lessons_repository: LessonsRepository,
    ) -> None:
        self.repository = repository
        self.catalog_repository = catalog_repository
        self.lessons_repository = lessons_repository

    async def generate_slots(
        self,
        ctx: RequestContext,
        lesson_type_id: UUID,
        from_date: date,
        to_date: date,
        timezone: str | None = None,
        include_unavailable: bool = False,
    ) -> list[Slot]:
        """Tile the tenant's weekly rules over ``[from_date, to_date]`` and exclude taken time.

        Past slots are dropped. Slots overlapping a blocked time or an active
        lesson are marked unavailable and, unless ``include_unavailable`` is
        set, filtered out. The result is sorted by start; boundaries are
        expressed in ``timezone`` (the tenant zone when omitted).
        """
        if from_date > to_date:
            raise ValidationException("from_date must not be after to_date")
        if (to_date - from_date).days + 1 > settings.availability_max_range_days:
            raise ValidationException(
                f"Date range cannot exceed {settings.availability_max_range_days} days",
            )

        lesson_type = await self.catalog_repository.get_lesson_type(ctx.tenant.id, lesson_type_id)
        if lesson_type is None or not lesson_type.is_active:
            raise NotFoundException("Lesson type not found")

        tz = resolve_timezone(ctx.tenant.timezone)
        render_tz = resolve_timezone(timezone) if timezone else tz
        duration = timedelta(minutes=lesson_type.duration_min)
        window_start, _ = local_day_bounds(from_date, tz)
        _, window_end = local_day_bounds(to_date, tz)

        rules = await self.repository.list_rules(ctx.tenant.id, active_only=True)
        rules_by_weekday: dict[int, list[AvailabilityRule]] = {}
        for rule in rules:
            rules_by_weekday.setdefault(rule.weekday, []).append(rule)

        blocked = await self.repository.list_blocked_times_between(ctx.tenant.id, window_start, window_end)
        busy = await self.lessons_repository.list_active_lessons_between(ctx.tenant.id, window_start, window_end)

        now = utc_now()
        seen: set[datetime] = set()
        slots: list[Slot] = []
        for day in iter_days(from_date, to_date):
            for rule in rules_by_weekday.get(sunday_based_weekday(day), []):
                for slot_start, slot_end in tile_rule(day, rule, duration, tz):
                    if slot_start <= now or slot_start in seen:
                        continue
                    seen.add(slot_start)
                    is_blocked = any(
                        intervals_overlap(slot_start, slot_end, item.starts_at, item.ends_at) for item in blocked
                    )
                    is_taken = any(
                        intervals_overlap(slot_start, slot_end, item.starts_at, item.ends_at) for item in busy
                    )
                    slots.append(
                        Slot(
                            start=slot_start.astimezone(render_tz),
                            end=slot_end.astimezone(render_tz),
                            available=not (is_blocked or is_taken),
                        ),
                    )

        slots.sort(key=lambda slot: slot.start)
        if include_unavailable:
            return slots
        return [slot for slot in slots if slot.available]

    async def list_rules(self, ctx: RequestContext) -> list[AvailabilityRule]:
        return await self.repository.list_rules(ctx.tenant.id)

    async def create_rule(self, ctx: RequestContext, payload: AvailabilityRuleCreate) -> AvailabilityRule:
        """Add a weekly opening window."""
        # Re-parse so a bad value fails before touching the database.
        start_time: time = parse_hhmm(payload.start_time)
        end_time: time = parse_hhmm(payload.end_time)
        if start_time >= end_time:
            raise ValidationException("start_time must be before end_time")

        rule = await self.repository.create_rule(
            tenant_id=ctx.tenant.id,
            weekday=payload.weekday,
            start_time=payload.start_time,
            end_time=payload.end_time,
            slot_minutes=payload.slot_minutes,
        )
        logger.info("Availability rule %s created for tenant %s", rule.id, ctx.tenant.slug)
        return rule

    async def delete_rule(self, ctx: RequestContext, rule_id: UUID) -> None:
        rule = await self.repository.get_rule(ctx.tenant.id, rule_id)
        if rule is None:
            raise NotFoundException("Availability rule not found")
        await self.repository.delete_rule(rule)
        logger.info("Availability rule %s deleted for tenant %s", rule_id, ctx.tenant.slug)

    async def list_blocked_times(self, ctx: RequestContext) -> list[BlockedTime]:
        return await self.repository.list_upcoming_blocked_times(ctx.tenant.id, utc_now())

    async def create_blocked_time(self, ctx: RequestContext, payload: BlockedTimeCreate) -> BlockedTime:
        """Block an interval so no slot overlapping it is offered."""
        starts_at = ensure_utc(payload.starts_at)
        ends_at = ensure_utc(payload.ends_at)
        if ends_at <= starts_at:
            raise ValidationException("ends_at must be after starts_at")
        return await self.repository.create_blocked_time(ctx.tenant.id, starts_at, ends_at, payload.reason)


async def get_availability_service(session: AsyncSession = Depends(get_db_session)) -> AvailabilityService:
    """Dependency provider for availability service."""
    return AvailabilityService(
        SchedulingRepository(session),
        CatalogRepository(session),
        LessonsRepository(session),
    )
