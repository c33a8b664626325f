from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

import pytest

import lingobook.modules.scheduling.service as scheduling_service_module
from lingobook.modules.scheduling.service import AvailabilityService, tile_rule
from lingobook.modules.tenants.context import RequestContext, TenantDescriptor
from lingobook.shared.exceptions import NotFoundException, ValidationException

MONDAY = date(2026, 11, 2)


@dataclass
class FakeRule:
    weekday: int
    start_time: str
    end_time: str
    slot_minutes: int = 60
    is_active: bool = True
    id: UUID = field(default_factory=uuid4)


@dataclass
class FakeInterval:
    starts_at: datetime
    ends_at: datetime


class FakeSchedulingRepository:
    def __init__(self, rules: list[FakeRule], blocked: list[FakeInterval] | None = None) -> None:
        self.rules = rules
        self.blocked = blocked or []

    async def list_rules(self, tenant_id: UUID, active_only: bool = False) -> list[FakeRule]:
        return [rule for rule in self.rules if rule.is_active or not active_only]

    async def list_blocked_times_between(
        self,
        tenant_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[FakeInterval]:
        return [item for item in self.blocked if item.starts_at < window_end and item.ends_at > window_start]


class FakeCatalogRepository:
    def __init__(self, lesson_type: SimpleNamespace | None) -> None:
        self.lesson_type = lesson_type

    async def get_lesson_type(self, tenant_id: UUID, lesson_type_id: UUID) -> SimpleNamespace | None:
        if self.lesson_type is None or self.lesson_type.id != lesson_type_id:
            return None
        return self.lesson_type


class FakeLessonsRepository:
    def __init__(self, busy: list[FakeInterval] | None = None) -> None:
        self.busy = busy or []

    async def list_active_lessons_between(
        self,
        tenant_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[FakeInterval]:
        return self.busy


def bogota(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=ZoneInfo("America/Bogota"))


def make_context(timezone: str = "America/Bogota") -> RequestContext:
    tenant = TenantDescriptor(id=uuid4(), slug="demo", name="Demo", timezone=timezone, currency="COP")
    return RequestContext(tenant=tenant)


def make_service(
    rules: list[FakeRule],
    *,
    blocked: list[FakeInterval] | None = None,
    busy: list[FakeInterval] | None = None,
    duration_min: int = 60,
    is_active: bool = True,
) -> tuple[AvailabilityService, UUID]:
    lesson_type = SimpleNamespace(id=uuid4(), duration_min=duration_min, is_active=is_active)
    service = AvailabilityService(
        repository=FakeSchedulingRepository(rules, blocked),  # type: ignore[arg-type]
        catalog_repository=FakeCatalogRepository(lesson_type),  # type: ignore[arg-type]
        lessons_repository=FakeLessonsRepository(busy),  # type: ignore[arg-type]
    )
    return service, lesson_type.id


@pytest.fixture(autouse=True)
def freeze_now(monkeypatch: pytest.MonkeyPatch) -> datetime:
    now = datetime(2026, 10, 30, 12, 0, tzinfo=UTC)
    monkeypatch.setattr(scheduling_service_module, "utc_now", lambda: now)
    return now


@pytest.mark.asyncio
async def test_monday_rule_tiles_hourly_slots_in_tenant_time() -> None:
    service, lesson_type_id = make_service([FakeRule(weekday=1, start_time="09:00", end_time="18:00")])

    slots = await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY)

    assert len(slots) == 9
    assert slots[0].start == bogota(MONDAY, 9)
    assert slots[-1].end == bogota(MONDAY, 18)
    assert slots[0].start.isoformat(timespec="seconds") == "2026-11-02T09:00:00-05:00"


@pytest.mark.asyncio
async def test_blocked_time_removes_only_overlapping_slot() -> None:
    service, lesson_type_id = make_service(
        [FakeRule(weekday=1, start_time="09:00", end_time="18:00")],
        blocked=[FakeInterval(bogota(MONDAY, 12), bogota(MONDAY, 13))],
    )

    slots = await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY)

    starts = [slot.start for slot in slots]
    assert len(slots) == 8
    assert bogota(MONDAY, 12) not in starts
    assert bogota(MONDAY, 11) in starts
    assert bogota(MONDAY, 13) in starts


@pytest.mark.asyncio
async def test_active_lesson_marks_slot_unavailable() -> None:
    service, lesson_type_id = make_service(
        [FakeRule(weekday=1, start_time="09:00", end_time="18:00")],
        busy=[FakeInterval(bogota(MONDAY, 10), bogota(MONDAY, 11))],
    )

    available = await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY)
    everything = await service.generate_slots(
        make_context(),
        lesson_type_id,
        MONDAY,
        MONDAY,
        include_unavailable=True,
    )

    assert len(available) == 8
    assert len(everything) == 9
    taken = [slot for slot in everything if not slot.available]
    assert [slot.start for slot in taken] == [bogota(MONDAY, 10)]


@pytest.mark.asyncio
async def test_slot_that_would_overflow_rule_end_is_not_offered() -> None:
    service, lesson_type_id = make_service(
        [FakeRule(weekday=1, start_time="09:00", end_time="11:00", slot_minutes=30)],
        duration_min=60,
    )

    slots = await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY)

    assert [slot.start for slot in slots] == [bogota(MONDAY, 9), bogota(MONDAY, 9, 30), bogota(MONDAY, 10)]


@pytest.mark.asyncio
async def test_overlapping_rules_do_not_duplicate_slots() -> None:
    service, lesson_type_id = make_service(
        [
            FakeRule(weekday=1, start_time="09:00", end_time="12:00"),
            FakeRule(weekday=1, start_time="10:00", end_time="13:00"),
        ],
    )

    slots = await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY)

    starts = [slot.start for slot in slots]
    assert len(starts) == len(set(starts)) == 4
    assert starts == sorted(starts)


@pytest.mark.asyncio
async def test_past_slots_are_dropped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(scheduling_service_module, "utc_now", lambda: bogota(MONDAY, 12, 30))
    service, lesson_type_id = make_service([FakeRule(weekday=1, start_time="09:00", end_time="18:00")])

    slots = await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY)

    assert slots[0].start == bogota(MONDAY, 13)


@pytest.mark.asyncio
async def test_requested_timezone_changes_rendering_only() -> None:
    service, lesson_type_id = make_service([FakeRule(weekday=1, start_time="09:00", end_time="10:00")])

    slots = await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY, timezone="Europe/Madrid")

    assert len(slots) == 1
    assert slots[0].start == bogota(MONDAY, 9)
    assert slots[0].start.isoformat(timespec="seconds") == "2026-11-02T15:00:00+01:00"


@pytest.mark.asyncio
async def test_inactive_rules_are_ignored() -> None:
    service, lesson_type_id = make_service(
        [FakeRule(weekday=1, start_time="09:00", end_time="18:00", is_active=False)],
    )

    assert await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY) == []


@pytest.mark.asyncio
async def test_reversed_range_is_rejected() -> None:
    service, lesson_type_id = make_service([])

    with pytest.raises(ValidationException):
        await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY - timedelta(days=1))


@pytest.mark.asyncio
async def test_overlong_range_is_rejected() -> None:
    service, lesson_type_id = make_service([])

    with pytest.raises(ValidationException):
        await service.generate_slots(make_context(), lesson_type_id, MONDAY, MONDAY + timedelta(days=400))


@pytest.mark.asyncio
async def test_unknown_or_inactive_lesson_type_is_not_found() -> None:
    service, _ = make_service([], is_active=False)

    with pytest.raises(NotFoundException):
        await service.generate_slots(make_context(), uuid4(), MONDAY, MONDAY)


def test_tile_rule_keeps_local_wall_clock_across_daylight_saving_change() -> None:
    tz = ZoneInfo("America/New_York")
    rule = FakeRule(weekday=0, start_time="09:00", end_time="10:00")

    before = tile_rule(date(2026, 10, 25), rule, timedelta(minutes=60), tz)  # type: ignore[arg-type]
    after = tile_rule(date(2026, 11, 1), rule, timedelta(minutes=60), tz)  # type: ignore[arg-type]

    assert before == [(datetime(2026, 10, 25, 13, tzinfo=UTC), datetime(2026, 10, 25, 14, tzinfo=UTC))]
    assert after == [(datetime(2026, 11, 1, 14, tzinfo=UTC), datetime(2026, 11, 1, 15, tzinfo=UTC))]
