from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest

from lingobook.core.config import Settings
from lingobook.core.enums import LessonStatusEnum, PaymentStatusEnum
from lingobook.modules.jobs.contracts import ChasePayment, FollowUp, SendReminder1hEmail, SendReminder24hEmail
from lingobook.modules.jobs.service import reminder_job_key
from lingobook.modules.scheduler.sweeps import SweepService
from lingobook.modules.scheduler.ticker import SweepSchedule, SweepTicker

NOW = datetime(2026, 11, 2, 12, 0, tzinfo=UTC)


@dataclass
class FakeLesson:
    id: UUID
    tenant_id: UUID
    starts_at: datetime
    ends_at: datetime
    status: LessonStatusEnum = LessonStatusEnum.CONFIRMED
    payment_status: PaymentStatusEnum = PaymentStatusEnum.APPROVED
    created_at: datetime = NOW - timedelta(days=3)
    reminder_24h_sent: bool = False
    reminder_1h_sent: bool = False
    follow_up_sent: bool = False


class FakeLessonsRepository:
    def __init__(self, lessons: list[FakeLesson]) -> None:
        self.lessons = lessons

    async def list_due_for_reminder(
        self,
        window_start: datetime,
        window_end: datetime,
        flag_name: str,
    ) -> list[FakeLesson]:
        return [
            lesson
            for lesson in self.lessons
            if lesson.status == LessonStatusEnum.CONFIRMED
            and window_start <= lesson.starts_at <= window_end
            and not getattr(lesson, flag_name)
        ]

    async def list_unpaid_reservations(self, created_before: datetime, now: datetime) -> list[FakeLesson]:
        return [
            lesson
            for lesson in self.lessons
            if lesson.status == LessonStatusEnum.RESERVED
            and lesson.payment_status == PaymentStatusEnum.PENDING
            and lesson.created_at <= created_before
            and lesson.starts_at > now
        ]

    async def list_follow_up_candidates(
        self,
        tenant_id: UUID,
        ended_from: datetime,
        ended_to: datetime,
    ) -> list[FakeLesson]:
        return [
            lesson
            for lesson in self.lessons
            if lesson.tenant_id == tenant_id
            and lesson.status in (LessonStatusEnum.CONFIRMED, LessonStatusEnum.COMPLETED)
            and ended_from <= lesson.ends_at < ended_to
            and not lesson.follow_up_sent
        ]

    async def update_lesson(self, lesson: FakeLesson, **changes) -> FakeLesson:
        for key, value in changes.items():
            setattr(lesson, key, value)
        return lesson


class FakeTenantsRepository:
    def __init__(self, tenants: list[SimpleNamespace]) -> None:
        self.tenants = tenants

    async def list_active_tenants(self) -> list[SimpleNamespace]:
        return self.tenants


class FakeJobsRepository:
    def __init__(self, completed_chases: dict[UUID, int] | None = None) -> None:
        self.completed_chases = completed_chases or {}
        self.keys: dict[str, Any] = {}

    async def enqueue(self, request: Any, job_key: str, **_: Any) -> bool:
        if job_key in self.keys:
            return False
        self.keys[job_key] = request
        return True

    async def count_completed_runs_for_lesson(self, job_name: str, lesson_id: UUID) -> int:
        return self.completed_chases.get(lesson_id, 0)


def make_service(
    lessons: list[FakeLesson],
    *,
    tenants: list[SimpleNamespace] | None = None,
    completed_chases: dict[UUID, int] | None = None,
    now: datetime = NOW,
    jobs: FakeJobsRepository | None = None,
) -> tuple[SweepService, FakeJobsRepository]:
    jobs = jobs or FakeJobsRepository(completed_chases)
    service = SweepService(
        FakeLessonsRepository(lessons),  # type: ignore[arg-type]
        FakeTenantsRepository(tenants or []),  # type: ignore[arg-type]
        jobs,  # type: ignore[arg-type]
        settings=Settings(
            _env_file=None,
            reminder_window_minutes=15,
            payment_chase_min_age_hours=24,
            payment_chase_max_attempts=3,
        ),
        now_provider=lambda: now,
    )
    return service, jobs


def lesson_at(starts_at: datetime, tenant_id: UUID | None = None, **overrides: Any) -> FakeLesson:
    return FakeLesson(
        id=uuid4(),
        tenant_id=tenant_id or uuid4(),
        starts_at=starts_at,
        ends_at=starts_at + timedelta(hours=1),
        **overrides,
    )


@pytest.mark.asyncio
async def test_reminder_sweep_queues_lessons_inside_centered_window_once() -> None:
    inside = lesson_at(NOW + timedelta(hours=24, minutes=5))
    too_late = lesson_at(NOW + timedelta(hours=24, minutes=10))
    service, jobs = make_service([inside, too_late])

    first = await service.sweep_reminders("24h")
    second = await service.sweep_reminders("24h")

    assert first == 1
    assert second == 0
    assert inside.reminder_24h_sent is True
    assert too_late.reminder_24h_sent is False
    assert isinstance(jobs.keys[reminder_job_key("24h", inside.id, inside.starts_at)], SendReminder24hEmail)


@pytest.mark.asyncio
async def test_one_hour_reminder_uses_its_own_flag() -> None:
    lesson = lesson_at(NOW + timedelta(hours=1), reminder_24h_sent=True)
    service, jobs = make_service([lesson])

    assert await service.sweep_reminders("1h") == 1
    assert lesson.reminder_1h_sent is True
    assert isinstance(jobs.keys[reminder_job_key("1h", lesson.id, lesson.starts_at)], SendReminder1hEmail)


@pytest.mark.asyncio
async def test_reminder_window_includes_its_closing_edge() -> None:
    edge = lesson_at(NOW + timedelta(hours=24, minutes=7, seconds=30))
    service, _ = make_service([edge])

    assert await service.sweep_reminders("24h") == 1
    assert edge.reminder_24h_sent is True


@pytest.mark.asyncio
async def test_rescheduled_lesson_gets_a_new_reminder_for_its_new_start() -> None:
    lesson = lesson_at(NOW + timedelta(hours=24))
    first_start = lesson.starts_at
    service, jobs = make_service([lesson])
    assert await service.sweep_reminders("24h") == 1

    lesson.starts_at = NOW + timedelta(days=3)
    lesson.ends_at = lesson.starts_at + timedelta(hours=1)
    lesson.reminder_24h_sent = False
    later, _ = make_service([lesson], now=NOW + timedelta(days=2), jobs=jobs)

    assert await later.sweep_reminders("24h") == 1
    assert lesson.reminder_24h_sent is True
    assert sorted(jobs.keys) == sorted(
        [
            reminder_job_key("24h", lesson.id, first_start),
            reminder_job_key("24h", lesson.id, lesson.starts_at),
        ],
    )


@pytest.mark.asyncio
async def test_payment_chase_counts_previous_attempts() -> None:
    fresh = lesson_at(
        NOW + timedelta(days=2),
        status=LessonStatusEnum.RESERVED,
        payment_status=PaymentStatusEnum.PENDING,
    )
    chased_twice = lesson_at(
        NOW + timedelta(days=2, hours=2),
        status=LessonStatusEnum.RESERVED,
        payment_status=PaymentStatusEnum.PENDING,
    )
    exhausted = lesson_at(
        NOW + timedelta(days=2, hours=4),
        status=LessonStatusEnum.RESERVED,
        payment_status=PaymentStatusEnum.PENDING,
    )
    too_new = lesson_at(
        NOW + timedelta(days=2, hours=6),
        status=LessonStatusEnum.RESERVED,
        payment_status=PaymentStatusEnum.PENDING,
        created_at=NOW - timedelta(hours=2),
    )
    service, jobs = make_service(
        [fresh, chased_twice, exhausted, too_new],
        completed_chases={chased_twice.id: 2, exhausted.id: 3},
    )

    queued = await service.sweep_payment_chase()

    assert queued == 2
    assert sorted(jobs.keys) == sorted([f"chase-{fresh.id}-1", f"chase-{chased_twice.id}-3"])
    final = jobs.keys[f"chase-{chased_twice.id}-3"]
    assert isinstance(final, ChasePayment)
    assert final.attempt == 3


@pytest.mark.asyncio
async def test_follow_up_sweep_completes_lessons_from_local_yesterday() -> None:
    tenant = SimpleNamespace(id=uuid4(), timezone="America/Bogota")
    # 2026-11-01 10:00 in Bogota, i.e. local yesterday relative to NOW.
    yesterday = lesson_at(datetime(2026, 11, 1, 15, 0, tzinfo=UTC), tenant_id=tenant.id)
    # 2026-11-02 00:30 UTC is still 2026-11-01 in Bogota.
    late_evening = lesson_at(datetime(2026, 11, 1, 23, 30, tzinfo=UTC), tenant_id=tenant.id)
    today = lesson_at(datetime(2026, 11, 2, 14, 0, tzinfo=UTC), tenant_id=tenant.id)
    cancelled = lesson_at(
        datetime(2026, 11, 1, 17, 0, tzinfo=UTC),
        tenant_id=tenant.id,
        status=LessonStatusEnum.CANCELLED,
    )
    service, jobs = make_service(
        [yesterday, late_evening, today, cancelled],
        tenants=[tenant],
        now=datetime(2026, 11, 2, 14, 0, tzinfo=UTC),
    )

    total = await service.sweep_follow_ups()

    assert total == 2
    assert yesterday.status == LessonStatusEnum.COMPLETED
    assert late_evening.follow_up_sent is True
    assert today.status == LessonStatusEnum.CONFIRMED
    assert cancelled.follow_up_sent is False
    assert isinstance(jobs.keys[f"followup-{yesterday.id}"], FollowUp)
    assert await service.sweep_follow_ups() == 0


@pytest.mark.asyncio
async def test_ticker_runs_due_sweeps_and_isolates_failures() -> None:
    clock = [NOW]
    calls: list[str] = []

    async def reminders() -> int:
        calls.append("reminders")
        return 3

    async def broken() -> int:
        calls.append("broken")
        raise RuntimeError("database unavailable")

    ticker = SweepTicker(
        [
            SweepSchedule("reminders-24h", timedelta(minutes=15), reminders),
            SweepSchedule("payment-chase", timedelta(hours=24), broken),
        ],
        now_provider=lambda: clock[0],
    )

    assert await ticker.tick() == {"reminders-24h": 3, "payment-chase": None}

    clock[0] = NOW + timedelta(minutes=10)
    assert await ticker.tick() == {}

    clock[0] = NOW + timedelta(minutes=15)
    assert await ticker.tick() == {"reminders-24h": 3}
    assert calls == ["reminders", "broken", "reminders"]
