from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from uuid import UUID, uuid4

import pytest
from sqlalchemy.exc import IntegrityError

import lingobook.modules.booking.service as booking_service_module
from lingobook.core.enums import LedgerReasonEnum, LessonStatusEnum, PaymentStatusEnum, RoleEnum
from lingobook.modules.booking.schemas import (
    AdminLessonUpdate,
    BookingCreate,
    LessonCancelRequest,
    LessonRescheduleRequest,
)
from lingobook.modules.booking.service import BookingService
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.tenants.context import Principal, RequestContext, TenantDescriptor, TenantPolicy
from lingobook.shared.exceptions import (
    AuthzException,
    ConflictException,
    NotFoundException,
    PolicyViolationException,
)

NOW = datetime(2026, 11, 2, 12, 0, tzinfo=UTC)


@dataclass
class FakeLesson:
    id: UUID
    tenant_id: UUID
    student_id: UUID
    lesson_type_id: UUID
    starts_at: datetime
    ends_at: datetime
    status: LessonStatusEnum
    payment_status: PaymentStatusEnum
    pack_id: UUID | None = None
    calendar_event_id: str | None = None
    reminder_24h_sent: bool = False
    reminder_1h_sent: bool = False
    cancellation_reason: str | None = None
    teacher_notes: str | None = None


@dataclass
class FakePack:
    id: UUID
    student_id: UUID
    total_credits: int
    used_credits: int = 0
    is_active: bool = True
    expires_at: datetime | None = None

    @property
    def remaining_credits(self) -> int:
        return self.total_credits - self.used_credits


@dataclass
class FakeLedgerEntry:
    pack_id: UUID
    lesson_id: UUID | None
    delta: int
    reason: LedgerReasonEnum


class FakeIdentityRepository:
    def __init__(self, student: SimpleNamespace | None) -> None:
        self.student = student

    async def get_student_for_user(self, tenant_id: UUID, user_id: UUID) -> SimpleNamespace | None:
        if self.student is None or self.student.user_id != user_id:
            return None
        return self.student


class FakeCatalogRepository:
    def __init__(self, lesson_type: SimpleNamespace) -> None:
        self.lesson_type = lesson_type

    async def get_lesson_type(self, tenant_id: UUID, lesson_type_id: UUID) -> SimpleNamespace | None:
        if self.lesson_type.id != lesson_type_id:
            return None
        return self.lesson_type


class FakeLessonsRepository:
    def __init__(self) -> None:
        self.lessons: dict[UUID, FakeLesson] = {}

    async def find_overlapping_active_lesson(
        self,
        tenant_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        exclude_lesson_id: UUID | None = None,
    ) -> FakeLesson | None:
        for lesson in self.lessons.values():
            if lesson.id == exclude_lesson_id or lesson.status not in (
                LessonStatusEnum.RESERVED,
                LessonStatusEnum.CONFIRMED,
            ):
                continue
            if lesson.starts_at < ends_at and lesson.ends_at > starts_at:
                return lesson
        return None

    async def create_lesson(self, **values) -> FakeLesson:
        lesson = FakeLesson(id=uuid4(), **values)
        self.lessons[lesson.id] = lesson
        return lesson

    async def get_lesson(self, tenant_id: UUID, lesson_id: UUID) -> FakeLesson | None:
        return self.lessons.get(lesson_id)

    async def update_lesson(self, lesson: FakeLesson, **changes) -> FakeLesson:
        for key, value in changes.items():
            setattr(lesson, key, value)
        return lesson

    async def list_student_lessons(self, tenant_id: UUID, student_id: UUID) -> list[FakeLesson]:
        return [lesson for lesson in self.lessons.values() if lesson.student_id == student_id]


class FakeBillingRepository:
    def __init__(self, packs: list[FakePack] | None = None) -> None:
        self.packs = {pack.id: pack for pack in packs or []}
        self.ledger: list[FakeLedgerEntry] = []
        self.payments: list[SimpleNamespace] = []

    async def find_usable_pack_for_update(self, tenant_id: UUID, student_id: UUID, now: datetime) -> FakePack | None:
        for pack in self.packs.values():
            if (
                pack.student_id == student_id
                and pack.is_active
                and (pack.expires_at is None or pack.expires_at > now)
                and pack.remaining_credits > 0
            ):
                return pack
        return None

    async def get_pack_for_update(self, tenant_id: UUID, pack_id: UUID) -> FakePack | None:
        return self.packs.get(pack_id)

    async def save_pack(self, pack: FakePack) -> FakePack:
        return pack

    async def add_ledger_entry(
        self,
        pack: FakePack,
        lesson_id: UUID | None,
        delta: int,
        reason: LedgerReasonEnum,
    ) -> FakeLedgerEntry:
        entry = FakeLedgerEntry(pack_id=pack.id, lesson_id=lesson_id, delta=delta, reason=reason)
        self.ledger.append(entry)
        return entry

    async def has_ledger_entry(self, pack_id: UUID, lesson_id: UUID, reason: LedgerReasonEnum) -> bool:
        return any(
            entry.pack_id == pack_id and entry.lesson_id == lesson_id and entry.reason == reason
            for entry in self.ledger
        )

    async def create_payment(self, **values) -> SimpleNamespace:
        payment = SimpleNamespace(id=uuid4(), status=PaymentStatusEnum.PENDING, **values)
        self.payments.append(payment)
        return payment


class FakeJobQueue:
    def __init__(self) -> None:
        self.calls: list[tuple[str, UUID, str]] = []

    async def lesson_confirmed(self, tenant_id: UUID, lesson_id: UUID, key_suffix: str) -> None:
        self.calls.append(("lesson_confirmed", lesson_id, key_suffix))

    async def lesson_confirmed_without_payment(self, tenant_id: UUID, lesson_id: UUID, key_suffix: str) -> None:
        self.calls.append(("lesson_confirmed_without_payment", lesson_id, key_suffix))

    async def lesson_rescheduled(self, tenant_id: UUID, lesson_id: UUID, key_suffix: str) -> bool:
        self.calls.append(("lesson_rescheduled", lesson_id, key_suffix))
        return True

    async def lesson_cancelled(self, tenant_id: UUID, lesson_id: UUID, calendar_event_id: str) -> bool:
        self.calls.append(("lesson_cancelled", lesson_id, calendar_event_id))
        return True


@dataclass
class Harness:
    service: BookingService
    ctx: RequestContext
    student: SimpleNamespace
    lesson_type: SimpleNamespace
    lessons: FakeLessonsRepository
    billing: FakeBillingRepository
    jobs: FakeJobQueue
    admin_ctx: RequestContext = field(init=False)

    def __post_init__(self) -> None:
        admin = Principal(user_id=uuid4(), role=RoleEnum.TENANT_ADMIN, tenant_id=self.ctx.tenant.id)
        self.admin_ctx = RequestContext(tenant=self.ctx.tenant, principal=admin)

    def add_lesson(self, starts_at: datetime, **overrides) -> FakeLesson:
        values = {
            "tenant_id": self.ctx.tenant.id,
            "student_id": self.student.id,
            "lesson_type_id": self.lesson_type.id,
            "starts_at": starts_at,
            "ends_at": starts_at + timedelta(minutes=60),
            "status": LessonStatusEnum.CONFIRMED,
            "payment_status": PaymentStatusEnum.APPROVED,
        }
        values.update(overrides)
        lesson = FakeLesson(id=uuid4(), **values)
        self.lessons.lessons[lesson.id] = lesson
        return lesson


def make_harness(
    *,
    packs: list[FakePack] | None = None,
    require_payment_to_confirm: bool = True,
    no_show_consume_credit: bool = True,
    student_id: UUID | None = None,
) -> Harness:
    user_id = uuid4()
    student = SimpleNamespace(id=student_id or uuid4(), user_id=user_id)
    policy = TenantPolicy(
        require_payment_to_confirm=require_payment_to_confirm,
        no_show_consume_credit=no_show_consume_credit,
        payment_public_key="pub_test_123",
    )
    tenant = TenantDescriptor(
        id=uuid4(),
        slug="demo",
        name="Demo",
        timezone="America/Bogota",
        currency="COP",
        policy=policy,
    )
    ctx = RequestContext(
        tenant=tenant,
        principal=Principal(user_id=user_id, role=RoleEnum.STUDENT, tenant_id=tenant.id),
    )
    lesson_type = SimpleNamespace(
        id=uuid4(),
        duration_min=60,
        price_amount=80000,
        currency="COP",
        is_active=True,
    )
    lessons = FakeLessonsRepository()
    billing = FakeBillingRepository(packs)
    jobs = FakeJobQueue()
    service = BookingService(
        lessons_repository=lessons,  # type: ignore[arg-type]
        billing_repository=billing,  # type: ignore[arg-type]
        catalog_repository=FakeCatalogRepository(lesson_type),  # type: ignore[arg-type]
        identity_repository=FakeIdentityRepository(student),  # type: ignore[arg-type]
        job_queue=jobs,  # type: ignore[arg-type]
    )
    return Harness(
        service=service,
        ctx=ctx,
        student=student,
        lesson_type=lesson_type,
        lessons=lessons,
        billing=billing,
        jobs=jobs,
    )


@pytest.fixture(autouse=True)
def freeze_now(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(booking_service_module, "utc_now", lambda: NOW)


@pytest.mark.asyncio
async def test_booking_with_usable_pack_confirms_and_consumes_credit() -> None:
    student_id = uuid4()
    pack = FakePack(id=uuid4(), student_id=student_id, total_credits=4)
    harness = make_harness(packs=[pack], student_id=student_id)

    result = await harness.service.create_booking(
        harness.ctx,
        BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
    )

    assert result.covered_by_pack is True
    assert result.requires_payment is False
    assert result.payment is None
    assert result.lesson.status == LessonStatusEnum.CONFIRMED
    assert result.lesson.payment_status == PaymentStatusEnum.COVERED_BY_PACK
    assert result.lesson.pack_id == pack.id
    assert pack.used_credits == 1
    assert [(entry.delta, entry.reason) for entry in harness.billing.ledger] == [(-1, LedgerReasonEnum.BOOKING)]
    assert harness.jobs.calls == [("lesson_confirmed", result.lesson.id, "booking")]
    assert "3 credits left" in result.message


@pytest.mark.asyncio
async def test_booking_without_pack_reserves_and_creates_checkout_payment() -> None:
    harness = make_harness()

    result = await harness.service.create_booking(
        harness.ctx,
        BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
    )

    assert result.requires_payment is True
    assert result.lesson.status == LessonStatusEnum.RESERVED
    assert result.lesson.payment_status == PaymentStatusEnum.PENDING
    assert result.payment is not None
    assert result.payment.provider_reference.startswith("TP-")
    assert result.payment.amount == 80000
    assert "amount-in-cents=8000000" in result.payment.checkout_url
    assert "public-key=pub_test_123" in result.payment.checkout_url
    assert harness.jobs.calls == []


@pytest.mark.asyncio
async def test_reserved_booking_payment_uses_shared_lesson_payment_builder(monkeypatch: pytest.MonkeyPatch) -> None:
    harness = make_harness()
    calls: list[tuple[UUID, int, str]] = []

    async def fake_create_lesson_payment(repository, ctx, lesson_id, amount, currency):
        calls.append((lesson_id, amount, currency))
        return SimpleNamespace(id=uuid4(), provider_reference="TP-shared", checkout_url="https://pay.example")

    monkeypatch.setattr(booking_service_module, "create_lesson_payment", fake_create_lesson_payment)

    result = await harness.service.create_booking(
        harness.ctx,
        BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
    )

    assert calls == [(result.lesson.id, 80000, "COP")]
    assert result.payment.provider_reference == "TP-shared"


@pytest.mark.asyncio
async def test_booking_without_payment_requirement_confirms_unpaid() -> None:
    harness = make_harness(require_payment_to_confirm=False)

    result = await harness.service.create_booking(
        harness.ctx,
        BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
    )

    assert result.lesson.status == LessonStatusEnum.CONFIRMED
    assert result.lesson.payment_status == PaymentStatusEnum.PENDING
    assert result.payment is None
    assert harness.jobs.calls == [("lesson_confirmed_without_payment", result.lesson.id, "booking")]


@pytest.mark.asyncio
async def test_expired_or_inactive_pack_is_not_used() -> None:
    student_id = uuid4()
    packs = [
        FakePack(id=uuid4(), student_id=student_id, total_credits=4, expires_at=NOW - timedelta(days=1)),
        FakePack(id=uuid4(), student_id=student_id, total_credits=4, is_active=False),
        FakePack(id=uuid4(), student_id=student_id, total_credits=4, used_credits=4),
    ]
    harness = make_harness(packs=packs, student_id=student_id)

    result = await harness.service.create_booking(
        harness.ctx,
        BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
    )

    assert result.covered_by_pack is False
    assert result.requires_payment is True
    assert harness.billing.ledger == []


@pytest.mark.asyncio
async def test_booking_in_the_past_is_rejected() -> None:
    harness = make_harness()

    with pytest.raises(PolicyViolationException):
        await harness.service.create_booking(
            harness.ctx,
            BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW - timedelta(minutes=1)),
        )


@pytest.mark.asyncio
async def test_booking_overlapping_active_lesson_conflicts() -> None:
    harness = make_harness()
    harness.add_lesson(NOW + timedelta(days=2))

    with pytest.raises(ConflictException):
        await harness.service.create_booking(
            harness.ctx,
            BookingCreate(
                lesson_type_id=harness.lesson_type.id,
                starts_at=NOW + timedelta(days=2, minutes=30),
            ),
        )


class UniqueIndexViolationSession:
    """Session whose flush hits the active-start unique index, as a concurrent booking would."""

    def __init__(self) -> None:
        self.added: list[object] = []

    def add(self, instance: object) -> None:
        self.added.append(instance)

    def begin_nested(self) -> UniqueIndexViolationSession:
        return self

    async def __aenter__(self) -> UniqueIndexViolationSession:
        return self

    async def __aexit__(self, *exc_info: object) -> bool:
        return False

    async def flush(self) -> None:
        raise IntegrityError(
            "INSERT INTO lessons",
            {},
            Exception('duplicate key value violates unique constraint "uq_lessons_tenant_active_start"'),
        )


class SlotLostRaceRepository(LessonsRepository):
    """Overlap pre-check passes; the insert then loses to a concurrent booking."""

    async def find_overlapping_active_lesson(self, *args: object, **kwargs: object) -> None:
        return None


@pytest.mark.asyncio
async def test_concurrent_pack_booking_conflicts_without_consuming_credit() -> None:
    student_id = uuid4()
    pack = FakePack(id=uuid4(), student_id=student_id, total_credits=4)
    harness = make_harness(packs=[pack], student_id=student_id)
    harness.service.lessons_repository = SlotLostRaceRepository(UniqueIndexViolationSession())  # type: ignore[arg-type]

    with pytest.raises(ConflictException):
        await harness.service.create_booking(
            harness.ctx,
            BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
        )

    assert pack.used_credits == 0
    assert harness.billing.ledger == []
    assert harness.jobs.calls == []


@pytest.mark.asyncio
async def test_concurrent_paid_booking_conflicts_without_creating_payment() -> None:
    harness = make_harness()
    harness.service.lessons_repository = SlotLostRaceRepository(UniqueIndexViolationSession())  # type: ignore[arg-type]

    with pytest.raises(ConflictException):
        await harness.service.create_booking(
            harness.ctx,
            BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
        )

    assert harness.billing.payments == []
    assert harness.jobs.calls == []


@pytest.mark.asyncio
async def test_cancelled_lesson_does_not_block_the_slot() -> None:
    harness = make_harness()
    harness.add_lesson(NOW + timedelta(days=2), status=LessonStatusEnum.CANCELLED)

    result = await harness.service.create_booking(
        harness.ctx,
        BookingCreate(lesson_type_id=harness.lesson_type.id, starts_at=NOW + timedelta(days=2)),
    )

    assert result.lesson.status == LessonStatusEnum.RESERVED


@pytest.mark.asyncio
async def test_booking_unknown_lesson_type_is_not_found() -> None:
    harness = make_harness()

    with pytest.raises(NotFoundException):
        await harness.service.create_booking(
            harness.ctx,
            BookingCreate(lesson_type_id=uuid4(), starts_at=NOW + timedelta(days=2)),
        )


@pytest.mark.asyncio
async def test_reschedule_exactly_at_notice_boundary_is_allowed() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(hours=24), calendar_event_id="evt-1", reminder_24h_sent=True)
    new_start = NOW + timedelta(days=3)

    updated = await harness.service.reschedule_lesson(
        harness.ctx,
        lesson.id,
        LessonRescheduleRequest(new_starts_at=new_start),
    )

    assert updated.starts_at == new_start
    assert updated.ends_at == new_start + timedelta(minutes=60)
    assert updated.reminder_24h_sent is False
    assert harness.jobs.calls == [("lesson_rescheduled", lesson.id, str(int(new_start.timestamp())))]


@pytest.mark.asyncio
async def test_reschedule_inside_notice_window_is_rejected() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(hours=23, minutes=59))

    with pytest.raises(PolicyViolationException):
        await harness.service.reschedule_lesson(
            harness.ctx,
            lesson.id,
            LessonRescheduleRequest(new_starts_at=NOW + timedelta(days=3)),
        )


@pytest.mark.asyncio
async def test_reschedule_without_calendar_event_enqueues_nothing() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(days=2))

    await harness.service.reschedule_lesson(
        harness.ctx,
        lesson.id,
        LessonRescheduleRequest(new_starts_at=NOW + timedelta(days=3)),
    )

    assert harness.jobs.calls == []


@pytest.mark.asyncio
async def test_reschedule_onto_own_slot_is_not_a_conflict() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(days=2))

    updated = await harness.service.reschedule_lesson(
        harness.ctx,
        lesson.id,
        LessonRescheduleRequest(new_starts_at=NOW + timedelta(days=2, minutes=30)),
    )

    assert updated.starts_at == NOW + timedelta(days=2, minutes=30)


@pytest.mark.asyncio
async def test_reschedule_of_cancelled_lesson_is_rejected() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(days=2), status=LessonStatusEnum.CANCELLED)

    with pytest.raises(PolicyViolationException):
        await harness.service.reschedule_lesson(
            harness.ctx,
            lesson.id,
            LessonRescheduleRequest(new_starts_at=NOW + timedelta(days=3)),
        )


@pytest.mark.asyncio
async def test_other_students_lesson_is_not_found() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(days=2), student_id=uuid4())

    with pytest.raises(NotFoundException):
        await harness.service.cancel_lesson(harness.ctx, lesson.id, LessonCancelRequest())


@pytest.mark.asyncio
async def test_cancel_pack_lesson_refunds_credit_and_deletes_event() -> None:
    student_id = uuid4()
    pack = FakePack(id=uuid4(), student_id=student_id, total_credits=4, used_credits=1)
    harness = make_harness(packs=[pack], student_id=student_id)
    lesson = harness.add_lesson(
        NOW + timedelta(days=2),
        payment_status=PaymentStatusEnum.COVERED_BY_PACK,
        pack_id=pack.id,
        calendar_event_id="evt-9",
    )

    cancelled = await harness.service.cancel_lesson(harness.ctx, lesson.id, LessonCancelRequest())

    assert cancelled.status == LessonStatusEnum.CANCELLED
    assert cancelled.cancellation_reason == "Cancelled by student"
    assert pack.used_credits == 0
    assert [(entry.delta, entry.reason) for entry in harness.billing.ledger] == [
        (1, LedgerReasonEnum.CANCEL_REFUND),
    ]
    assert harness.jobs.calls == [("lesson_cancelled", lesson.id, "evt-9")]


@pytest.mark.asyncio
async def test_cancel_inside_notice_window_is_rejected() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(hours=2))

    with pytest.raises(PolicyViolationException):
        await harness.service.cancel_lesson(harness.ctx, lesson.id, LessonCancelRequest(reason="sick"))

    assert lesson.status == LessonStatusEnum.CONFIRMED


@pytest.mark.asyncio
async def test_admin_no_show_forfeits_pack_credit_once() -> None:
    student_id = uuid4()
    pack = FakePack(id=uuid4(), student_id=student_id, total_credits=4, used_credits=1)
    harness = make_harness(packs=[pack], student_id=student_id)
    lesson = harness.add_lesson(
        NOW - timedelta(hours=2),
        payment_status=PaymentStatusEnum.COVERED_BY_PACK,
        pack_id=pack.id,
    )

    await harness.service.admin_update_lesson(
        harness.admin_ctx,
        lesson.id,
        AdminLessonUpdate(status=LessonStatusEnum.NO_SHOW),
    )
    await harness.service.admin_update_lesson(
        harness.admin_ctx,
        lesson.id,
        AdminLessonUpdate(teacher_notes="Student did not join"),
    )

    assert lesson.status == LessonStatusEnum.NO_SHOW
    assert lesson.teacher_notes == "Student did not join"
    assert pack.used_credits == 1
    assert [(entry.delta, entry.reason) for entry in harness.billing.ledger] == [
        (0, LedgerReasonEnum.NO_SHOW_FORFEIT),
    ]


@pytest.mark.asyncio
async def test_admin_no_show_without_forfeit_policy_writes_nothing() -> None:
    student_id = uuid4()
    pack = FakePack(id=uuid4(), student_id=student_id, total_credits=4, used_credits=1)
    harness = make_harness(packs=[pack], student_id=student_id, no_show_consume_credit=False)
    lesson = harness.add_lesson(
        NOW - timedelta(hours=2),
        payment_status=PaymentStatusEnum.COVERED_BY_PACK,
        pack_id=pack.id,
    )

    await harness.service.admin_update_lesson(
        harness.admin_ctx,
        lesson.id,
        AdminLessonUpdate(status=LessonStatusEnum.NO_SHOW),
    )

    assert harness.billing.ledger == []


@pytest.mark.asyncio
async def test_student_cannot_use_admin_update() -> None:
    harness = make_harness()
    lesson = harness.add_lesson(NOW + timedelta(days=2))

    with pytest.raises(AuthzException):
        await harness.service.admin_update_lesson(
            harness.ctx,
            lesson.id,
            AdminLessonUpdate(status=LessonStatusEnum.COMPLETED),
        )
