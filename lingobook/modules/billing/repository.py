"""Billing repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.enums import LedgerReasonEnum, PaymentStatusEnum
from lingobook.modules.billing.models import Pack, PackLedger, Payment


class BillingRepository:
    """DB access methods for packs, ledger rows and payments."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_pack(
        self,
        tenant_id: UUID,
        student_id: UUID,
        lesson_type_id: UUID,
        total_credits: int,
    ) -> Pack:
        pack = Pack(
            tenant_id=tenant_id,
            student_id=student_id,
            lesson_type_id=lesson_type_id,
            total_credits=total_credits,
            used_credits=0,
            is_active=False,
        )
        self.session.add(pack)
        await self.session.flush()
        return pack

    async def get_pack(self, tenant_id: UUID, pack_id: UUID) -> Pack | None:
        stmt = select(Pack).where(Pack.tenant_id == tenant_id, Pack.id == pack_id)
        return await self.session.scalar(stmt)

    async def get_pack_for_update(self, tenant_id: UUID, pack_id: UUID) -> Pack | None:
        stmt = select(Pack).where(Pack.tenant_id == tenant_id, Pack.id == pack_id).with_for_update(of=Pack)
        return await self.session.scalar(stmt)

    async def find_usable_pack_for_update(self, tenant_id: UUID, student_id: UUID, now: datetime) -> Pack | None:
        """Oldest active, unexpired pack with credits left; row-locked until commit."""
        stmt = (
            select(Pack)
            .where(
                Pack.tenant_id == tenant_id,
                Pack.student_id == student_id,
                Pack.is_active.is_(True),
                or_(Pack.expires_at.is_(None), Pack.expires_at > now),
                Pack.used_credits < Pack.total_credits,
            )
            .order_by(Pack.created_at.asc())
            .limit(1)
            .with_for_update(of=Pack)
        )
        return await self.session.scalar(stmt)

    async def list_student_packs(self, tenant_id: UUID, student_id: UUID) -> list[Pack]:
        stmt = (
            select(Pack)
            .where(Pack.tenant_id == tenant_id, Pack.student_id == student_id)
            .order_by(Pack.created_at.desc())
        )
        return (await self.session.scalars(stmt)).all()

    async def add_ledger_entry(
        self,
        pack: Pack,
        lesson_id: UUID | None,
        delta: int,
        reason: LedgerReasonEnum,
    ) -> PackLedger:
        entry = PackLedger(
            tenant_id=pack.tenant_id,
            pack_id=pack.id,
            lesson_id=lesson_id,
            delta=delta,
            reason=reason,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def has_ledger_entry(self, pack_id: UUID, lesson_id: UUID, reason: LedgerReasonEnum) -> bool:
        stmt = select(func.count(PackLedger.id)).where(
            PackLedger.pack_id == pack_id,
            PackLedger.lesson_id == lesson_id,
            PackLedger.reason == reason,
        )
        return int((await self.session.scalar(stmt)) or 0) > 0

    async def sum_ledger_delta(self, pack_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(PackLedger.delta), 0)).where(PackLedger.pack_id == pack_id)
        return int((await self.session.scalar(stmt)) or 0)

    async def save_pack(self, pack: Pack) -> Pack:
        await self.session.flush()
        return pack

    async def create_payment(
        self,
        tenant_id: UUID,
        amount: int,
        currency: str,
        provider: str,
        provider_reference: str,
        lesson_id: UUID | None = None,
        pack_id: UUID | None = None,
        checkout_url: str | None = None,
    ) -> Payment:
        payment = Payment(
            tenant_id=tenant_id,
            lesson_id=lesson_id,
            pack_id=pack_id,
            amount=amount,
            currency=currency.upper(),
            provider=provider,
            provider_reference=provider_reference,
            checkout_url=checkout_url,
            status=PaymentStatusEnum.PENDING,
        )
        self.session.add(payment)
        await self.session.flush()
        return payment

    async def get_pending_lesson_payment(self, tenant_id: UUID, lesson_id: UUID) -> Payment | None:
        stmt = (
            select(Payment)
            .where(
                Payment.tenant_id == tenant_id,
                Payment.lesson_id == lesson_id,
                Payment.status == PaymentStatusEnum.PENDING,
            )
            .order_by(Payment.created_at.asc())
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def get_payment_by_reference_for_update(self, tenant_id: UUID, reference: str) -> Payment | None:
        stmt = (
            select(Payment)
            .where(Payment.tenant_id == tenant_id, Payment.provider_reference == reference)
            .with_for_update(of=Payment)
        )
        return await self.session.scalar(stmt)

    async def list_payments(self, tenant_id: UUID, limit: int, offset: int) -> tuple[list[Payment], int]:
        base_stmt: Select[tuple[Payment]] = select(Payment).where(Payment.tenant_id == tenant_id)
        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(Payment.created_at.desc()).limit(limit).offset(offset)
        items = (await self.session.scalars(stmt)).all()
        return items, total

    async def save_payment(self, payment: Payment) -> Payment:
        await self.session.flush()
        return payment

    async def fail_pending_lesson_payments(self, lesson_id: UUID) -> int:
        stmt = (
            update(Payment)
            .where(Payment.lesson_id == lesson_id, Payment.status == PaymentStatusEnum.PENDING)
            .values(status=PaymentStatusEnum.FAILED)
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)
