"""Scheduling repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.modules.scheduling.models import AvailabilityRule, BlockedTime


class SchedulingRepository:
    """DB access for availability rules and blocked times."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def list_rules(self, tenant_id: UUID, active_only: bool = False) -> list[AvailabilityRule]:
        stmt = select(AvailabilityRule).where(AvailabilityRule.tenant_id == tenant_id)
        if active_only:
            stmt = stmt.where(AvailabilityRule.is_active.is_(True))
        stmt = stmt.order_by(AvailabilityRule.weekday.asc(), AvailabilityRule.start_time.asc())
        return (await self.session.scalars(stmt)).all()

    async def get_rule(self, tenant_id: UUID, rule_id: UUID) -> AvailabilityRule | None:
        stmt = select(AvailabilityRule).where(
            AvailabilityRule.tenant_id == tenant_id,
            AvailabilityRule.id == rule_id,
        )
        return await self.session.scalar(stmt)

    async def create_rule(
        self,
        tenant_id: UUID,
        weekday: int,
        start_time: str,
        end_time: str,
        slot_minutes: int,
    ) -> AvailabilityRule:
        rule = AvailabilityRule(
            tenant_id=tenant_id,
            weekday=weekday,
            start_time=start_time,
            end_time=end_time,
            slot_minutes=slot_minutes,
            is_active=True,
        )
        self.session.add(rule)
        await self.session.flush()
        return rule

    async def delete_rule(self, rule: AvailabilityRule) -> None:
        await self.session.delete(rule)
        await self.session.flush()

    async def list_blocked_times_between(
        self,
        tenant_id: UUID,
        window_start: datetime,
        window_end: datetime,
    ) -> list[BlockedTime]:
        stmt = (
            select(BlockedTime)
            .where(
                BlockedTime.tenant_id == tenant_id,
                BlockedTime.starts_at < window_end,
                BlockedTime.ends_at > window_start,
            )
            .order_by(BlockedTime.starts_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def list_upcoming_blocked_times(self, tenant_id: UUID, now: datetime) -> list[BlockedTime]:
        stmt = (
            select(BlockedTime)
            .where(BlockedTime.tenant_id == tenant_id, BlockedTime.ends_at > now)
            .order_by(BlockedTime.starts_at.asc())
        )
        return (await self.session.scalars(stmt)).all()

    async def create_blocked_time(
        self,
        tenant_id: UUID,
        starts_at: datetime,
        ends_at: datetime,
        reason: str | None,
    ) -> BlockedTime:
        blocked = BlockedTime(tenant_id=tenant_id, starts_at=starts_at, ends_at=ends_at, reason=reason)
        self.session.add(blocked)
        await self.session.flush()
        return blocked
