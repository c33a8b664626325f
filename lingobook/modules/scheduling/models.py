"""Scheduling ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from lingobook.core.database import Base, BaseModelMixin, TenantScopedMixin


class AvailabilityRule(TenantScopedMixin, BaseModelMixin, Base):
    """Recurring weekly opening window in tenant-local wall-clock time."""

    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint("weekday BETWEEN 0 AND 6", name="weekday_range"),
        CheckConstraint("start_time < end_time", name="start_before_end"),
        CheckConstraint("slot_minutes BETWEEN 15 AND 180", name="slot_minutes_range"),
    )

    # 0 = Sunday ... 6 = Saturday
    weekday: Mapped[int] = mapped_column(SmallInteger, nullable=False, index=True)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    slot_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class BlockedTime(TenantScopedMixin, BaseModelMixin, Base):
    """One-off unavailable interval (holiday, personal time)."""

    __tablename__ = "blocked_times"
    __table_args__ = (CheckConstraint("starts_at < ends_at", name="starts_before_ends"),)

    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
