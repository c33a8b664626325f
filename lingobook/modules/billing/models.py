"""Billing ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lingobook.core.database import Base, BaseModelMixin, TenantScopedMixin, enum_column
from lingobook.core.enums import LedgerReasonEnum, PaymentStatusEnum

if TYPE_CHECKING:
    from lingobook.modules.catalog.models import LessonType


class Pack(TenantScopedMixin, BaseModelMixin, Base):
    """Prepaid bundle of lesson credits."""

    __tablename__ = "packs"
    __table_args__ = (
        CheckConstraint("used_credits >= 0 AND used_credits <= total_credits", name="credits_in_range"),
    )

    student_id: Mapped[UUID] = mapped_column(
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lesson_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("lesson_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    total_credits: Mapped[int] = mapped_column(Integer, nullable=False)
    used_credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    lesson_type: Mapped[LessonType] = relationship(lazy="joined")
    ledger_entries: Mapped[list[PackLedger]] = relationship(
        back_populates="pack",
        order_by="PackLedger.created_at",
    )

    @property
    def remaining_credits(self) -> int:
        return self.total_credits - self.used_credits

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def is_usable(self, now: datetime) -> bool:
        """Active, unexpired and with at least one credit left."""
        return self.is_active and not self.is_expired(now) and self.remaining_credits > 0


class PackLedger(TenantScopedMixin, BaseModelMixin, Base):
    """Append-only credit movement of a pack."""

    __tablename__ = "pack_ledger"

    pack_id: Mapped[UUID] = mapped_column(
        ForeignKey("packs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lesson_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("lessons.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[LedgerReasonEnum] = mapped_column(
        enum_column(LedgerReasonEnum, "ledger_reason_enum"),
        nullable=False,
    )

    pack: Mapped[Pack] = relationship(back_populates="ledger_entries")


class Payment(TenantScopedMixin, BaseModelMixin, Base):
    """Payment attempt for a lesson or a pack."""

    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("tenant_id", "provider_reference", name="uq_payments_tenant_reference"),
        CheckConstraint("lesson_id IS NOT NULL OR pack_id IS NOT NULL", name="has_target"),
    )

    lesson_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("lessons.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    pack_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("packs.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="COP", nullable=False)
    provider: Mapped[str] = mapped_column(String(32), default="wompi", nullable=False)
    provider_reference: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_payment_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    status: Mapped[PaymentStatusEnum] = mapped_column(
        enum_column(PaymentStatusEnum, "payment_status_enum"),
        default=PaymentStatusEnum.PENDING,
        nullable=False,
        index=True,
    )
    raw_payload: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    checkout_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
