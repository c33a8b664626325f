"""Catalog ORM models."""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lingobook.core.database import Base, BaseModelMixin, TenantScopedMixin


class LessonType(TenantScopedMixin, BaseModelMixin, Base):
    """Bookable product: a single lesson or a pack definition."""

    __tablename__ = "lesson_types"
    __table_args__ = (
        CheckConstraint("NOT is_pack_type OR pack_size > 0", name="pack_size_positive"),
        CheckConstraint("duration_min > 0", name="duration_positive"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_min: Mapped[int] = mapped_column(Integer, nullable=False)
    price_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="COP", nullable=False)
    is_pack_type: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    pack_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pack_validity_days: Mapped[int] = mapped_column(Integer, default=90, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
