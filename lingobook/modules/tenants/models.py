"""Tenant ORM models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lingobook.core.database import Base, BaseModelMixin


class Tenant(BaseModelMixin, Base):
    """Isolated language-teaching business."""

    __tablename__ = "tenants"

    slug: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    timezone: Mapped[str] = mapped_column(String(64), default="America/Bogota", nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="COP", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    settings: Mapped[TenantSettings | None] = relationship(
        back_populates="tenant",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TenantSettings(BaseModelMixin, Base):
    """Booking policy, provider credentials and email templates of a tenant."""

    __tablename__ = "tenant_settings"

    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    require_payment_to_confirm: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    reschedule_min_hours: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    cancel_min_hours: Mapped[int] = mapped_column(Integer, default=24, nullable=False)
    no_show_consume_credit: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    payment_public_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payment_events_secret: Mapped[str | None] = mapped_column(String(255), nullable=True)
    calendar_refresh_token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    calendar_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    confirmation_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_24h_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_1h_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    pending_payment_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    follow_up_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    welcome_template: Mapped[str | None] = mapped_column(Text, nullable=True)

    tenant: Mapped[Tenant] = relationship(back_populates="settings")
