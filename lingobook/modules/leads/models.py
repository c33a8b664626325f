"""Lead ORM models."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from lingobook.core.database import Base, BaseModelMixin, TenantScopedMixin, enum_column
from lingobook.core.enums import LeadStatusEnum


class Lead(TenantScopedMixin, BaseModelMixin, Base):
    """Prospective student captured from the public site."""

    __tablename__ = "leads"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    objective: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[LeadStatusEnum] = mapped_column(
        enum_column(LeadStatusEnum, "lead_status_enum"),
        default=LeadStatusEnum.NEW,
        nullable=False,
        index=True,
    )
