"""Identity ORM models."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lingobook.core.database import Base, BaseModelMixin, enum_column
from lingobook.core.enums import RoleEnum


class User(BaseModelMixin, Base):
    """Platform user; super admins are the only users without a tenant."""

    __tablename__ = "users"

    tenant_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[RoleEnum] = mapped_column(
        enum_column(RoleEnum, "role_enum"),
        default=RoleEnum.STUDENT,
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    student_profiles: Mapped[list[Student]] = relationship(back_populates="user")


class Student(BaseModelMixin, Base):
    """Student record of a user inside one tenant."""

    __tablename__ = "students"
    __table_args__ = (UniqueConstraint("tenant_id", "user_id", name="uq_students_tenant_id_user_id"),)

    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    level: Mapped[str | None] = mapped_column(String(32), nullable=True)

    user: Mapped[User] = relationship(back_populates="student_profiles", lazy="joined")
