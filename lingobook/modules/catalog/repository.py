"""Catalog repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.modules.catalog.models import LessonType


class CatalogRepository:
    """DB access for lesson types."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_lesson_type(self, tenant_id: UUID, lesson_type_id: UUID) -> LessonType | None:
        stmt = select(LessonType).where(
            LessonType.tenant_id == tenant_id,
            LessonType.id == lesson_type_id,
        )
        return await self.session.scalar(stmt)

    async def list_active_lesson_types(self, tenant_id: UUID) -> list[LessonType]:
        stmt = (
            select(LessonType)
            .where(LessonType.tenant_id == tenant_id, LessonType.is_active.is_(True))
            .order_by(LessonType.is_pack_type.asc(), LessonType.price_amount.asc())
        )
        return (await self.session.scalars(stmt)).all()
