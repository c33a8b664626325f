"""Catalog API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.database import get_db_session
from lingobook.modules.catalog.repository import CatalogRepository
from lingobook.modules.catalog.schemas import LessonTypeRead
from lingobook.modules.tenants.context import TenantDescriptor
from lingobook.modules.tenants.service import get_tenant_descriptor

router = APIRouter(prefix="/t/{tenant_slug}", tags=["catalog"])


@router.get("/lesson-types", response_model=list[LessonTypeRead])
async def list_lesson_types(
    tenant: TenantDescriptor = Depends(get_tenant_descriptor),
    session: AsyncSession = Depends(get_db_session),
) -> list[LessonTypeRead]:
    """List active lesson types and packs of a tenant."""
    items = await CatalogRepository(session).list_active_lesson_types(tenant.id)
    return [LessonTypeRead.model_validate(item) for item in items]
