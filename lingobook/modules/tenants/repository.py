"""Tenant repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.modules.tenants.models import Tenant, TenantSettings


class TenantsRepository:
    """DB access for tenants and their settings."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_tenant_by_slug(self, slug: str) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.slug == slug)
        return await self.session.scalar(stmt)

    async def get_tenant_by_id(self, tenant_id: UUID) -> Tenant | None:
        stmt = select(Tenant).where(Tenant.id == tenant_id)
        return await self.session.scalar(stmt)

    async def list_active_tenants(self) -> list[Tenant]:
        stmt = select(Tenant).where(Tenant.is_active.is_(True)).order_by(Tenant.slug.asc())
        return (await self.session.scalars(stmt)).all()

    async def get_or_create_settings(self, tenant: Tenant) -> TenantSettings:
        if tenant.settings is not None:
            return tenant.settings
        tenant_settings = TenantSettings(tenant_id=tenant.id)
        self.session.add(tenant_settings)
        await self.session.flush()
        tenant.settings = tenant_settings
        return tenant_settings

    async def update_settings(self, tenant_settings: TenantSettings, **changes) -> TenantSettings:
        for key, value in changes.items():
            setattr(tenant_settings, key, value)
        await self.session.flush()
        return tenant_settings
