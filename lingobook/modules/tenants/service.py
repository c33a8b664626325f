"""Tenant business logic layer."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.database import get_db_session
from lingobook.modules.tenants.context import RequestContext, TenantDescriptor
from lingobook.modules.tenants.models import Tenant, TenantSettings
from lingobook.modules.tenants.repository import TenantsRepository
from lingobook.modules.tenants.schemas import TenantConfigUpdate
from lingobook.shared.exceptions import AuthzException, NotFoundException

logger = logging.getLogger(__name__)


class TenantService:
    """Tenant resolution and configuration."""

    def __init__(self, repository: TenantsRepository) -> None:
        self.repository = repository

    async def resolve_active_tenant(self, slug: str) -> Tenant:
        """Return active tenant by slug; inactive tenants are indistinguishable from missing ones."""
        tenant = await self.repository.get_tenant_by_slug(slug)
        if tenant is None or not tenant.is_active:
            raise NotFoundException("Tenant not found")
        return tenant

    async def update_config(self, ctx: RequestContext, payload: TenantConfigUpdate) -> TenantSettings:
        """Apply partial configuration changes (tenant admin only)."""
        if ctx.principal is None or not ctx.principal.is_tenant_admin:
            raise AuthzException("Only tenant admins can update configuration")

        tenant = await self.repository.get_tenant_by_id(ctx.tenant.id)
        if tenant is None:
            raise NotFoundException("Tenant not found")

        tenant_settings = await self.repository.get_or_create_settings(tenant)
        changes = payload.model_dump(exclude_unset=True)
        updated = await self.repository.update_settings(tenant_settings, **changes)
        logger.info("Tenant %s configuration updated: %s", ctx.tenant.slug, sorted(changes))
        return updated


async def get_tenant_service(session: AsyncSession = Depends(get_db_session)) -> TenantService:
    """Dependency provider for tenant service."""
    return TenantService(TenantsRepository(session))


async def get_tenant_descriptor(
    tenant_slug: str,
    service: TenantService = Depends(get_tenant_service),
) -> TenantDescriptor:
    """Resolve the tenant addressed by the ``/t/{tenant_slug}`` path prefix."""
    tenant = await service.resolve_active_tenant(tenant_slug)
    return TenantDescriptor.from_model(tenant)
