"""Tenant API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from lingobook.modules.identity.service import get_admin_context
from lingobook.modules.tenants.context import RequestContext, TenantDescriptor
from lingobook.modules.tenants.schemas import TenantConfigRead, TenantConfigUpdate, TenantInfoRead
from lingobook.modules.tenants.service import TenantService, get_tenant_descriptor, get_tenant_service

router = APIRouter(prefix="/t/{tenant_slug}", tags=["tenants"])


@router.get("/info", response_model=TenantInfoRead)
async def tenant_info(tenant: TenantDescriptor = Depends(get_tenant_descriptor)) -> TenantInfoRead:
    """Public tenant descriptor."""
    return TenantInfoRead.model_validate(tenant)


@router.patch("/admin/config", response_model=TenantConfigRead)
async def update_config(
    payload: TenantConfigUpdate,
    ctx: RequestContext = Depends(get_admin_context),
    service: TenantService = Depends(get_tenant_service),
) -> TenantConfigRead:
    """Update booking policy, provider credentials and templates (tenant admin)."""
    tenant_settings = await service.update_config(ctx, payload)
    return TenantConfigRead.model_validate(tenant_settings)
