"""Lead API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from lingobook.modules.identity.service import get_public_context
from lingobook.modules.leads.schemas import LeadCreate, LeadRead
from lingobook.modules.leads.service import LeadService, get_lead_service
from lingobook.modules.tenants.context import RequestContext

router = APIRouter(prefix="/t/{tenant_slug}", tags=["leads"])


@router.post("/leads", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
async def create_lead(
    payload: LeadCreate,
    ctx: RequestContext = Depends(get_public_context),
    service: LeadService = Depends(get_lead_service),
) -> LeadRead:
    """Capture a sales lead from the public site."""
    lead = await service.create_lead(ctx, payload)
    return LeadRead.model_validate(lead)
