"""Billing API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from lingobook.modules.billing.schemas import CheckoutRead, CheckoutRequest, PackPurchaseRequest, PackRead, PaymentRead
from lingobook.modules.billing.service import BillingService, get_billing_service, pack_to_read
from lingobook.modules.identity.service import get_admin_context, get_request_context
from lingobook.modules.tenants.context import RequestContext
from lingobook.shared.pagination import Page, build_page, get_pagination_params

router = APIRouter(prefix="/t/{tenant_slug}", tags=["billing"])


@router.get("/me/packs", response_model=list[PackRead])
async def list_my_packs(
    ctx: RequestContext = Depends(get_request_context),
    service: BillingService = Depends(get_billing_service),
) -> list[PackRead]:
    """List current student's packs with remaining credits."""
    packs = await service.list_my_packs(ctx)
    return [pack_to_read(pack) for pack in packs]


@router.post("/payments/checkout", response_model=CheckoutRead)
async def start_checkout(
    payload: CheckoutRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: BillingService = Depends(get_billing_service),
) -> CheckoutRead:
    return await service.start_lesson_checkout(ctx, payload.lesson_id)


@router.post("/packs/purchase", response_model=CheckoutRead)
async def purchase_pack(
    payload: PackPurchaseRequest,
    ctx: RequestContext = Depends(get_request_context),
    service: BillingService = Depends(get_billing_service),
) -> CheckoutRead:
    """Start a pack purchase; the pack activates when the payment is approved."""
    return await service.purchase_pack(ctx, payload.lesson_type_id)


@router.get("/admin/payments", response_model=Page[PaymentRead])
async def list_payments(
    pagination=Depends(get_pagination_params),
    ctx: RequestContext = Depends(get_admin_context),
    service: BillingService = Depends(get_billing_service),
) -> Page[PaymentRead]:
    items, total = await service.list_payments(ctx, pagination.limit, pagination.offset)
    serialized = [PaymentRead.model_validate(item) for item in items]
    return build_page(serialized, total, pagination)
