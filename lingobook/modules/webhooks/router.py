"""Payment webhook router."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from lingobook.modules.identity.service import get_public_context
from lingobook.modules.tenants.context import RequestContext
from lingobook.modules.webhooks.schemas import WebhookAck
from lingobook.modules.webhooks.service import PaymentWebhookService, get_payment_webhook_service

router = APIRouter(prefix="/t/{tenant_slug}/payments/webhook", tags=["webhooks"])


@router.post("/wompi", response_model=WebhookAck)
async def wompi_webhook(
    payload: dict[str, Any] = Body(...),
    ctx: RequestContext = Depends(get_public_context),
    service: PaymentWebhookService = Depends(get_payment_webhook_service),
) -> WebhookAck:
    """Receive payment provider events."""
    return await service.process_event(ctx, payload, request_id=ctx.request_id)
