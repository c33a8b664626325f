"""Payment webhook reconciliation."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any
from uuid import uuid4

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.config import get_settings
from lingobook.core.database import get_db_session
from lingobook.core.enums import LessonStatusEnum, PaymentStatusEnum
from lingobook.core.metrics import WEBHOOK_EVENTS_TOTAL
from lingobook.modules.billing.models import Payment
from lingobook.modules.billing.repository import BillingRepository
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.modules.jobs.service import JobQueue
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.tenants.context import RequestContext
from lingobook.modules.webhooks.repository import WebhooksRepository
from lingobook.modules.webhooks.schemas import WebhookAck
from lingobook.modules.webhooks.signature import verify_signature
from lingobook.shared.exceptions import SignatureException
from lingobook.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

PROVIDER = "wompi"

PROVIDER_STATUS_MAP: dict[str, PaymentStatusEnum] = {
    "APPROVED": PaymentStatusEnum.APPROVED,
    "DECLINED": PaymentStatusEnum.REJECTED,
    "ERROR": PaymentStatusEnum.FAILED,
    "VOIDED": PaymentStatusEnum.REFUNDED,
}


def map_provider_status(value: Any) -> PaymentStatusEnum:
    return PROVIDER_STATUS_MAP.get(str(value or "").upper(), PaymentStatusEnum.PENDING)


def idempotency_key_for(payload: dict[str, Any], request_id: str | None) -> str:
    transaction = (payload.get("data") or {}).get("transaction") or {}
    event_id = transaction.get("id") or payload.get("id") or request_id or uuid4().hex
    return f"{PROVIDER}-{event_id}"


class PaymentWebhookService:
    """Apply provider payment events exactly once."""

    def __init__(
        self,
        webhooks_repository: WebhooksRepository,
        billing_repository: BillingRepository,
        lessons_repository: LessonsRepository,
        job_queue: JobQueue,
    ) -> None:
        self.webhooks_repository = webhooks_repository
        self.billing_repository = billing_repository
        self.lessons_repository = lessons_repository
        self.job_queue = job_queue

    async def process_event(
        self,
        ctx: RequestContext,
        payload: dict[str, Any],
        request_id: str | None = None,
    ) -> WebhookAck:
        """Verify, deduplicate and apply one payment event.

        Only a bad signature raises. Unknown references, missing transaction
        data and replays are acknowledged so the provider stops retrying.
        """
        secret = ctx.tenant.policy.payment_events_secret or settings.payment_events_secret
        if secret:
            try:
                verify_signature(payload, secret)
            except SignatureException:
                WEBHOOK_EVENTS_TOTAL.labels(provider=PROVIDER, outcome="invalid_signature").inc()
                logger.warning("Rejected %s event with bad signature for tenant %s", PROVIDER, ctx.tenant.slug)
                raise

        event_type = str(payload.get("event") or "unknown")
        log = await self.webhooks_repository.lock_log(
            tenant_id=ctx.tenant.id,
            provider=PROVIDER,
            event_type=event_type,
            idempotency_key=idempotency_key_for(payload, request_id),
            payload=payload,
        )
        if log.processed:
            WEBHOOK_EVENTS_TOTAL.labels(provider=PROVIDER, outcome="duplicate").inc()
            return WebhookAck(ok=True, message="Event already processed")

        now = utc_now()
        transaction = (payload.get("data") or {}).get("transaction")
        if not transaction:
            await self.webhooks_repository.mark_processed(log, now)
            WEBHOOK_EVENTS_TOTAL.labels(provider=PROVIDER, outcome="ignored").inc()
            return WebhookAck(ok=True, message="No transaction data")

        reference = str(transaction.get("reference") or "")
        payment = await self.billing_repository.get_payment_by_reference_for_update(ctx.tenant.id, reference)
        if payment is None:
            logger.warning("Payment with reference %r not found for tenant %s", reference, ctx.tenant.slug)
            await self.webhooks_repository.mark_processed(log, now)
            WEBHOOK_EVENTS_TOTAL.labels(provider=PROVIDER, outcome="unknown_reference").inc()
            return WebhookAck(ok=True, message="Payment not found")

        status = map_provider_status(transaction.get("status"))
        payment.status = status
        payment.provider_payment_id = str(transaction["id"]) if transaction.get("id") is not None else None
        payment.raw_payload = payload
        if status == PaymentStatusEnum.APPROVED and payment.paid_at is None:
            payment.paid_at = now
        await self.billing_repository.save_payment(payment)

        if payment.lesson_id is not None:
            await self._apply_to_lesson(ctx, payment, status)
        elif payment.pack_id is not None:
            await self._apply_to_pack(ctx, payment, status)

        await self.webhooks_repository.mark_processed(log, now)
        WEBHOOK_EVENTS_TOTAL.labels(provider=PROVIDER, outcome=str(status)).inc()
        logger.info("Payment %s (%s) is now %s", payment.id, reference, status)
        return WebhookAck(ok=True, message="Payment updated")

    async def _apply_to_lesson(self, ctx: RequestContext, payment: Payment, status: PaymentStatusEnum) -> None:
        lesson = await self.lessons_repository.get_lesson_for_update(payment.lesson_id)
        if lesson is None or lesson.tenant_id != ctx.tenant.id:
            logger.warning("Lesson %s of payment %s not found", payment.lesson_id, payment.id)
            return

        if status != PaymentStatusEnum.APPROVED:
            await self.lessons_repository.update_lesson(lesson, payment_status=status)
            return

        if lesson.status not in (LessonStatusEnum.RESERVED, LessonStatusEnum.CONFIRMED):
            # Paid after the reservation lapsed; record it and leave the slot alone.
            logger.warning("Payment %s approved for %s lesson %s", payment.id, lesson.status, lesson.id)
            await self.lessons_repository.update_lesson(lesson, payment_status=status)
            return

        await self.lessons_repository.update_lesson(
            lesson,
            status=LessonStatusEnum.CONFIRMED,
            payment_status=PaymentStatusEnum.APPROVED,
        )
        await self.job_queue.lesson_confirmed(ctx.tenant.id, lesson.id, f"payment-{payment.id}")

    async def _apply_to_pack(self, ctx: RequestContext, payment: Payment, status: PaymentStatusEnum) -> None:
        pack = await self.billing_repository.get_pack_for_update(ctx.tenant.id, payment.pack_id)
        if pack is None:
            logger.warning("Pack %s of payment %s not found", payment.pack_id, payment.id)
            return
        if status != PaymentStatusEnum.APPROVED:
            return

        pack.is_active = True
        if pack.expires_at is None:
            pack.expires_at = utc_now() + timedelta(days=pack.lesson_type.pack_validity_days)
        await self.billing_repository.save_pack(pack)
        logger.info("Pack %s activated until %s", pack.id, pack.expires_at)


async def get_payment_webhook_service(session: AsyncSession = Depends(get_db_session)) -> PaymentWebhookService:
    """Dependency provider for payment webhook service."""
    return PaymentWebhookService(
        WebhooksRepository(session),
        BillingRepository(session),
        LessonsRepository(session),
        JobQueue(JobsRepository(session)),
    )
