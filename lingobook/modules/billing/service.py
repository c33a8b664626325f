"""Billing business logic layer."""

from __future__ import annotations

import logging
from urllib.parse import urlencode
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.config import get_settings
from lingobook.core.database import get_db_session
from lingobook.core.enums import PaymentStatusEnum
from lingobook.modules.billing.models import Pack, Payment
from lingobook.modules.billing.repository import BillingRepository
from lingobook.modules.billing.schemas import CheckoutRead, PackRead
from lingobook.modules.catalog.repository import CatalogRepository
from lingobook.modules.identity.repository import IdentityRepository
from lingobook.modules.identity.service import require_student
from lingobook.modules.lessons.repository import LessonsRepository
from lingobook.modules.tenants.context import RequestContext
from lingobook.shared.exceptions import AuthzException, NotFoundException, PolicyViolationException
from lingobook.shared.utils import generate_reference, utc_now

settings = get_settings()
logger = logging.getLogger(__name__)

LESSON_REFERENCE_PREFIX = "TP"
PACK_REFERENCE_PREFIX = "PK"


def build_checkout_url(ctx: RequestContext, amount: int, currency: str, reference: str) -> str:
    """Hosted checkout link; the provider expects the amount in cents."""
    public_key = ctx.tenant.policy.payment_public_key or settings.payment_public_key or ""
    query = urlencode(
        {
            "public-key": public_key,
            "currency": currency,
            "amount-in-cents": amount * 100,
            "reference": reference,
            "redirect-url": f"{settings.web_url.rstrip('/')}/t/{ctx.tenant.slug}/payment/result",
        },
    )
    return f"{settings.payment_checkout_base_url}?{query}"


async def create_lesson_payment(
    repository: BillingRepository,
    ctx: RequestContext,
    lesson_id: UUID,
    amount: int,
    currency: str,
) -> Payment:
    """Pending payment with a fresh ``TP-`` reference for a lesson."""
    reference = generate_reference(LESSON_REFERENCE_PREFIX)
    return await repository.create_payment(
        tenant_id=ctx.tenant.id,
        lesson_id=lesson_id,
        amount=amount,
        currency=currency,
        provider=settings.payment_provider,
        provider_reference=reference,
        checkout_url=build_checkout_url(ctx, amount, currency, reference),
    )


def pack_to_read(pack: Pack) -> PackRead:
    return PackRead(
        id=pack.id,
        lesson_type_id=pack.lesson_type_id,
        lesson_type_name=pack.lesson_type.name,
        total_credits=pack.total_credits,
        used_credits=pack.used_credits,
        remaining_credits=pack.remaining_credits,
        expires_at=pack.expires_at,
        is_active=pack.is_active,
        expired=pack.is_expired(utc_now()),
        created_at=pack.created_at,
    )


class BillingService:
    """Checkout links, pack purchases and payment listings."""

    def __init__(
        self,
        repository: BillingRepository,
        lessons_repository: LessonsRepository,
        catalog_repository: CatalogRepository,
        identity_repository: IdentityRepository,
    ) -> None:
        self.repository = repository
        self.lessons_repository = lessons_repository
        self.catalog_repository = catalog_repository
        self.identity_repository = identity_repository

    async def start_lesson_checkout(self, ctx: RequestContext, lesson_id: UUID) -> CheckoutRead:
        """Reuse the lesson's single pending payment (or create it) and return its checkout link."""
        student = await require_student(self.identity_repository, ctx)
        lesson = await self.lessons_repository.get_lesson(ctx.tenant.id, lesson_id)
        if lesson is None or lesson.student_id != student.id:
            raise NotFoundException("Lesson not found")
        if lesson.payment_status != PaymentStatusEnum.PENDING:
            raise PolicyViolationException("Lesson does not require payment")

        lesson_type = lesson.lesson_type
        payment = await self.repository.get_pending_lesson_payment(ctx.tenant.id, lesson.id)
        if payment is None:
            payment = await create_lesson_payment(
                self.repository,
                ctx,
                lesson.id,
                lesson_type.price_amount,
                lesson_type.currency,
            )
        else:
            payment.checkout_url = build_checkout_url(
                ctx,
                payment.amount,
                payment.currency,
                payment.provider_reference,
            )
            await self.repository.save_payment(payment)

        return CheckoutRead(
            checkout_url=payment.checkout_url,
            reference=payment.provider_reference,
            amount=payment.amount,
            currency=payment.currency,
        )

    async def purchase_pack(self, ctx: RequestContext, lesson_type_id: UUID) -> CheckoutRead:
        """Create an inactive pack plus its pending payment; the payment webhook activates it."""
        student = await require_student(self.identity_repository, ctx)
        lesson_type = await self.catalog_repository.get_lesson_type(ctx.tenant.id, lesson_type_id)
        if (
            lesson_type is None
            or not lesson_type.is_active
            or not lesson_type.is_pack_type
            or not lesson_type.pack_size
        ):
            raise NotFoundException("Pack type not found")

        pack = await self.repository.create_pack(
            tenant_id=ctx.tenant.id,
            student_id=student.id,
            lesson_type_id=lesson_type.id,
            total_credits=lesson_type.pack_size,
        )
        reference = generate_reference(PACK_REFERENCE_PREFIX)
        checkout_url = build_checkout_url(ctx, lesson_type.price_amount, lesson_type.currency, reference)
        await self.repository.create_payment(
            tenant_id=ctx.tenant.id,
            pack_id=pack.id,
            amount=lesson_type.price_amount,
            currency=lesson_type.currency,
            provider=settings.payment_provider,
            provider_reference=reference,
            checkout_url=checkout_url,
        )
        logger.info("Pack %s created for student %s with reference %s", pack.id, student.id, reference)
        return CheckoutRead(
            checkout_url=checkout_url,
            reference=reference,
            amount=lesson_type.price_amount,
            currency=lesson_type.currency,
        )

    async def list_my_packs(self, ctx: RequestContext) -> list[Pack]:
        student = await require_student(self.identity_repository, ctx)
        return await self.repository.list_student_packs(ctx.tenant.id, student.id)

    async def list_payments(self, ctx: RequestContext, limit: int, offset: int) -> tuple[list[Payment], int]:
        """List tenant payments, newest first (tenant admin)."""
        if ctx.principal is None or not ctx.principal.is_tenant_admin:
            raise AuthzException("Only tenant admins can list payments")
        return await self.repository.list_payments(ctx.tenant.id, limit=limit, offset=offset)


async def get_billing_service(session: AsyncSession = Depends(get_db_session)) -> BillingService:
    """Dependency provider for billing service."""
    return BillingService(
        BillingRepository(session),
        LessonsRepository(session),
        CatalogRepository(session),
        IdentityRepository(session),
    )
