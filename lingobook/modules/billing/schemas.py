"""Billing schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from lingobook.core.enums import PaymentStatusEnum


class CheckoutRequest(BaseModel):
    lesson_id: UUID


class PackPurchaseRequest(BaseModel):
    lesson_type_id: UUID


class CheckoutRead(BaseModel):
    """Provider checkout link for a pending payment."""

    checkout_url: str
    reference: str
    amount: int
    currency: str


class PackRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lesson_type_id: UUID
    lesson_type_name: str
    total_credits: int
    used_credits: int
    remaining_credits: int
    expires_at: datetime | None
    is_active: bool
    expired: bool
    created_at: datetime


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    lesson_id: UUID | None
    pack_id: UUID | None
    amount: int
    currency: str
    provider: str
    provider_reference: str
    provider_payment_id: str | None
    status: PaymentStatusEnum
    checkout_url: str | None
    paid_at: datetime | None
    created_at: datetime
