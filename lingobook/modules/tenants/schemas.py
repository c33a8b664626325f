"""Tenant schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class TenantInfoRead(BaseModel):
    """Public tenant descriptor."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slug: str
    name: str
    timezone: str
    currency: str


class TenantConfigUpdate(BaseModel):
    """Partial update of tenant booking configuration."""

    require_payment_to_confirm: bool | None = None
    reschedule_min_hours: int | None = Field(default=None, ge=0, le=720)
    cancel_min_hours: int | None = Field(default=None, ge=0, le=720)
    no_show_consume_credit: bool | None = None
    payment_public_key: str | None = Field(default=None, max_length=255)
    payment_events_secret: str | None = Field(default=None, max_length=255)
    calendar_refresh_token: str | None = Field(default=None, max_length=512)
    calendar_id: str | None = Field(default=None, max_length=255)
    confirmation_template: str | None = None
    reminder_24h_template: str | None = None
    reminder_1h_template: str | None = None
    pending_payment_template: str | None = None
    follow_up_template: str | None = None
    welcome_template: str | None = None


class TenantConfigRead(BaseModel):
    """Tenant booking configuration (secrets are never echoed)."""

    model_config = ConfigDict(from_attributes=True)

    require_payment_to_confirm: bool
    reschedule_min_hours: int
    cancel_min_hours: int
    no_show_consume_credit: bool
    payment_public_key: str | None
    calendar_id: str | None
    confirmation_template: str | None
    reminder_24h_template: str | None
    reminder_1h_template: str | None
    pending_payment_template: str | None
    follow_up_template: str | None
    welcome_template: str | None
