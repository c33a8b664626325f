"""Typed request context threaded through every tenant-scoped operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from lingobook.core.enums import RoleEnum
from lingobook.modules.tenants.models import Tenant


@dataclass(frozen=True, slots=True)
class TenantPolicy:
    require_payment_to_confirm: bool = True
    reschedule_min_hours: int = 24
    cancel_min_hours: int = 24
    no_show_consume_credit: bool = True
    payment_public_key: str | None = None
    payment_events_secret: str | None = None


@dataclass(frozen=True, slots=True)
class TenantDescriptor:
    id: UUID
    slug: str
    name: str
    timezone: str
    currency: str
    policy: TenantPolicy = field(default_factory=TenantPolicy)

    @classmethod
    def from_model(cls, tenant: Tenant) -> TenantDescriptor:
        tenant_settings = tenant.settings
        if tenant_settings is None:
            policy = TenantPolicy()
        else:
            policy = TenantPolicy(
                require_payment_to_confirm=tenant_settings.require_payment_to_confirm,
                reschedule_min_hours=tenant_settings.reschedule_min_hours,
                cancel_min_hours=tenant_settings.cancel_min_hours,
                no_show_consume_credit=tenant_settings.no_show_consume_credit,
                payment_public_key=tenant_settings.payment_public_key,
                payment_events_secret=tenant_settings.payment_events_secret,
            )
        return cls(
            id=tenant.id,
            slug=tenant.slug,
            name=tenant.name,
            timezone=tenant.timezone,
            currency=tenant.currency,
            policy=policy,
        )


@dataclass(frozen=True, slots=True)
class Principal:
    user_id: UUID
    role: RoleEnum
    tenant_id: UUID | None
    email: str | None = None

    @property
    def is_tenant_admin(self) -> bool:
        return self.role in (RoleEnum.TENANT_ADMIN, RoleEnum.SUPER_ADMIN)


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Tenant plus the authenticated principal (absent on public endpoints)."""

    tenant: TenantDescriptor
    principal: Principal | None = None
    request_id: str | None = None
