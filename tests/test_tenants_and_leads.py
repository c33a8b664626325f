from __future__ import annotations

from types import SimpleNamespace
from typing import Any
from uuid import UUID, uuid4

import pytest

from lingobook.core.enums import LeadStatusEnum, RoleEnum
from lingobook.modules.identity.service import ensure_tenant_access
from lingobook.modules.jobs.contracts import SendWelcome
from lingobook.modules.jobs.service import JobQueue
from lingobook.modules.leads.schemas import LeadCreate
from lingobook.modules.leads.service import LeadService
from lingobook.modules.tenants.context import Principal, RequestContext, TenantDescriptor
from lingobook.modules.tenants.schemas import TenantConfigUpdate
from lingobook.modules.tenants.service import TenantService
from lingobook.shared.exceptions import AuthzException, NotFoundException


class FakeTenantsRepository:
    def __init__(self, tenants: list[SimpleNamespace]) -> None:
        self.tenants = tenants

    async def get_tenant_by_slug(self, slug: str) -> SimpleNamespace | None:
        return next((tenant for tenant in self.tenants if tenant.slug == slug), None)

    async def get_tenant_by_id(self, tenant_id: UUID) -> SimpleNamespace | None:
        return next((tenant for tenant in self.tenants if tenant.id == tenant_id), None)

    async def get_or_create_settings(self, tenant: SimpleNamespace) -> SimpleNamespace:
        if tenant.settings is None:
            tenant.settings = SimpleNamespace(reschedule_min_hours=24, cancel_min_hours=24)
        return tenant.settings

    async def update_settings(self, tenant_settings: SimpleNamespace, **changes) -> SimpleNamespace:
        for key, value in changes.items():
            setattr(tenant_settings, key, value)
        return tenant_settings


class FakeLeadsRepository:
    async def create_lead(self, **values) -> SimpleNamespace:
        return SimpleNamespace(id=uuid4(), status=LeadStatusEnum.NEW, **values)


class FakeJobsRepository:
    def __init__(self) -> None:
        self.enqueued: dict[str, Any] = {}

    async def enqueue(self, request: Any, job_key: str, **_: Any) -> bool:
        if job_key in self.enqueued:
            return False
        self.enqueued[job_key] = request
        return True


def make_tenant(slug: str = "demo", is_active: bool = True) -> SimpleNamespace:
    return SimpleNamespace(
        id=uuid4(),
        slug=slug,
        name="Demo",
        timezone="America/Bogota",
        currency="COP",
        is_active=is_active,
        settings=None,
    )


def context_for(tenant: SimpleNamespace, role: RoleEnum | None = None) -> RequestContext:
    descriptor = TenantDescriptor(
        id=tenant.id,
        slug=tenant.slug,
        name=tenant.name,
        timezone=tenant.timezone,
        currency=tenant.currency,
    )
    principal = Principal(user_id=uuid4(), role=role, tenant_id=tenant.id) if role else None
    return RequestContext(tenant=descriptor, principal=principal)


@pytest.mark.asyncio
async def test_inactive_tenant_resolves_as_not_found() -> None:
    service = TenantService(FakeTenantsRepository([make_tenant("closed", is_active=False)]))  # type: ignore[arg-type]

    with pytest.raises(NotFoundException):
        await service.resolve_active_tenant("closed")
    with pytest.raises(NotFoundException):
        await service.resolve_active_tenant("missing")


@pytest.mark.asyncio
async def test_tenant_admin_updates_only_sent_fields() -> None:
    tenant = make_tenant()
    service = TenantService(FakeTenantsRepository([tenant]))  # type: ignore[arg-type]

    updated = await service.update_config(
        context_for(tenant, RoleEnum.TENANT_ADMIN),
        TenantConfigUpdate(cancel_min_hours=12),
    )

    assert updated.cancel_min_hours == 12
    assert updated.reschedule_min_hours == 24


@pytest.mark.asyncio
async def test_student_cannot_update_tenant_config() -> None:
    tenant = make_tenant()
    service = TenantService(FakeTenantsRepository([tenant]))  # type: ignore[arg-type]

    with pytest.raises(AuthzException):
        await service.update_config(context_for(tenant, RoleEnum.STUDENT), TenantConfigUpdate(cancel_min_hours=1))


def test_principal_of_other_tenant_is_rejected() -> None:
    tenant = context_for(make_tenant()).tenant
    outsider = Principal(user_id=uuid4(), role=RoleEnum.TENANT_ADMIN, tenant_id=uuid4())
    super_admin = Principal(user_id=uuid4(), role=RoleEnum.SUPER_ADMIN, tenant_id=None)

    with pytest.raises(AuthzException):
        ensure_tenant_access(outsider, tenant)
    ensure_tenant_access(super_admin, tenant)


@pytest.mark.asyncio
async def test_lead_capture_enqueues_single_welcome_job() -> None:
    tenant = make_tenant()
    jobs = FakeJobsRepository()
    service = LeadService(FakeLeadsRepository(), JobQueue(jobs))  # type: ignore[arg-type]

    lead = await service.create_lead(
        context_for(tenant),
        LeadCreate(name="Luis", phone="+573001112233", email="luis@example.com", objective="Travel English"),
    )

    request = jobs.enqueued[f"welcome-{lead.id}"]
    assert isinstance(request, SendWelcome)
    assert request.lead.email == "luis@example.com"
    assert request.tenant_id == tenant.id
    assert lead.status == LeadStatusEnum.NEW
