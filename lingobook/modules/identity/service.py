"""Identity business logic layer."""

from __future__ import annotations

from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.database import get_db_session
from lingobook.core.enums import RoleEnum
from lingobook.core.security import create_access_token, decode_token, oauth2_scheme, verify_password
from lingobook.modules.identity.models import Student
from lingobook.modules.identity.repository import IdentityRepository
from lingobook.modules.identity.schemas import AccessToken, LoginRequest
from lingobook.modules.tenants.context import Principal, RequestContext, TenantDescriptor
from lingobook.modules.tenants.service import get_tenant_descriptor
from lingobook.shared.exceptions import AuthenticationException, AuthzException, NotFoundException


class IdentityService:
    """Identity domain service."""

    def __init__(self, repository: IdentityRepository) -> None:
        self.repository = repository

    async def login(self, payload: LoginRequest) -> AccessToken:
        """Authenticate user and issue JWT access token."""
        user = await self.repository.get_user_by_email(payload.email)
        if user is None or not verify_password(payload.password, user.password_hash):
            raise AuthenticationException("Invalid credentials")
        if not user.is_active:
            raise AuthenticationException("User is inactive")

        access_token = create_access_token(
            subject=str(user.id),
            role=str(user.role),
            tenant_id=str(user.tenant_id) if user.tenant_id is not None else None,
            email=user.email,
        )
        return AccessToken(access_token=access_token)

    async def get_principal_from_access_token(self, token: str) -> Principal:
        """Resolve the authenticated principal from an access token."""
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise AuthenticationException("Invalid access token")

        subject = payload.get("sub")
        if not subject:
            raise AuthenticationException("Token subject is missing")

        user = await self.repository.get_user_by_id(UUID(subject))
        if user is None:
            raise AuthenticationException("User not found")
        if not user.is_active:
            raise AuthenticationException("User is inactive")

        return Principal(user_id=user.id, role=user.role, tenant_id=user.tenant_id, email=user.email)


def ensure_tenant_access(principal: Principal, tenant: TenantDescriptor) -> None:
    """Super admins reach every tenant; everyone else only their own."""
    if principal.role == RoleEnum.SUPER_ADMIN:
        return
    if principal.tenant_id != tenant.id:
        raise AuthzException("You do not have access to this tenant")


async def require_student(repository: IdentityRepository, ctx: RequestContext) -> Student:
    """Student record of the authenticated user inside the request tenant."""
    if ctx.principal is None:
        raise AuthenticationException("Authentication required")
    student = await repository.get_student_for_user(ctx.tenant.id, ctx.principal.user_id)
    if student is None:
        raise NotFoundException("Student profile not found")
    return student


async def get_identity_service(session: AsyncSession = Depends(get_db_session)) -> IdentityService:
    """Dependency to provide identity service."""
    return IdentityService(IdentityRepository(session))


async def get_current_principal(
    token: str = Depends(oauth2_scheme),
    service: IdentityService = Depends(get_identity_service),
) -> Principal:
    """Resolve currently authenticated principal from bearer token."""
    return await service.get_principal_from_access_token(token)


async def get_public_context(
    request: Request,
    tenant: TenantDescriptor = Depends(get_tenant_descriptor),
) -> RequestContext:
    """Context for anonymous tenant endpoints."""
    return RequestContext(tenant=tenant, request_id=getattr(request.state, "request_id", None))


async def get_request_context(
    request: Request,
    tenant: TenantDescriptor = Depends(get_tenant_descriptor),
    principal: Principal = Depends(get_current_principal),
) -> RequestContext:
    """Context for authenticated tenant endpoints."""
    ensure_tenant_access(principal, tenant)
    return RequestContext(
        tenant=tenant,
        principal=principal,
        request_id=getattr(request.state, "request_id", None),
    )


async def get_admin_context(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """Context for tenant-admin endpoints."""
    if ctx.principal is None or not ctx.principal.is_tenant_admin:
        raise AuthzException("Operation not permitted for your role")
    return ctx
