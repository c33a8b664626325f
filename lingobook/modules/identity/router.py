"""Identity API router."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from lingobook.modules.identity.schemas import AccessToken, LoginRequest
from lingobook.modules.identity.service import IdentityService, get_identity_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=AccessToken)
async def login(
    payload: LoginRequest,
    service: IdentityService = Depends(get_identity_service),
) -> AccessToken:
    """Sign in by email/password and return an access token."""
    return await service.login(payload)
