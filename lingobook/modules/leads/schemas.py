"""Lead schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from lingobook.core.enums import LeadStatusEnum


class LeadCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    phone: str = Field(min_length=7, max_length=32)
    email: EmailStr | None = None
    objective: str | None = Field(default=None, max_length=2000)


class LeadRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    phone: str
    email: str | None
    objective: str | None
    status: LeadStatusEnum
    created_at: datetime
