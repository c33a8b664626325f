"""Catalog schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict


class LessonTypeRead(BaseModel):
    """Lesson type response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    duration_min: int
    price_amount: int
    currency: str
    is_pack_type: bool
    pack_size: int | None
