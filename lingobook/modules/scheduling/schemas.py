"""Scheduling schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class SlotRead(BaseModel):
    """Bookable slot rendered with an explicit UTC offset."""

    start: str
    end: str
    available: bool


class AvailabilityRuleCreate(BaseModel):
    weekday: int = Field(ge=0, le=6)
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)
    slot_minutes: int = Field(default=60, ge=15, le=180)

    @model_validator(mode="after")
    def validate_window(self) -> "AvailabilityRuleCreate":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self


class AvailabilityRuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    weekday: int
    start_time: str
    end_time: str
    slot_minutes: int
    is_active: bool


class BlockedTimeCreate(BaseModel):
    starts_at: datetime
    ends_at: datetime
    reason: str | None = Field(default=None, max_length=255)


class BlockedTimeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    starts_at: datetime
    ends_at: datetime
    reason: str | None
