"""Shared utility functions."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def generate_reference(prefix: str) -> str:
    """Build a short upper-case payment reference like ``TP-1A2B3C4D``."""
    return f"{prefix}-{secrets.token_hex(4).upper()}"


def fill_template(template: str, variables: dict[str, str]) -> str:
    """Replace ``{{key}}`` placeholders with values; unknown placeholders stay as-is."""
    result = template
    for key, value in variables.items():
        result = result.replace("{{" + key + "}}", value)
    return result
