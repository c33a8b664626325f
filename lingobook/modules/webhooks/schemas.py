"""Webhook schemas."""

from __future__ import annotations

from pydantic import BaseModel


class WebhookAck(BaseModel):
    """Acknowledgement returned to the payment provider."""

    ok: bool
    message: str
