"""Webhook repository layer."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.modules.webhooks.models import WebhookLog


class WebhooksRepository:
    """DB access for webhook logs."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_log(
        self,
        tenant_id: UUID,
        provider: str,
        event_type: str,
        idempotency_key: str,
        payload: dict[str, Any],
    ) -> WebhookLog:
        """Insert the log row if new, then lock it; concurrent deliveries of one event queue up here."""
        insert_stmt = (
            insert(WebhookLog)
            .values(
                tenant_id=tenant_id,
                provider=provider,
                event_type=event_type,
                idempotency_key=idempotency_key,
                payload=payload,
                processed=False,
            )
            .on_conflict_do_nothing(index_elements=[WebhookLog.idempotency_key])
        )
        await self.session.execute(insert_stmt)

        stmt = (
            select(WebhookLog)
            .where(WebhookLog.idempotency_key == idempotency_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.session.scalar(stmt)

    async def mark_processed(self, log: WebhookLog, processed_at: datetime) -> WebhookLog:
        log.processed = True
        log.processed_at = processed_at
        await self.session.flush()
        return log
