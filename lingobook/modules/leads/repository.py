"""Lead repository layer."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.enums import LeadStatusEnum
from lingobook.modules.leads.models import Lead


class LeadsRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_lead(
        self,
        tenant_id: UUID,
        name: str,
        phone: str,
        email: str | None,
        objective: str | None,
    ) -> Lead:
        lead = Lead(
            tenant_id=tenant_id,
            name=name,
            phone=phone,
            email=email.lower() if email else None,
            objective=objective,
            status=LeadStatusEnum.NEW,
        )
        self.session.add(lead)
        await self.session.flush()
        return lead
