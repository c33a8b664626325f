"""Lead capture business logic."""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lingobook.core.database import get_db_session
from lingobook.modules.jobs.contracts import LeadContact
from lingobook.modules.jobs.repository import JobsRepository
from lingobook.modules.jobs.service import JobQueue
from lingobook.modules.leads.models import Lead
from lingobook.modules.leads.repository import LeadsRepository
from lingobook.modules.leads.schemas import LeadCreate
from lingobook.modules.tenants.context import RequestContext

logger = logging.getLogger(__name__)


class LeadService:
    def __init__(self, repository: LeadsRepository, job_queue: JobQueue) -> None:
        self.repository = repository
        self.job_queue = job_queue

    async def create_lead(self, ctx: RequestContext, payload: LeadCreate) -> Lead:
        """Store the lead and queue its welcome message."""
        lead = await self.repository.create_lead(
            tenant_id=ctx.tenant.id,
            name=payload.name,
            phone=payload.phone,
            email=str(payload.email) if payload.email else None,
            objective=payload.objective,
        )
        await self.job_queue.lead_captured(
            ctx.tenant.id,
            lead.id,
            LeadContact(name=lead.name, phone=lead.phone, email=lead.email, objective=lead.objective),
        )
        logger.info("Lead %s captured for tenant %s", lead.id, ctx.tenant.slug)
        return lead


async def get_lead_service(session: AsyncSession = Depends(get_db_session)) -> LeadService:
    return LeadService(LeadsRepository(session), JobQueue(JobsRepository(session)))
