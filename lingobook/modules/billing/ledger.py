"""Pack credit ledger.

Every change to ``Pack.used_credits`` is paired with an append-only
``PackLedger`` row in the same session, so for any pack
``used_credits == -sum(delta)`` holds after commit.
"""

from __future__ import annotations

import logging
from uuid import UUID

from lingobook.core.enums import LedgerReasonEnum
from lingobook.modules.billing.models import Pack, PackLedger
from lingobook.modules.billing.repository import BillingRepository
from lingobook.shared.exceptions import PolicyViolationException

logger = logging.getLogger(__name__)


class CreditLedger:
    """Consume, refund and forfeit pack credits."""

    def __init__(self, repository: BillingRepository) -> None:
        self.repository = repository

    async def consume(self, pack: Pack, lesson_id: UUID) -> PackLedger:
        if pack.remaining_credits <= 0:
            raise PolicyViolationException("Pack has no remaining credits")

        pack.used_credits += 1
        await self.repository.save_pack(pack)
        return await self.repository.add_ledger_entry(pack, lesson_id, -1, LedgerReasonEnum.BOOKING)

    async def refund(self, pack: Pack, lesson_id: UUID) -> PackLedger:
        if pack.used_credits <= 0:
            raise PolicyViolationException("Pack has no used credits to refund")

        pack.used_credits -= 1
        await self.repository.save_pack(pack)
        return await self.repository.add_ledger_entry(pack, lesson_id, 1, LedgerReasonEnum.CANCEL_REFUND)

    async def forfeit(self, pack: Pack, lesson_id: UUID) -> PackLedger | None:
        """Record that a no-show kept its credit consumed; written at most once per lesson."""
        if await self.repository.has_ledger_entry(pack.id, lesson_id, LedgerReasonEnum.NO_SHOW_FORFEIT):
            return None
        logger.info("Pack %s credit forfeited by no-show of lesson %s", pack.id, lesson_id)
        return await self.repository.add_ledger_entry(pack, lesson_id, 0, LedgerReasonEnum.NO_SHOW_FORFEIT)

    async def balance_is_consistent(self, pack: Pack) -> bool:
        return pack.used_credits == -(await self.repository.sum_ledger_delta(pack.id))
