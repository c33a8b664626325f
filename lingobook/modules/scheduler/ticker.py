"""Single-clock driver for periodic sweeps."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from lingobook.shared.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepSchedule:
    name: str
    interval: timedelta
    func: Callable[[], Awaitable[int]]
    last_started_at: datetime | None = field(default=None)

    def is_due(self, now: datetime) -> bool:
        return self.last_started_at is None or now - self.last_started_at >= self.interval


class SweepTicker:
    """Run each schedule whose interval elapsed since its last start.

    A failing sweep is logged and does not stop the others; it runs again at
    its next interval.
    """

    def __init__(self, schedules: list[SweepSchedule], now_provider=utc_now) -> None:
        self.schedules = schedules
        self.now_provider = now_provider

    async def tick(self) -> dict[str, int | None]:
        results: dict[str, int | None] = {}
        for schedule in self.schedules:
            now = self.now_provider()
            if not schedule.is_due(now):
                continue
            schedule.last_started_at = now
            try:
                results[schedule.name] = await schedule.func()
            except Exception:
                logger.exception("Sweep %s failed", schedule.name)
                results[schedule.name] = None
        return results
