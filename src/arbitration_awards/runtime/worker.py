from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass

from arbitration_awards.config import get_settings
from arbitration_awards.observability.logging import configure_logging, get_logger
from arbitration_awards.review.escalation import EscalationAssignor
from arbitration_awards.services import build_services


@dataclass(slots=True)
class EscalationSweepWorker:
    """Periodically hands PENDING escalations to a newly available senior reviewer."""

    assignor: EscalationAssignor
    poll_interval_seconds: float = 60.0

    async def run_once(self) -> int:
        logger = get_logger("escalation_sweep_worker")
        assigned = await asyncio.to_thread(self.assignor.assign_pending)
        logger.info(
            "escalation_sweep_cycle",
            assigned_count=len(assigned),
            escalation_ids=[escalation.id for escalation in assigned],
        )
        return len(assigned)

    async def run_forever(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.poll_interval_seconds)


def _poll_interval_from_env() -> float:
    raw_interval = os.environ.get("ESCALATION_SWEEP_INTERVAL_SECONDS", "60").strip()
    try:
        interval = float(raw_interval)
    except ValueError:
        return 60.0

    if interval <= 0:
        return 60.0
    return interval


def _default_worker() -> EscalationSweepWorker:
    settings = get_settings()
    configure_logging(settings.log_level)
    return EscalationSweepWorker(
        assignor=build_services(settings).assignor,
        poll_interval_seconds=_poll_interval_from_env(),
    )


async def run_worker() -> None:
    await _default_worker().run_forever()


if __name__ == "__main__":
    asyncio.run(run_worker())
