"""APScheduler setup for unattended auto-reply runs."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from replydesk.errors import BatchInProgress

if TYPE_CHECKING:
    from replydesk.agent.orchestrator import BatchOrchestrator

logger = logging.getLogger(__name__)


async def run_scheduled_batch(orchestrator: BatchOrchestrator) -> None:
    """Run one batch over the latest snapshot; overlapping runs are skipped."""
    try:
        result = await orchestrator.run_snapshot()
    except BatchInProgress:
        logger.info("Scheduled auto-reply skipped: a run is already in progress")
        return
    logger.info("Scheduled %s", result.summary().lower())


def create_auto_reply_scheduler(
    orchestrator: BatchOrchestrator,
    interval_minutes: int,
) -> AsyncIOScheduler:
    """Return an AsyncIOScheduler that runs the orchestrator every ``interval_minutes``.

    The caller is responsible for calling scheduler.start() and scheduler.shutdown().
    """
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        run_scheduled_batch,
        "interval",
        args=[orchestrator],
        minutes=interval_minutes,
        max_instances=1,
        coalesce=True,
        id="auto_reply",
    )
    logger.info("Auto-reply scheduled every %d minute(s)", interval_minutes)
    return scheduler
