"""Mailbox poller — refreshes the shared snapshot on a fixed interval."""

import asyncio
import logging
from typing import Protocol

from replydesk.agent.orchestrator import OrchestrationContext
from replydesk.mcp.types import Message

logger = logging.getLogger(__name__)


class InboxSource(Protocol):
    async def list_inbox(self, max_results: int = 20) -> list[Message]:
        ...


class MailboxPoller:
    """Polls the inbox and replaces ``context.last_snapshot`` on every cycle.

    Stops when ``context.cancel_token`` is set.  A poll already in flight is
    allowed to finish; the sleep between polls wakes immediately so no further
    poll is started.  A failed poll is logged and the next one runs on schedule.
    """

    def __init__(
        self,
        inbox: InboxSource,
        context: OrchestrationContext,
        poll_interval: float = 60,
        page_size: int = 20,
    ) -> None:
        self._inbox = inbox
        self._context = context
        self._poll_interval = poll_interval
        self._page_size = page_size

    def stop(self) -> None:
        """Release the cancellation token; the current poll still completes."""
        logger.info("Poller stop requested")
        self._context.cancel_token.set()

    async def run(self) -> None:
        """Poll until cancelled."""
        logger.info("Polling inbox every %ss", self._poll_interval)
        while not self._context.cancel_token.is_set():
            await self.poll_once()
            await self._interruptible_sleep(self._poll_interval)
        logger.info("Poller stopped")

    async def poll_once(self) -> list[Message] | None:
        """Fetch one snapshot.  Returns None if the fetch failed."""
        try:
            messages = await self._inbox.list_inbox(max_results=self._page_size)
        except Exception as exc:  # noqa: BLE001
            logger.error("Mailbox poll failed: %s", exc, exc_info=True)
            return None

        self._context.last_snapshot = list(messages)
        logger.debug("Poll: %d message(s) in snapshot", len(messages))
        return messages

    async def _interruptible_sleep(self, seconds: float) -> None:
        """Sleep for `seconds` but wake immediately on cancellation."""
        try:
            await asyncio.wait_for(self._context.cancel_token.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass
