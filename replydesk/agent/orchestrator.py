"""Batch orchestrator — runs the reply pipeline over a mailbox snapshot."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from replydesk.agent.pipeline import MessageOutcome, Outcome, ReplyPipeline
from replydesk.errors import BatchInProgress, InvalidBatch
from replydesk.mcp.types import Message

logger = logging.getLogger(__name__)


@dataclass
class OrchestrationContext:
    """Shared state between the poller, the orchestrator and their callers.

    ``last_snapshot`` is replaced wholesale on every poll, never merged, and
    loses the messages a batch run has replied to.
    Setting ``cancel_token`` stops the poller after its in-flight poll.
    """

    running: bool = False
    last_snapshot: list[Message] = field(default_factory=list)
    cancel_token: asyncio.Event = field(default_factory=asyncio.Event)


@dataclass(frozen=True)
class BatchResult:
    """Aggregate outcome of one orchestration run.

    Counts are derived from ``outcomes`` so sent + skipped always equals the
    number of messages processed.  Failures count as skipped.
    """

    outcomes: tuple[MessageOutcome, ...] = ()

    @property
    def sent_count(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome is Outcome.SENT)

    @property
    def skipped_count(self) -> int:
        return len(self.outcomes) - self.sent_count

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.outcome is Outcome.FAILED)

    @property
    def mark_failures(self) -> int:
        return sum(1 for o in self.outcomes if o.mark_failed)

    def summary(self) -> str:
        if not self.sent_count:
            return "Auto reply complete: no messages qualified for auto-send."
        return (
            f"Auto reply complete: {self.sent_count} sent, "
            f"{self.skipped_count} held for review."
        )


class BatchOrchestrator:
    """Processes messages one at a time, in order, isolating per-item failures.

    At most one run is active per context; a second request while one is in
    flight raises BatchInProgress rather than queueing.

    Usage::

        orchestrator = BatchOrchestrator(pipeline, context)
        result = await orchestrator.run(messages)
        print(result.summary())
    """

    def __init__(self, pipeline: ReplyPipeline, context: OrchestrationContext) -> None:
        self._pipeline = pipeline
        self._context = context

    @property
    def context(self) -> OrchestrationContext:
        return self._context

    @property
    def running(self) -> bool:
        return self._context.running

    async def run_snapshot(self) -> BatchResult:
        """Run over the last mailbox snapshot the poller recorded."""
        return await self.run(list(self._context.last_snapshot))

    async def run(self, messages: Sequence[Message] | None) -> BatchResult:
        if self._context.running:
            raise BatchInProgress("An auto-reply run is already in progress")

        try:
            batch = _validate(messages)
        except InvalidBatch as exc:
            logger.warning("Ignoring auto-reply request: %s", exc)
            return BatchResult()

        if not batch:
            logger.info("Auto-reply: nothing to do")
            return BatchResult()

        self._context.running = True
        try:
            logger.info("Auto-reply: processing %d message(s)", len(batch))
            outcomes = []
            for message in batch:
                outcomes.append(await self._process(message))
        finally:
            self._context.running = False

        result = BatchResult(tuple(outcomes))
        self._forget_sent(result)
        logger.info(
            "Auto-reply finished: %d sent, %d skipped (%d failed, %d not marked)",
            result.sent_count,
            result.skipped_count,
            result.failed_count,
            result.mark_failures,
        )
        return result

    def _forget_sent(self, result: BatchResult) -> None:
        """Drop replied messages from the snapshot so a later run cannot resend them."""
        sent = {o.message_id for o in result.outcomes if o.outcome is Outcome.SENT}
        if sent:
            self._context.last_snapshot = [
                m for m in self._context.last_snapshot if m.id not in sent
            ]

    async def _process(self, message: Message) -> MessageOutcome:
        try:
            return await self._pipeline.auto_reply(message)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Unexpected failure on message %s: %s", message.id, exc, exc_info=True
            )
            return MessageOutcome(message.id, Outcome.FAILED, str(exc))


def _validate(messages: Sequence[Message] | None) -> list[Message]:
    if messages is None:
        raise InvalidBatch("message list is missing")
    if isinstance(messages, (str, bytes)):
        raise InvalidBatch("message list must be a sequence of messages")
    batch = list(messages)
    for item in batch:
        if not isinstance(item, Message):
            raise InvalidBatch(f"unexpected batch item {type(item).__name__}")
    return batch
