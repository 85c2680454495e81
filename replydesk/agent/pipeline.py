"""Per-message reply pipeline: draft → gate → send."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from replydesk.drafting.requester import DraftRequester
from replydesk.drafting.types import Draft
from replydesk.errors import DraftUnavailable, SendFailed
from replydesk.mcp.types import Message
from replydesk.replying.gate import GateDecision, evaluate
from replydesk.replying.sender import ReplySender, SendReceipt

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class MessageOutcome:
    """Tagged result of running one message through the pipeline."""

    message_id: str
    outcome: Outcome
    detail: str = ""
    mark_failed: bool = False


class ReplyPipeline:
    """Wires DraftRequester, the send gate and ReplySender together.

    ``auto_reply`` is the gated, unattended path used by the orchestrator.
    ``draft`` and ``send`` are the manual path: a human reviews the draft and
    decides to send, so the gate is not consulted.
    """

    def __init__(self, requester: DraftRequester, sender: ReplySender) -> None:
        self._requester = requester
        self._sender = sender

    async def draft(self, message: Message) -> Draft:
        return await self._requester.request(message)

    async def send(self, message: Message, body: str, subject: str | None = None) -> SendReceipt:
        return await self._sender.send(message, body, subject)

    async def auto_reply(self, message: Message) -> MessageOutcome:
        """Run one message end to end.  Never raises for item-level failures."""
        try:
            draft = await self._requester.request(message)
        except DraftUnavailable as exc:
            logger.error("Draft unavailable for message %s: %s", message.id, exc)
            return MessageOutcome(message.id, Outcome.FAILED, str(exc))

        if evaluate(draft) is GateDecision.HOLD:
            logger.info("Holding message %s for review: %s", message.id, draft.reasoning)
            return MessageOutcome(message.id, Outcome.SKIPPED, draft.reasoning)

        try:
            receipt = await self._sender.send(message, draft.reply, draft.subject)
        except SendFailed as exc:
            logger.error("Auto-send failed for message %s: %s", message.id, exc)
            return MessageOutcome(message.id, Outcome.FAILED, str(exc))

        if receipt.mark_error is not None:
            logger.info(
                "Auto-sent reply to %s for message %s (not marked as replied)",
                receipt.to,
                message.id,
            )
            return MessageOutcome(
                message.id, Outcome.SENT, str(receipt.mark_error), mark_failed=True
            )
        logger.info("Auto-sent reply to %s for message %s", receipt.to, message.id)
        return MessageOutcome(message.id, Outcome.SENT)
