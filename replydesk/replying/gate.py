"""Send gate — the single authority on unattended sending."""

from enum import Enum

from replydesk.drafting.types import Draft


class GateDecision(str, Enum):
    SEND = "send"
    HOLD = "hold"


def evaluate(draft: Draft) -> GateDecision:
    """SEND only when the model recommends it and the reply has content."""
    if draft.auto_send is True and draft.reply.strip():
        return GateDecision.SEND
    return GateDecision.HOLD
