"""Types for the reply drafting pipeline."""

from dataclasses import dataclass


@dataclass(frozen=True)
class DraftRequest:
    """Normalized input handed to the drafting service."""

    subject: str
    sender: str
    recipient: str
    body: str


@dataclass(frozen=True)
class Draft:
    """A proposed reply for one message.

    ``auto_send`` is the model's recommendation only; replydesk.replying.gate
    decides whether the draft actually goes out unattended.
    """

    reply: str
    auto_send: bool
    reasoning: str
    subject: str
