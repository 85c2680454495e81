"""Reply sender — composes threading metadata, sends, then marks the original."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from replydesk.errors import MarkAsRepliedFailed, SendFailed
from replydesk.mcp.types import Message
from replydesk.replying.threading import build_reply_subject, extract_email_address

logger = logging.getLogger(__name__)


class Mailbox(Protocol):
    """The slice of GmailClient the sender depends on."""

    async def send_reply(
        self,
        *,
        to: str,
        subject: str,
        body: str,
        thread_id: str,
        in_reply_to: str | None = None,
        references: str | None = None,
    ) -> None:
        ...

    async def mark_as_replied(self, message_id: str) -> None:
        ...


@dataclass(frozen=True)
class SendReceipt:
    """What happened after a reply was accepted by the mailbox."""

    to: str
    subject: str
    thread_id: str
    marked_as_replied: bool
    mark_error: MarkAsRepliedFailed | None = None


class ReplySender:
    """Sends threaded replies through a Mailbox.

    A send is attempted exactly once.  SendFailed aborts the reply; a failure
    to mark the original as replied is reported on the receipt and logged, but
    does not undo the send.
    """

    def __init__(self, mailbox: Mailbox) -> None:
        self._mailbox = mailbox

    async def send(self, message: Message, body: str, subject: str | None = None) -> SendReceipt:
        """Reply to ``message``.  ``subject`` defaults to the message's own subject."""
        return await self.deliver(
            to=message.sender,
            body=body,
            thread_id=message.thread_id,
            message_id=message.id or None,
            in_reply_to=message.message_id or None,
            subject=subject if subject is not None else message.subject,
        )

    async def deliver(
        self,
        *,
        to: str,
        body: str,
        thread_id: str,
        message_id: str | None = None,
        in_reply_to: str | None = None,
        subject: str | None = None,
    ) -> SendReceipt:
        """Send from explicit fields; ``message_id`` is the Gmail handle to mark."""
        address = extract_email_address(to)
        reply_subject = build_reply_subject(subject)

        try:
            await self._mailbox.send_reply(
                to=address,
                subject=reply_subject,
                body=body,
                thread_id=thread_id,
                in_reply_to=in_reply_to,
                references=in_reply_to,
            )
        except Exception as exc:
            raise SendFailed(f"Sending reply in thread {thread_id} failed: {exc}") from exc

        if not message_id:
            return SendReceipt(address, reply_subject, thread_id, marked_as_replied=False)

        try:
            await self._mailbox.mark_as_replied(message_id)
        except Exception as exc:  # noqa: BLE001
            error = MarkAsRepliedFailed(
                f"Reply sent but message {message_id} could not be marked as replied: {exc}"
            )
            logger.warning("%s", error)
            return SendReceipt(
                address, reply_subject, thread_id, marked_as_replied=False, mark_error=error
            )

        return SendReceipt(address, reply_subject, thread_id, marked_as_replied=True)
