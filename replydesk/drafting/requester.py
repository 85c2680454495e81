"""Draft requester — normalizes a Message into a request and validates the answer."""

import logging

from replydesk.drafting.drafter import DraftingService
from replydesk.drafting.types import Draft, DraftRequest
from replydesk.errors import DraftUnavailable
from replydesk.mcp.types import Message
from replydesk.replying.threading import build_reply_subject

logger = logging.getLogger(__name__)


class DraftRequester:
    """Produces a Draft for one message or raises DraftUnavailable.

    ``account_email`` is the mailbox owner's address, given to the model as the
    recipient of the original email.  Falls back to the message's own To header.
    """

    def __init__(self, service: DraftingService, account_email: str = "") -> None:
        self._service = service
        self._account_email = account_email

    def build_request(self, message: Message) -> DraftRequest:
        return DraftRequest(
            subject=message.subject or "",
            sender=message.sender,
            recipient=self._account_email or message.recipient,
            body=message.effective_body,
        )

    async def request(self, message: Message) -> Draft:
        """Draft a reply to ``message``.

        Raises:
            DraftUnavailable: if the service fails or its payload has no reply.
        """
        try:
            payload = await self._service.generate(self.build_request(message))
        except DraftUnavailable:
            raise
        except Exception as exc:
            raise DraftUnavailable(f"Drafting failed for message {message.id}: {exc}") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("reply"), str):
            raise DraftUnavailable(f"Malformed draft payload for message {message.id}")

        auto_send = payload.get("autoSend")
        reasoning = payload.get("reasoning")
        draft = Draft(
            reply=payload["reply"],
            auto_send=auto_send is True,
            reasoning=reasoning if isinstance(reasoning, str) else "",
            subject=build_reply_subject(message.subject),
        )
        logger.debug("Drafted reply for %s (auto_send=%s)", message.id, draft.auto_send)
        return draft
