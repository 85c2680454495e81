"""Pydantic models for the HTTP API (camelCase on the wire)."""

from pydantic import BaseModel, ConfigDict, Field

from replydesk.agent.orchestrator import BatchResult
from replydesk.mcp.types import Message


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MessageOut(_WireModel):
    """A mailbox message as returned by GET /api/mailbox."""
    id: str
    thread_id: str = Field(serialization_alias="threadId")
    message_id: str = Field(serialization_alias="messageId")
    subject: str | None = None
    sender: str = Field(serialization_alias="from")
    recipient: str = Field(serialization_alias="to")
    snippet: str
    date: str | None = None
    body_text: str = Field(serialization_alias="bodyText")
    body_html: str | None = Field(default=None, serialization_alias="bodyHtml")

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            thread_id=message.thread_id,
            message_id=message.message_id,
            subject=message.subject,
            sender=message.sender,
            recipient=message.recipient,
            snippet=message.snippet,
            date=message.date,
            body_text=message.body_text,
            body_html=message.body_html,
        )


class DraftPayload(_WireModel):
    """Request body for POST /api/draft."""
    message_id: str = Field(alias="messageId", min_length=1)
    thread_id: str = Field(alias="threadId", min_length=1)
    subject: str | None = None
    sender: str = Field(alias="from", min_length=1)
    body_text: str = Field(alias="bodyText", min_length=1)


class SendPayload(_WireModel):
    """Request body for POST /api/send."""
    to: str = Field(min_length=1)
    body: str = Field(min_length=1)
    thread_id: str = Field(alias="threadId", min_length=1)
    message_id: str | None = Field(default=None, alias="messageId")
    in_reply_to: str | None = Field(default=None, alias="inReplyTo")
    subject: str | None = None


class OutcomeOut(_WireModel):
    message_id: str = Field(serialization_alias="messageId")
    outcome: str
    detail: str = ""


class BatchResultOut(_WireModel):
    """Response body for POST /api/auto-reply."""
    sent_count: int = Field(serialization_alias="sentCount")
    skipped_count: int = Field(serialization_alias="skippedCount")
    mark_failures: int = Field(serialization_alias="markFailures")
    summary: str
    outcomes: list[OutcomeOut]

    @classmethod
    def from_result(cls, result: BatchResult) -> "BatchResultOut":
        return cls(
            sent_count=result.sent_count,
            skipped_count=result.skipped_count,
            mark_failures=result.mark_failures,
            summary=result.summary(),
            outcomes=[
                OutcomeOut(message_id=o.message_id, outcome=o.outcome.value, detail=o.detail)
                for o in result.outcomes
            ],
        )
