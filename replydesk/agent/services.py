"""Wiring: build the reply pipeline around a connected mailbox."""

from __future__ import annotations

from dataclasses import dataclass

from replydesk.agent.orchestrator import BatchOrchestrator, OrchestrationContext
from replydesk.agent.pipeline import ReplyPipeline
from replydesk.agent.poller import InboxSource
from replydesk.drafting.drafter import ClaudeDrafter, DraftingService
from replydesk.drafting.requester import DraftRequester
from replydesk.mcp.gmail_client import GmailClient
from replydesk.replying.sender import ReplySender


@dataclass
class Services:
    """Everything the CLI and the HTTP API need to serve one mailbox."""

    inbox: InboxSource
    pipeline: ReplyPipeline
    sender: ReplySender
    orchestrator: BatchOrchestrator
    context: OrchestrationContext
    page_size: int = 20


def build_services(
    gmail: GmailClient,
    drafter: DraftingService | None = None,
    page_size: int = 20,
) -> Services:
    context = OrchestrationContext()
    requester = DraftRequester(drafter or ClaudeDrafter(), account_email=gmail.user_email)
    sender = ReplySender(gmail)
    pipeline = ReplyPipeline(requester, sender)
    return Services(
        inbox=gmail,
        pipeline=pipeline,
        sender=sender,
        orchestrator=BatchOrchestrator(pipeline, context),
        context=context,
        page_size=page_size,
    )
