"""
HTTP API for the reply desk.

Exposes the mailbox listing, single-message drafting and sending used by the
human review flow, plus an endpoint that runs the auto-reply batch.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from replydesk.agent.config import AgentConfig
from replydesk.agent.poller import MailboxPoller
from replydesk.agent.scheduler import create_auto_reply_scheduler
from replydesk.agent.services import Services, build_services
from replydesk.api.schemas import (
    BatchResultOut,
    DraftPayload,
    MessageOut,
    SendPayload,
)
from replydesk.errors import BatchInProgress
from replydesk.mcp.gmail_client import gmail_client
from replydesk.mcp.types import Message

logger = logging.getLogger(__name__)

MAILBOX_ERROR = "Unable to load mailbox. Check server logs for details."
DRAFT_ERROR = "Unable to generate reply draft."
SEND_ERROR = "Unable to send reply."
AUTO_REPLY_ERROR = "Unable to run auto-reply."


def _error(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


@asynccontextmanager
async def _live_lifespan(app: FastAPI):
    """Connect to Gmail, start the poller (and scheduler), tear down on exit."""
    config: AgentConfig = app.state.config
    async with gmail_client(
        user_email=config.user_email or None, replied_label=config.replied_label
    ) as gmail:
        services = build_services(gmail, page_size=config.page_size)
        app.state.services = services

        poller = MailboxPoller(
            gmail,
            services.context,
            poll_interval=config.poll_interval,
            page_size=config.page_size,
        )
        poll_task = asyncio.create_task(poller.run())

        scheduler = None
        if config.auto_reply_enabled:
            scheduler = create_auto_reply_scheduler(
                services.orchestrator, config.auto_reply_interval_minutes
            )
            scheduler.start()

        logger.info("Reply desk started for %s", gmail.user_email)
        try:
            yield
        finally:
            logger.info("Shutting down reply desk...")
            poller.stop()
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            await poll_task


def create_app(
    services: Services | None = None,
    config: AgentConfig | None = None,
) -> FastAPI:
    """Build the FastAPI app.

    With ``services`` given (tests, embedding) no Gmail connection is made and
    no background tasks run; otherwise the lifespan wires everything up.
    """
    app = FastAPI(
        title="Reply Desk",
        description="Draft, review and auto-send replies to a Gmail inbox",
        version="0.1.0",
        lifespan=None if services is not None else _live_lifespan,
    )
    app.state.config = config or AgentConfig.from_env()
    app.state.services = services

    def _services(request: Request) -> Services:
        return request.app.state.services

    @app.get("/api/mailbox")
    async def list_mailbox(request: Request):
        """List the newest inbox messages and refresh the shared snapshot."""
        services = _services(request)
        try:
            messages = await services.inbox.list_inbox(max_results=services.page_size)
        except Exception as e:
            logger.error("Failed to load mailbox: %s", e, exc_info=True)
            return _error(MAILBOX_ERROR)

        services.context.last_snapshot = list(messages)
        return {
            "messages": [
                MessageOut.from_message(m).model_dump(by_alias=True) for m in messages
            ]
        }

    @app.post("/api/draft")
    async def generate_draft(request: Request):
        """Draft a reply for one message; never returns a partial draft."""
        services = _services(request)
        try:
            payload = DraftPayload.model_validate(await request.json())
            message = Message(
                id=payload.message_id,
                thread_id=payload.thread_id,
                message_id="",
                sender=payload.sender,
                subject=payload.subject,
                body_text=payload.body_text,
            )
            draft = await services.pipeline.draft(message)
        except ValueError as e:  # bad JSON or failed validation
            logger.error("Rejected draft request: %s", e)
            return _error(DRAFT_ERROR)
        except Exception as e:
            logger.error("Failed to draft reply: %s", e, exc_info=True)
            return _error(DRAFT_ERROR)

        return {
            "draft": {
                "reply": draft.reply,
                "autoSend": draft.auto_send,
                "reasoning": draft.reasoning,
            },
            "recommendedSubject": draft.subject,
        }

    @app.post("/api/send")
    async def send_reply(request: Request):
        """Send a reviewed reply, then mark the original as replied if identified."""
        services = _services(request)
        try:
            payload = SendPayload.model_validate(await request.json())
            receipt = await services.sender.deliver(
                to=payload.to,
                body=payload.body,
                thread_id=payload.thread_id,
                message_id=payload.message_id or None,
                in_reply_to=payload.in_reply_to or None,
                subject=payload.subject,
            )
        except ValueError as e:  # bad JSON or failed validation
            logger.error("Rejected send request: %s", e)
            return _error(SEND_ERROR)
        except Exception as e:
            logger.error("Failed to send reply: %s", e, exc_info=True)
            return _error(SEND_ERROR)

        return {"status": "sent", "markedAsReplied": receipt.marked_as_replied}

    @app.post("/api/auto-reply")
    async def auto_reply(request: Request):
        """Fetch the inbox and run one auto-reply batch over it."""
        services = _services(request)
        if services.orchestrator.running:
            return _error("An auto-reply run is already in progress.", status_code=409)

        try:
            messages = await services.inbox.list_inbox(max_results=services.page_size)
        except Exception as e:
            logger.error("Failed to load mailbox for auto-reply: %s", e, exc_info=True)
            return _error(MAILBOX_ERROR)
        services.context.last_snapshot = list(messages)

        try:
            result = await services.orchestrator.run(messages)
        except BatchInProgress:
            return _error("An auto-reply run is already in progress.", status_code=409)
        except Exception as e:
            logger.error("Auto-reply run failed: %s", e, exc_info=True)
            return _error(AUTO_REPLY_ERROR)

        return BatchResultOut.from_result(result).model_dump(by_alias=True)

    @app.get("/api/status")
    async def status(request: Request):
        """Report whether a batch is running and how big the last snapshot was."""
        services = _services(request)
        return {
            "running": services.context.running,
            "snapshotSize": len(services.context.last_snapshot),
        }

    return app
