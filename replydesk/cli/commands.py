"""CLI command implementations — each opens a Gmail session and drives the pipeline."""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from replydesk.agent.config import AgentConfig
from replydesk.agent.orchestrator import BatchResult
from replydesk.agent.pipeline import Outcome
from replydesk.agent.services import build_services
from replydesk.drafting.types import Draft
from replydesk.errors import ReplyDeskError
from replydesk.mcp.gmail_client import GmailClient, MCPError, gmail_client
from replydesk.mcp.types import Message

logger = logging.getLogger(__name__)
console = Console(width=200)

_OUTCOME_STYLE = {
    Outcome.SENT: "green",
    Outcome.SKIPPED: "yellow",
    Outcome.FAILED: "red",
}


def _connect(config: AgentConfig):
    return gmail_client(
        user_email=config.user_email or None, replied_label=config.replied_label
    )


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    sys.exit(1)


def _print_draft(message: Message, draft: Draft) -> None:
    verdict = "[green]auto-send[/green]" if draft.auto_send else "[yellow]review[/yellow]"
    console.print(f"[dim]To:[/dim] {message.sender}")
    console.print(f"[dim]Subject:[/dim] {draft.subject}")
    console.print(Panel(draft.reply or "(empty)", title="Draft", border_style="blue"))
    console.print(f"  Model recommends {verdict}: [dim]{draft.reasoning}[/dim]")


# ── inbox ──────────────────────────────────────────────────────────────────────


@click.command()
@click.pass_obj
def inbox(config: AgentConfig) -> None:
    """List unread inbox messages."""
    asyncio.run(_inbox_async(config))


async def _inbox_async(config: AgentConfig) -> None:
    try:
        async with _connect(config) as gmail:
            messages = await gmail.list_inbox(max_results=config.page_size)
    except (MCPError, ValueError) as exc:
        logger.error("Failed to load mailbox: %s", exc)
        _fail("Unable to load inbox. Check API credentials.")
        return

    if not messages:
        console.print("[green]Inbox empty.[/green]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", max_width=18)
    table.add_column("From", max_width=30)
    table.add_column("Subject", max_width=40)
    table.add_column("Date", max_width=32)
    table.add_column("Preview", max_width=60)
    for m in messages:
        table.add_row(
            m.id,
            m.sender,
            m.subject or "(no subject)",
            m.date or "Unknown",
            m.snippet or m.body_text[:120],
        )
    console.print(table)


# ── draft ──────────────────────────────────────────────────────────────────────


@click.command()
@click.argument("message_id")
@click.pass_obj
def draft(config: AgentConfig, message_id: str) -> None:
    """Draft a reply to one message without sending it."""
    asyncio.run(_draft_async(config, message_id))


async def _draft_async(config: AgentConfig, message_id: str) -> None:
    try:
        async with _connect(config) as gmail:
            services = build_services(gmail, page_size=config.page_size)
            message = await gmail.get_message(message_id)
            result = await services.pipeline.draft(message)
    except (MCPError, ValueError, ReplyDeskError) as exc:
        logger.error("Draft failed for %s: %s", message_id, exc)
        _fail("Failed to generate reply. See logs for details.")
        return
    _print_draft(message, result)


# ── reply ──────────────────────────────────────────────────────────────────────


@click.command()
@click.argument("message_id")
@click.option("--edit/--no-edit", default=True, show_default=True,
              help="Open the draft in $EDITOR before sending.")
@click.option("--yes", "-y", is_flag=True, help="Send without asking for confirmation.")
@click.pass_obj
def reply(config: AgentConfig, message_id: str, edit: bool, yes: bool) -> None:
    """Draft, review and send a reply to one message.

    The model's auto-send recommendation is shown but not applied: you decide.
    """
    asyncio.run(_reply_async(config, message_id, edit, yes))


async def _reply_async(config: AgentConfig, message_id: str, edit: bool, yes: bool) -> None:
    try:
        async with _connect(config) as gmail:
            await _review_and_send(gmail, config, message_id, edit, yes)
    except (MCPError, ValueError) as exc:
        logger.error("Gmail connection failed: %s", exc)
        _fail("Unable to connect to Gmail. Check API credentials.")


async def _review_and_send(
    gmail: GmailClient, config: AgentConfig, message_id: str, edit: bool, yes: bool
) -> None:
    services = build_services(gmail, page_size=config.page_size)
    try:
        message = await gmail.get_message(message_id)
        proposed = await services.pipeline.draft(message)
    except (MCPError, ReplyDeskError) as exc:
        logger.error("Draft failed for %s: %s", message_id, exc)
        _fail("Failed to generate reply. See logs for details.")
        return

    _print_draft(message, proposed)

    body = proposed.reply
    if edit:
        edited = click.edit(body)
        if edited is not None:
            body = edited.strip()
    if not body.strip():
        console.print("[yellow]Reply is empty, nothing sent.[/yellow]")
        return
    if not yes and not click.confirm("Send this reply?", default=False):
        console.print("[dim]Not sent.[/dim]")
        return

    try:
        receipt = await services.pipeline.send(message, body, proposed.subject)
    except ReplyDeskError as exc:
        logger.error("Send failed for %s: %s", message_id, exc)
        _fail("Failed to send reply. Inspect logs.")
        return

    console.print(f"[green]Reply sent to {receipt.to}.[/green]")
    if receipt.mark_error is not None:
        console.print(
            "[yellow]Warning: the message could not be marked as replied.[/yellow]"
        )


# ── auto-reply ─────────────────────────────────────────────────────────────────


@click.command("auto-reply")
@click.pass_obj
def auto_reply(config: AgentConfig) -> None:
    """Run one auto-reply pass over the current inbox."""
    asyncio.run(_auto_reply_async(config))


async def _auto_reply_async(config: AgentConfig) -> None:
    try:
        async with _connect(config) as gmail:
            services = build_services(gmail, page_size=config.page_size)
            messages = await gmail.list_inbox(max_results=config.page_size)
            console.print(f"Running auto-reply on {len(messages)} message(s)...")
            result = await services.orchestrator.run(messages)
    except (MCPError, ValueError) as exc:
        logger.error("Auto-reply aborted: %s", exc)
        _fail("Unable to load inbox. Check API credentials.")
        return
    _print_batch(result)


def _print_batch(result: BatchResult) -> None:
    if result.outcomes:
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold cyan")
        table.add_column("Message", style="dim")
        table.add_column("Outcome", width=8)
        table.add_column("Detail", max_width=80)
        for o in result.outcomes:
            style = _OUTCOME_STYLE[o.outcome]
            table.add_row(o.message_id, f"[{style}]{o.outcome.value}[/{style}]", o.detail)
        console.print(table)
    console.print(result.summary())
    if result.mark_failures:
        console.print(
            f"[yellow]{result.mark_failures} sent message(s) could not be "
            "marked as replied.[/yellow]"
        )


# ── serve ──────────────────────────────────────────────────────────────────────


@click.command()
@click.option("--host", default=None, help="Bind address (default: API_HOST).")
@click.option("--port", default=None, type=int, help="Port (default: API_PORT).")
@click.pass_obj
def serve(config: AgentConfig, host: str | None, port: int | None) -> None:
    """Run the HTTP API with the background inbox poller."""
    import uvicorn

    from replydesk.api.app import create_app

    logging.getLogger().setLevel(logging.INFO)
    uvicorn.run(
        create_app(config=config),
        host=host or config.api_host,
        port=port or config.api_port,
    )
