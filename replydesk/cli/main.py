"""CLI entry point for the reply desk."""

import logging

import click
from dotenv import load_dotenv

from replydesk.agent.config import AgentConfig

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s — %(message)s"


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log at INFO level.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Draft, review and auto-send replies to your Gmail inbox."""
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )
    ctx.obj = AgentConfig.from_env()


# Import and register commands after cli is defined to avoid circular imports.
from replydesk.cli.commands import auto_reply, draft, inbox, reply, serve  # noqa: E402

cli.add_command(inbox)
cli.add_command(draft)
cli.add_command(reply)
cli.add_command(auto_reply)
cli.add_command(serve)
