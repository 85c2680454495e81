"""Data types shared across MCP client modules."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Message:
    """An inbound email that can be replied to.

    ``id`` and ``thread_id`` are Gmail's opaque handles; ``message_id`` is the
    RFC 2822 Message-ID header used for In-Reply-To / References.
    """

    id: str
    thread_id: str
    message_id: str
    sender: str
    subject: str | None = None
    recipient: str = ""
    snippet: str = ""
    date: str | None = None
    body_text: str = ""
    body_html: str | None = None

    @property
    def effective_body(self) -> str:
        """Plain body text, or the snippet when the body is empty."""
        return self.body_text or self.snippet
