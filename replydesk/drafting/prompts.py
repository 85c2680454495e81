"""Anthropic tool definition and prompt builder for reply drafting."""

from html.parser import HTMLParser
from typing import Any

from replydesk.drafting.types import DraftRequest

# Characters of email body sent to Claude, counted after HTML stripping.
BODY_CHAR_LIMIT = 6_000

DRAFT_TOOL_NAME = "record_reply_draft"


# ── HTML stripper ───────────────────────────────────────────────────────────────


class _HTMLStripper(HTMLParser):
    """Collects visible text nodes."""

    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []

    def handle_data(self, data: str) -> None:
        text = data.strip()
        if text:
            self._parts.append(text)

    def get_text(self) -> str:
        return " ".join(self._parts)


def strip_html(text: str) -> str:
    """Return plain text from an HTML string.

    Input that doesn't look like HTML, or that strips down to almost nothing,
    is returned unchanged.
    """
    if "<" not in text:
        return text
    stripper = _HTMLStripper()
    try:
        stripper.feed(text)
        result = stripper.get_text()
        return result if len(result) > len(text) * 0.1 else text
    except Exception:  # noqa: BLE001
        return text


# ── Tool definition ────────────────────────────────────────────────────────────

SYSTEM_PROMPT = (
    "You are an email assistant drafting replies on behalf of the mailbox owner. "
    "Write a concise, polite reply in plain text, signed off without a name. "
    "Recommend auto_send=true only when the reply is low-risk and complete on its "
    "own: simple acknowledgements, thanks, confirmations of information already "
    "in the email. Recommend auto_send=false for anything involving commitments, "
    "money, dates you cannot verify, sensitive topics, or when you are unsure."
)

DRAFT_TOOL: dict[str, Any] = {
    "name": DRAFT_TOOL_NAME,
    "description": "Record a reply draft and whether it is safe to send unreviewed.",
    "input_schema": {
        "type": "object",
        "properties": {
            "reply": {
                "type": "string",
                "description": "Plain-text reply body.",
            },
            "auto_send": {
                "type": "boolean",
                "description": "True if the reply can be sent without human review.",
            },
            "reasoning": {
                "type": "string",
                "description": "One or two sentences explaining the auto_send choice.",
            },
        },
        "required": ["reply", "auto_send", "reasoning"],
    },
}


# ── Prompt builder ─────────────────────────────────────────────────────────────


def build_messages(request: DraftRequest) -> list[dict[str, str]]:
    """Build the Anthropic messages list for drafting a reply to one email."""
    plain_body = strip_html(request.body)
    body_preview = plain_body[:BODY_CHAR_LIMIT]
    truncated = len(plain_body) > BODY_CHAR_LIMIT

    content_lines = [
        f"From: {request.sender}",
        f"Subject: {request.subject or '(no subject)'}",
    ]
    if request.recipient:
        content_lines.append(f"To: {request.recipient}")

    content_lines.append("")
    content_lines.append(body_preview)
    if truncated:
        content_lines.append("\n[… email truncated …]")

    return [
        {
            "role": "user",
            "content": (
                f"Draft a reply to the following email and call {DRAFT_TOOL_NAME} "
                "with the result.\n\n" + "\n".join(content_lines)
            ),
        }
    ]
