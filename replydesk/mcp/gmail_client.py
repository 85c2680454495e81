"""Gmail over MCP: list, read, send and label messages through workspace-mcp."""

import asyncio
import json
import logging
import os
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from mcp import ClientSession
from mcp.client.stdio import StdioServerParameters, stdio_client
from mcp.types import TextContent

from replydesk.mcp.types import Message

logger = logging.getLogger(__name__)

# Gmail system label ID; used directly without cache lookup
_UNREAD = "UNREAD"

DEFAULT_REPLIED_LABEL = "AutoReply/Replied"

# JSON-decoded value from an MCP tool response
_JsonValue = dict[str, Any] | list[Any] | str | None


class MCPError(Exception):
    """Raised when a workspace-mcp tool call returns an error."""


class GmailClient:
    """Mailbox collaborator backed by the workspace-mcp Gmail tools.

    One MCP session serves every poll, draft and send for the lifetime of
    the process.  Obtain instances through the `gmail_client()` context
    manager rather than constructing one directly.
    """

    def __init__(
        self,
        session: ClientSession,
        user_email: str,
        replied_label: str = DEFAULT_REPLIED_LABEL,
    ) -> None:
        self._session = session
        self._user_email = user_email
        self._replied_label = replied_label
        self._label_cache: dict[str, str] = {}  # label name → label ID

    @property
    def user_email(self) -> str:
        return self._user_email

    # ── Public API ─────────────────────────────────────────────────────────────

    async def list_inbox(self, max_results: int = 20) -> list[Message]:
        """Return the newest unread inbox messages with full bodies.

        Search yields IDs only; bodies come from one batch fetch afterwards.
        """
        raw = await self._call(
            "search_gmail_messages",
            {"query": "in:inbox is:unread", "page_size": max_results,
             "user_google_email": self._user_email},
        )
        ids = self._parse_search_ids(raw)
        if not ids:
            return []

        content = await self._call(
            "get_gmail_messages_content_batch",
            {"message_ids": ids, "user_google_email": self._user_email},
        )
        return self._parse_batch_messages(content)

    async def get_message(self, message_id: str) -> Message:
        """Return a single message with full body."""
        raw = await self._call(
            "get_gmail_message_content",
            {"message_id": message_id, "user_google_email": self._user_email},
        )
        if isinstance(raw, str):
            messages = self._parse_batch_messages(raw)
            if messages:
                return messages[0]
            raise MCPError(f"Could not parse message {message_id} from response")
        if isinstance(raw, dict):
            return self._parse_message_dict(raw)
        raise MCPError(f"Unexpected response type for message {message_id}: {type(raw)}")

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
        """Send a reply into an existing Gmail thread."""
        arguments: dict[str, Any] = {
            "to": to,
            "subject": subject,
            "body": body,
            "thread_id": thread_id,
            "user_google_email": self._user_email,
        }
        if in_reply_to:
            arguments["in_reply_to"] = in_reply_to
        if references:
            arguments["references"] = references
        await self._call("send_gmail_message", arguments)
        logger.info("Sent reply to %s in thread %s: %r", to, thread_id, subject)

    async def mark_as_replied(self, message_id: str) -> None:
        """Drop UNREAD from the original message and tag it with the replied label."""
        label_id = await self._get_or_create_label_id(self._replied_label)
        await self._call(
            "modify_gmail_message_labels",
            {"message_id": message_id, "add_label_ids": [label_id],
             "remove_label_ids": [_UNREAD],
             "user_google_email": self._user_email},
        )
        logger.debug("Marked message %s as replied", message_id)

    async def create_label(self, label_name: str) -> str:
        """Return the ID of ``label_name``, creating the label in Gmail if needed."""
        cached = self._label_cache.get(label_name)
        if cached:
            return cached

        await self._call("manage_gmail_label", {"name": label_name, "action": "create",
                                                "user_google_email": self._user_email})
        await self._refresh_label_cache()

        label_id = self._label_cache.get(label_name)
        if label_id is None:
            raise MCPError(
                f"Label {label_name!r} was created but is missing from Gmail label list"
            )
        logger.info("Created label %r (%s)", label_name, label_id)
        return label_id

    # ── Internal helpers ───────────────────────────────────────────────────────

    async def _refresh_label_cache(self) -> None:
        """Rebuild the name → ID cache from the live Gmail label list."""
        raw = await self._call(
            "list_gmail_labels", {"user_google_email": self._user_email}
        )
        if isinstance(raw, list):
            self._label_cache = {
                str(lbl["name"]): str(lbl["id"])
                for lbl in raw
                if isinstance(lbl, dict) and "name" in lbl and "id" in lbl
            }
        elif isinstance(raw, str):
            # workspace-mcp text format:  • LabelName (ID: label_id)
            self._label_cache = {}
            for match in re.finditer(r"•\s+(.+?)\s+\(ID:\s+(.+?)\)", raw):
                self._label_cache[match.group(1)] = match.group(2)
        else:
            logger.warning("Unexpected response from list_gmail_labels: %r", raw)
            return
        logger.debug("Label cache refreshed: %d labels", len(self._label_cache))

    async def _get_or_create_label_id(self, label_name: str) -> str:
        if label_name not in self._label_cache:
            await self._refresh_label_cache()
        if label_name not in self._label_cache:
            return await self.create_label(label_name)
        return self._label_cache[label_name]

    async def _call(self, tool_name: str, arguments: dict[str, Any]) -> _JsonValue:
        """Invoke one workspace-mcp tool.

        JSON text is decoded; anything else comes back as the raw string.
        A tool-level error becomes MCPError.
        """
        logger.debug("MCP → %s %s", tool_name, arguments)
        result = await self._session.call_tool(tool_name, arguments)

        if result.isError:
            raise MCPError(f"Tool {tool_name!r} returned error: {result.content}")

        if not result.content:
            return None

        text: str | None = None
        for item in result.content:
            if isinstance(item, TextContent):
                text = item.text
                break

        if text is None:
            return None

        try:
            parsed: _JsonValue = json.loads(text)
            return parsed
        except json.JSONDecodeError:
            return text

    @staticmethod
    def _parse_search_ids(raw: _JsonValue) -> list[str]:
        """Extract message IDs from a search response (text or JSON list)."""
        if isinstance(raw, list):
            return [
                str(m.get("message_id", ""))
                for m in raw
                if isinstance(m, dict) and m.get("message_id")
            ]
        if isinstance(raw, str):
            return re.findall(r"Message ID:\s*(\S+)", raw)
        return []

    @staticmethod
    def _parse_batch_messages(raw: _JsonValue) -> list[Message]:
        """Parse one or more messages from a batch/single content response.

        workspace-mcp returns text blocks like::

            Message ID: 18c2f0a1b2
            Thread ID: 18c2f0a1b2
            Message-ID: <CAF=abc@mail.gmail.com>
            Subject: Hello
            From: Alice <alice@example.com>
            Date: Mon, 1 Jan 2026 12:00:00 +0000
            To: <bob@example.com>

            Body text follows after a blank line...
        """
        if isinstance(raw, list):
            return [
                GmailClient._parse_message_dict(m)
                for m in raw
                if isinstance(m, dict)
            ]
        if not isinstance(raw, str):
            return []

        messages: list[Message] = []
        blocks = re.split(r"(?=^Message ID:)", raw, flags=re.MULTILINE)
        for block in blocks:
            block = block.strip()
            if not block.startswith("Message ID:"):
                continue

            def _header(name: str) -> str:
                m = re.search(rf"^{re.escape(name)}:\s*(.+)$", block, re.MULTILINE)
                return m.group(1).strip() if m else ""

            body = ""
            header_end = re.search(r"\n\s*\n", block)
            if header_end:
                body = block[header_end.end():].strip()

            to_raw = _header("To")
            messages.append(Message(
                id=_header("Message ID"),
                thread_id=_header("Thread ID"),
                message_id=_header("Message-ID"),
                sender=_header("From"),
                recipient=re.sub(r"^<|>$", "", to_raw),
                subject=_header("Subject") or None,
                snippet=body[:200],
                body_text=body,
                date=_header("Date") or None,
            ))
        return messages

    @staticmethod
    def _parse_message_dict(data: dict[str, Any]) -> Message:
        """Map a JSON message dict to a Message."""
        subject = data.get("subject")
        date = data.get("date")
        body_html = data.get("body_html")
        rfc_id = data.get("rfc_message_id") or data.get("message_id_header") or ""

        return Message(
            id=str(data.get("message_id", data.get("id", ""))),
            thread_id=str(data.get("thread_id", "")),
            message_id=str(rfc_id),
            sender=str(data.get("from", "")),
            recipient=str(data.get("to") or ""),
            subject=str(subject) if subject else None,
            snippet=str(data.get("snippet") or ""),
            body_text=str(data.get("body") or ""),
            body_html=str(body_html) if body_html else None,
            date=str(date) if date else None,
        )


_MCP_CONNECT_RETRIES = 5
_MCP_RETRY_DELAY_SECONDS = 3


@asynccontextmanager
async def gmail_client(
    *,
    user_email: str | None = None,
    server_command: str | None = None,
    replied_label: str = DEFAULT_REPLIED_LABEL,
) -> AsyncIterator[GmailClient]:
    """Launch workspace-mcp over stdio and yield a GmailClient bound to it.

    The session is initialised and the label cache primed before the client
    is handed out; the subprocess is stopped when the block exits.

    Startup is retried up to ``_MCP_CONNECT_RETRIES`` times because
    ``workspace-mcp`` binds a local port for its OAuth server and crashes if a
    previous instance hasn't released it yet.

    Args:
        user_email: Google account email. Falls back to USER_GOOGLE_EMAIL env var.
        server_command: Command used to launch the MCP server.
                        Defaults to GMAIL_MCP_SERVER_PATH env var (or "uvx").
        replied_label: Label applied to messages once a reply has been sent.

    Example::

        async with gmail_client(user_email="me@example.com") as gmail:
            inbox = await gmail.list_inbox(max_results=10)
    """
    email = user_email or os.environ.get("USER_GOOGLE_EMAIL", "")
    if not email:
        raise ValueError(
            "user_email must be provided or USER_GOOGLE_EMAIL env var must be set"
        )

    cmd = server_command or os.environ.get("GMAIL_MCP_SERVER_PATH", "uvx")
    _cmd_basename = os.path.basename(cmd).lower().replace(".exe", "")
    args = ["workspace-mcp", "--tools", "gmail"] if _cmd_basename == "uvx" else []

    server_params = StdioServerParameters(
        command=cmd,
        args=args,
        env={
            **os.environ,
            "GOOGLE_OAUTH_CLIENT_ID": os.environ.get("GOOGLE_OAUTH_CLIENT_ID", ""),
            "GOOGLE_OAUTH_CLIENT_SECRET": os.environ.get("GOOGLE_OAUTH_CLIENT_SECRET", ""),
            "USER_GOOGLE_EMAIL": email,
            "MCP_SINGLE_USER_MODE": "1",
            "WORKSPACE_MCP_PORT": os.environ.get("WORKSPACE_MCP_PORT", "18741"),
            "PYTHONUTF8": "1",
        },
    )

    last_err: BaseException | None = None
    connected = False
    for attempt in range(1, _MCP_CONNECT_RETRIES + 1):
        try:
            async with stdio_client(server_params) as (read, write):
                async with ClientSession(read, write) as session:
                    await session.initialize()
                    client = GmailClient(session, email, replied_label=replied_label)
                    await client._refresh_label_cache()
                    connected = True
                    logger.info("Connected to Gmail for %s", email)
                    yield client
                    return
        except Exception as exc:
            # Errors raised inside the caller's block are not connect failures.
            if connected:
                raise
            last_err = exc
            if attempt < _MCP_CONNECT_RETRIES:
                logger.warning(
                    "workspace-mcp did not start (attempt %d/%d), retrying in %ds",
                    attempt,
                    _MCP_CONNECT_RETRIES,
                    _MCP_RETRY_DELAY_SECONDS,
                )
                await asyncio.sleep(_MCP_RETRY_DELAY_SECONDS)
            else:
                raise

    raise MCPError(f"Failed to connect after {_MCP_CONNECT_RETRIES} attempts") from last_err
