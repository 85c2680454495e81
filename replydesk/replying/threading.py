"""Address and subject helpers for composing threaded replies."""

import re

_ANGLE_ADDRESS = re.compile(r"<([^>]+)>")
_REPLY_PREFIX = re.compile(r"^(?:\s*re\s*:)+\s*", re.IGNORECASE)


def extract_email_address(value: str | None) -> str:
    """Return the bare address from ``Display Name <addr>``, else the trimmed input."""
    if not value:
        return ""
    match = _ANGLE_ADDRESS.search(value)
    if match:
        return match.group(1).strip()
    return value.strip()


def build_reply_subject(subject: str | None) -> str:
    """Return the reply subject with exactly one canonical ``Re:`` prefix.

    Any run of leading ``Re:`` prefixes (any case) collapses to one, so the
    function is idempotent.  An empty subject becomes a bare ``"Re:"``.
    """
    rest = _REPLY_PREFIX.sub("", (subject or "").strip())
    return f"Re: {rest}" if rest else "Re:"
