"""Origin tagging for comments the relay writes into Jira.

Jira's ``comment_created`` webhook does not say who wrote a comment, so every
comment mirrored from Discord starts with a ``[Discord - author]`` header and
inbound comments carrying that header are not mirrored back.
"""

from __future__ import annotations

import re

ORIGIN_PREFIX = "[Discord -"

# Decorations Jira (or the markdown renderer) may put in front of the header.
_LEADING_NOISE_RE = re.compile(r"^(?:\s|\*\*|__|\\(?=\[)|​)+")


def origin_header(author: str) -> str:
    """Return the header line naming the Discord author."""

    return f"{ORIGIN_PREFIX} {author.strip() or 'Unknown'}]"


def mark_self_originated(text: str, author: str) -> str:
    """Prefix ``text`` with the Discord origin header."""

    return f"{origin_header(author)}\n \n{text}"


def is_self_originated(text: str | None) -> bool:
    """True when ``text`` starts with the origin header the relay writes."""

    if not text:
        return False
    return _LEADING_NOISE_RE.sub("", text).startswith(ORIGIN_PREFIX)
