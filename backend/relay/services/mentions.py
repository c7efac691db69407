"""Mention translation between Discord and Jira syntax."""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy.orm import Session

from relay.services import identity_store
from relay.services.adf import mention_node, text_node

DISCORD_MENTION_RE = re.compile(r"<@!?(\d+)>")
JIRA_WIKI_MENTION_RE = re.compile(r"\[~accountid:([^\]\s]+)\]")


def resolve_jira_mention(db: Session, account_id: str | None, display_name: str | None) -> str:
    """Render a Jira mention for Discord.

    Resolution order: account id, then display name, then a literal ``@name``.
    """

    user = None
    if account_id:
        user = identity_store.get_user_by_jira_account_id(db, account_id)
    if user is None and display_name:
        user = identity_store.get_user_by_jira_display_name(db, display_name)
    if user is not None:
        return f"<@{user.discord_user_id}>"
    return f"@{display_name or 'user'}"


def jira_mention_resolver(db: Session):
    """Bind ``resolve_jira_mention`` to a session for the ADF renderer."""

    def _resolve(account_id: str | None, display_name: str | None) -> str:
        return resolve_jira_mention(db, account_id, display_name)

    return _resolve


def replace_wiki_mentions(db: Session, text: str) -> str:
    """Resolve ``[~accountid:ID]`` tokens found in plain-string comment bodies."""

    return JIRA_WIKI_MENTION_RE.sub(lambda match: resolve_jira_mention(db, match.group(1), None), text)


def discord_text_to_adf_nodes(db: Session, text: str) -> list[dict[str, Any]]:
    """Split a Discord line into ADF text and mention nodes."""

    nodes: list[dict[str, Any]] = []
    cursor = 0
    for match in DISCORD_MENTION_RE.finditer(text):
        user = identity_store.get_user_by_discord_id(db, match.group(1))
        if user is None:
            continue
        if match.start() > cursor:
            nodes.append(text_node(text[cursor : match.start()]))
        nodes.append(mention_node(user.jira_account_id, user.jira_display_name))
        cursor = match.end()
    if cursor < len(text):
        nodes.append(text_node(text[cursor:]))
    return nodes
