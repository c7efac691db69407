"""Jira issue notification card rendering."""

from __future__ import annotations

from dataclasses import dataclass, field

from relay.schemas.jira_webhook import JiraIssue
from relay.services.adf import MentionResolver, render

PRIORITY_COLORS: dict[str, int] = {
    "Highest": 0xFF0000,
    "High": 0xFF6B6B,
    "Medium": 0xFFA500,
    "Low": 0x4DABF7,
    "Lowest": 0x69DB7C,
}
DEFAULT_COLOR = 0x0052CC

ISSUE_TYPE_EMOJI: dict[str, str] = {
    "Bug": "🐛",
    "Task": "📋",
    "Story": "📖",
    "Epic": "🎯",
    "Sub-task": "📎",
}
DEFAULT_EMOJI = "🎫"

DESCRIPTION_LIMIT = 1000
FIELD_VALUE_LIMIT = 1024
THREAD_NAME_LIMIT = 100
CARD_FOOTER = "💬 Replies in this thread are added to the Jira ticket as comments."


@dataclass(slots=True)
class TicketInfo:
    key: str
    summary: str
    type: str
    assignee: str | None
    priority: str
    status: str
    description: str
    url: str


@dataclass(slots=True)
class CardField:
    name: str
    value: str
    inline: bool = True


@dataclass(slots=True)
class TicketCard:
    """Platform-neutral notification card; the Discord client turns it into an embed."""

    title: str
    url: str
    color: int
    fields: list[CardField] = field(default_factory=list)
    footer: str = CARD_FOOTER


def parse_issue(issue: JiraIssue, site_url: str, resolve_mention: MentionResolver | None = None) -> TicketInfo:
    """Flatten a webhook issue into the values shown on the card."""

    fields = issue.fields
    description = fields.description
    if isinstance(description, dict):
        description_text = render(description, resolve_mention)
    else:
        description_text = description or ""

    return TicketInfo(
        key=issue.key,
        summary=fields.summary,
        type=(fields.issuetype.name if fields.issuetype else None) or "Task",
        assignee=fields.assignee.display_name if fields.assignee else None,
        priority=(fields.priority.name if fields.priority else None) or "Medium",
        status=(fields.status.name if fields.status else None) or "To Do",
        description=description_text.strip()[:DESCRIPTION_LIMIT],
        url=f"{site_url.rstrip('/')}/browse/{issue.key}",
    )


def build_ticket_card(ticket: TicketInfo) -> TicketCard:
    emoji = ISSUE_TYPE_EMOJI.get(ticket.type, DEFAULT_EMOJI)
    card = TicketCard(
        title=f"{emoji} [{ticket.key}] {ticket.summary}"[:256],
        url=ticket.url,
        color=PRIORITY_COLORS.get(ticket.priority, DEFAULT_COLOR),
        fields=[
            CardField("Type", ticket.type),
            CardField("Assignee", ticket.assignee or "Unassigned"),
            CardField("Priority", ticket.priority),
            CardField("Status", ticket.status),
        ],
    )
    if ticket.description:
        value = ticket.description
        if len(value) > FIELD_VALUE_LIMIT:
            value = f"{value[: FIELD_VALUE_LIMIT - 3]}..."
        card.fields.append(CardField("Description", value, inline=False))
    return card


def thread_name(ticket: TicketInfo) -> str:
    return f"[{ticket.key}] {ticket.summary}"[:THREAD_NAME_LIMIT]
