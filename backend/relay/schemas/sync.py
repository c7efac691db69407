"""Reconciliation result schemas."""

from typing import Literal

from pydantic import BaseModel


class SyncOutcome(BaseModel):
    """What a reconciler did with one inbound event."""

    status: Literal["success", "ignored", "failed"]
    event: str
    action: str | None = None
    reason: str | None = None
    ticket_key: str | None = None
    thread_id: str | None = None
    discord_message_id: str | None = None
    jira_comment_id: str | None = None

    @classmethod
    def ignored(cls, event: str, reason: str, **details: str | None) -> "SyncOutcome":
        return cls(status="ignored", event=event, reason=reason, **details)

    @classmethod
    def success(cls, event: str, action: str, **details: str | None) -> "SyncOutcome":
        return cls(status="success", event=event, action=action, **details)

    @classmethod
    def failed(cls, event: str, reason: str, **details: str | None) -> "SyncOutcome":
        return cls(status="failed", event=event, reason=reason, **details)
