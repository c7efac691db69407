"""Jira webhook payload schemas.

Only the fields the relay reads are declared; everything else Jira sends is
kept as extra data and ignored.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _JiraModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


class JiraUser(_JiraModel):
    account_id: str | None = Field(default=None, alias="accountId")
    display_name: str | None = Field(default=None, alias="displayName")


class JiraNamedField(_JiraModel):
    name: str | None = None


class JiraIssueFields(_JiraModel):
    summary: str = ""
    description: dict[str, Any] | str | None = None
    issuetype: JiraNamedField | None = None
    assignee: JiraUser | None = None
    priority: JiraNamedField | None = None
    status: JiraNamedField | None = None


class JiraIssue(_JiraModel):
    id: str | None = None
    key: str = Field(min_length=1)
    fields: JiraIssueFields = Field(default_factory=JiraIssueFields)


class JiraComment(_JiraModel):
    id: str = Field(min_length=1)
    body: dict[str, Any] | str | None = None
    author: JiraUser | None = None


class JiraWebhookPayload(_JiraModel):
    """Discriminated by ``webhook_event`` (Jira's ``webhookEvent``)."""

    webhook_event: str = Field(alias="webhookEvent")
    issue: JiraIssue | None = None
    comment: JiraComment | None = None
    user: JiraUser | None = None
