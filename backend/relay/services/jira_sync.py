"""Jira webhook reconciliation: mirrors issue and comment events into Discord."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TypeVar

from sqlalchemy.orm import Session

from relay.models.comment_message_mapping import SOURCE_JIRA
from relay.schemas.jira_webhook import JiraComment, JiraIssue, JiraWebhookPayload
from relay.schemas.sync import SyncOutcome
from relay.services import identity_store
from relay.services.adf import render
from relay.services.discord_client import ChatNotFoundError, ChatPlatformClient, ChatPlatformError
from relay.services.mentions import jira_mention_resolver, replace_wiki_mentions
from relay.services.origin import is_self_originated
from relay.services.tickets import build_ticket_card, parse_issue, thread_name

logger = logging.getLogger(__name__)

T = TypeVar("T")

ISSUE_CREATED = "jira:issue_created"
ISSUE_UPDATED = "jira:issue_updated"
ISSUE_DELETED = "jira:issue_deleted"
COMMENT_CREATED = "comment_created"
COMMENT_UPDATED = "comment_updated"
COMMENT_DELETED = "comment_deleted"

SUPPORTED_EVENTS = frozenset(
    {ISSUE_CREATED, ISSUE_UPDATED, ISSUE_DELETED, COMMENT_CREATED, COMMENT_UPDATED, COMMENT_DELETED}
)

DISCORD_MESSAGE_LIMIT = 2000


class JiraSyncError(RuntimeError):
    """Raised when a Discord side effect for a Jira event fails."""


class InvalidWebhookPayload(ValueError):
    """Raised when a webhook lacks the objects its event kind requires."""


def format_jira_comment(author: str, text: str) -> str:
    """Frame a Jira comment for posting into a Discord thread."""

    content = f"**[Jira - {author}]**\n{text}"
    if len(content) > DISCORD_MESSAGE_LIMIT:
        content = f"{content[: DISCORD_MESSAGE_LIMIT - 3]}..."
    return content


@dataclass(slots=True)
class JiraSyncService:
    """Applies one Jira webhook delivery to Discord and the identity store."""

    db: Session
    chat: ChatPlatformClient
    channel_id: str
    jira_site_url: str

    async def handle(self, payload: JiraWebhookPayload) -> SyncOutcome:
        event = payload.webhook_event
        handlers = {
            ISSUE_CREATED: self.issue_created,
            ISSUE_UPDATED: self.issue_updated,
            ISSUE_DELETED: self.issue_deleted,
            COMMENT_CREATED: self.comment_created,
            COMMENT_UPDATED: self.comment_updated,
            COMMENT_DELETED: self.comment_deleted,
        }
        handler = handlers.get(event)
        if handler is None:
            logger.info("jira_sync.event_ignored event=%s", event)
            return SyncOutcome.ignored(event, "unsupported-event")
        return await handler(payload)

    # --- issues --------------------------------------------------------------

    async def issue_created(self, payload: JiraWebhookPayload) -> SyncOutcome:
        issue = _require_issue(payload)
        existing = identity_store.get_mapping_by_ticket_key(self.db, issue.key)
        if existing is not None:
            logger.info("jira_sync.issue_already_mapped ticket_key=%s thread_id=%s", issue.key, existing.thread_id)
            return SyncOutcome.ignored(ISSUE_CREATED, "already-mapped", ticket_key=issue.key, thread_id=existing.thread_id)

        ticket = parse_issue(issue, self.jira_site_url, jira_mention_resolver(self.db))
        message_id = await self._attempt(
            f"Failed to post notification for {issue.key}",
            self.chat.send_message(self.channel_id, card=build_ticket_card(ticket)),
        )
        thread_id = await self._attempt(
            f"Failed to open thread for {issue.key}",
            self.chat.start_thread(self.channel_id, message_id, thread_name(ticket)),
        )

        identity_store.save_thread_mapping(
            self.db,
            thread_id=thread_id,
            ticket_key=issue.key,
            message_id=message_id,
            channel_id=self.channel_id,
        )
        logger.info("jira_sync.issue_mirrored ticket_key=%s thread_id=%s message_id=%s", issue.key, thread_id, message_id)
        return SyncOutcome.success(
            ISSUE_CREATED,
            "created",
            ticket_key=issue.key,
            thread_id=thread_id,
            discord_message_id=message_id,
        )

    async def issue_updated(self, payload: JiraWebhookPayload) -> SyncOutcome:
        issue = _require_issue(payload)
        mapping = identity_store.get_mapping_by_ticket_key(self.db, issue.key)
        if mapping is None:
            logger.info("jira_sync.no_mapping event=%s ticket_key=%s", ISSUE_UPDATED, issue.key)
            return SyncOutcome.ignored(ISSUE_UPDATED, "no-mapping", ticket_key=issue.key)

        ticket = parse_issue(issue, self.jira_site_url, jira_mention_resolver(self.db))
        await self._attempt(
            f"Failed to update notification for {issue.key}",
            self.chat.edit_message(mapping.channel_id, mapping.message_id, card=build_ticket_card(ticket)),
        )
        logger.info("jira_sync.issue_updated ticket_key=%s message_id=%s", issue.key, mapping.message_id)
        return SyncOutcome.success(
            ISSUE_UPDATED,
            "updated",
            ticket_key=issue.key,
            thread_id=mapping.thread_id,
            discord_message_id=mapping.message_id,
        )

    async def issue_deleted(self, payload: JiraWebhookPayload) -> SyncOutcome:
        issue = _require_issue(payload)
        mapping = identity_store.get_mapping_by_ticket_key(self.db, issue.key)
        if mapping is None:
            logger.info("jira_sync.no_mapping event=%s ticket_key=%s", ISSUE_DELETED, issue.key)
            return SyncOutcome.ignored(ISSUE_DELETED, "no-mapping", ticket_key=issue.key)

        thread_id, channel_id, message_id = mapping.thread_id, mapping.channel_id, mapping.message_id

        # Each removal is independent: a thread that is already gone must not
        # keep the notification (or the mappings) alive.
        try:
            await self.chat.delete_thread(thread_id)
        except ChatPlatformError as exc:
            logger.warning("jira_sync.thread_delete_skipped ticket_key=%s thread_id=%s error=%s", issue.key, thread_id, exc)
        try:
            await self.chat.delete_message(channel_id, message_id)
        except ChatPlatformError as exc:
            logger.warning(
                "jira_sync.notification_delete_skipped ticket_key=%s message_id=%s error=%s",
                issue.key,
                message_id,
                exc,
            )

        removed = identity_store.delete_ticket_mappings(self.db, issue.key, thread_id)
        logger.info("jira_sync.issue_deleted ticket_key=%s comment_mappings_removed=%d", issue.key, removed)
        return SyncOutcome.success(
            ISSUE_DELETED,
            "deleted",
            ticket_key=issue.key,
            thread_id=thread_id,
            discord_message_id=message_id,
        )

    # --- comments ------------------------------------------------------------

    async def comment_created(self, payload: JiraWebhookPayload) -> SyncOutcome:
        issue, comment = _require_comment(payload)
        text = self.comment_text(comment)
        if is_self_originated(text):
            logger.info("jira_sync.self_originated_comment ticket_key=%s jira_comment_id=%s", issue.key, comment.id)
            return SyncOutcome.ignored(COMMENT_CREATED, "discord-originated", ticket_key=issue.key, jira_comment_id=comment.id)

        mapping = identity_store.get_mapping_by_ticket_key(self.db, issue.key)
        if mapping is None:
            logger.info("jira_sync.no_mapping event=%s ticket_key=%s", COMMENT_CREATED, issue.key)
            return SyncOutcome.ignored(COMMENT_CREATED, "no-mapping", ticket_key=issue.key, jira_comment_id=comment.id)

        mirrored = identity_store.get_comment_mapping_by_jira_comment(self.db, comment.id)
        if mirrored is not None:
            return SyncOutcome.ignored(
                COMMENT_CREATED,
                "already-mirrored",
                ticket_key=issue.key,
                jira_comment_id=comment.id,
                discord_message_id=mirrored.discord_message_id,
            )

        await self._attempt(
            f"Failed to reopen thread for {issue.key}",
            self.chat.unarchive_thread(mapping.thread_id),
        )
        message_id = await self._attempt(
            f"Failed to post comment {comment.id} to Discord",
            self.chat.send_message(mapping.thread_id, content=format_jira_comment(_author_name(comment), text)),
        )

        identity_store.save_comment_mapping(
            self.db,
            discord_message_id=message_id,
            jira_comment_id=comment.id,
            thread_id=mapping.thread_id,
            ticket_key=issue.key,
            source=SOURCE_JIRA,
        )
        logger.info(
            "jira_sync.comment_mirrored ticket_key=%s jira_comment_id=%s discord_message_id=%s",
            issue.key,
            comment.id,
            message_id,
        )
        return SyncOutcome.success(
            COMMENT_CREATED,
            "created",
            ticket_key=issue.key,
            thread_id=mapping.thread_id,
            discord_message_id=message_id,
            jira_comment_id=comment.id,
        )

    async def comment_updated(self, payload: JiraWebhookPayload) -> SyncOutcome:
        issue, comment = _require_comment(payload)
        text = self.comment_text(comment)
        if is_self_originated(text):
            return SyncOutcome.ignored(COMMENT_UPDATED, "discord-originated", ticket_key=issue.key, jira_comment_id=comment.id)

        mapping = identity_store.get_comment_mapping_by_jira_comment(self.db, comment.id)
        if mapping is None:
            logger.info("jira_sync.no_mapping event=%s jira_comment_id=%s", COMMENT_UPDATED, comment.id)
            return SyncOutcome.ignored(COMMENT_UPDATED, "no-mapping", ticket_key=issue.key, jira_comment_id=comment.id)

        await self._attempt(
            f"Failed to update Discord message for comment {comment.id}",
            self.chat.edit_message(
                mapping.thread_id,
                mapping.discord_message_id,
                content=format_jira_comment(_author_name(comment), text),
            ),
        )
        logger.info("jira_sync.comment_updated ticket_key=%s jira_comment_id=%s", issue.key, comment.id)
        return SyncOutcome.success(
            COMMENT_UPDATED,
            "updated",
            ticket_key=issue.key,
            thread_id=mapping.thread_id,
            discord_message_id=mapping.discord_message_id,
            jira_comment_id=comment.id,
        )

    async def comment_deleted(self, payload: JiraWebhookPayload) -> SyncOutcome:
        issue, comment = _require_comment(payload)
        mapping = identity_store.get_comment_mapping_by_jira_comment(self.db, comment.id)
        if mapping is None:
            logger.info("jira_sync.no_mapping event=%s jira_comment_id=%s", COMMENT_DELETED, comment.id)
            return SyncOutcome.ignored(COMMENT_DELETED, "no-mapping", ticket_key=issue.key, jira_comment_id=comment.id)

        thread_id, message_id = mapping.thread_id, mapping.discord_message_id
        try:
            await self.chat.delete_message(thread_id, message_id)
        except ChatNotFoundError:
            logger.info("jira_sync.message_already_gone jira_comment_id=%s discord_message_id=%s", comment.id, message_id)
        except ChatPlatformError as exc:
            logger.exception("jira_sync.remote_failed jira_comment_id=%s", comment.id)
            raise JiraSyncError(f"Failed to delete Discord message for comment {comment.id}: {exc}") from exc

        identity_store.delete_comment_mapping_by_jira_comment(self.db, comment.id)
        logger.info("jira_sync.comment_deleted ticket_key=%s jira_comment_id=%s", issue.key, comment.id)
        return SyncOutcome.success(
            COMMENT_DELETED,
            "deleted",
            ticket_key=issue.key,
            thread_id=thread_id,
            discord_message_id=message_id,
            jira_comment_id=comment.id,
        )

    # --- helpers -------------------------------------------------------------

    def comment_text(self, comment: JiraComment) -> str:
        """Render a comment body as Discord markdown with mentions resolved."""

        body = comment.body
        if body is None:
            return ""
        if isinstance(body, str):
            return replace_wiki_mentions(self.db, body)
        return render({"type": "doc", "content": body.get("content") or []}, jira_mention_resolver(self.db))

    async def _attempt(self, description: str, remote: Awaitable[T]) -> T:
        """Run one remote step; mapping writes only follow a successful attempt."""

        try:
            return await remote
        except ChatPlatformError as exc:
            logger.exception("jira_sync.remote_failed step=%r", description)
            raise JiraSyncError(f"{description}: {exc}") from exc


def _require_issue(payload: JiraWebhookPayload) -> JiraIssue:
    if payload.issue is None:
        raise InvalidWebhookPayload("No issue in payload")
    return payload.issue


def _require_comment(payload: JiraWebhookPayload) -> tuple[JiraIssue, JiraComment]:
    if payload.issue is None or payload.comment is None:
        raise InvalidWebhookPayload("No issue or comment in payload")
    return payload.issue, payload.comment


def _author_name(comment: JiraComment) -> str:
    if comment.author is not None and comment.author.display_name:
        return comment.author.display_name
    return "Unknown"
