"""Discord event reconciliation: mirrors thread messages into Jira comments."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from relay.schemas.sync import SyncOutcome
from relay.services import identity_store
from relay.services.adf import build_document
from relay.services.discord_client import ChatMessage, ChatPlatformClient, ChatPlatformError
from relay.models.comment_message_mapping import SOURCE_DISCORD
from relay.services.jira_client import JiraApiError, JiraClient
from relay.services.jira_sync import DISCORD_MESSAGE_LIMIT
from relay.services.mentions import discord_text_to_adf_nodes
from relay.services.origin import mark_self_originated

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message_create"
MESSAGE_UPDATED = "message_update"
MESSAGE_DELETED = "message_delete"
THREAD_DELETED = "thread_delete"

_BLOCK_SPLIT_RE = re.compile(r"\n[ \t]*\n")

# A stalled or dropped connection can surface from the Jira client as a bare
# OSError (TimeoutError, ConnectionResetError) instead of JiraApiError.
_JIRA_ERRORS = (JiraApiError, OSError)


@dataclass(slots=True)
class ChatMessageEdit:
    """An edit notification; ``message`` is None when only partial data arrived."""

    message_id: str
    channel_id: str
    in_thread: bool
    message: ChatMessage | None = None
    previous_content: str | None = None


def format_discord_repost(author: str, content: str) -> str:
    """Frame a Discord user's text for the bot-owned repost."""

    reposted = f"**{author}:** {content}"
    if len(reposted) > DISCORD_MESSAGE_LIMIT:
        reposted = f"{reposted[: DISCORD_MESSAGE_LIMIT - 3]}..."
    return reposted


def build_comment_document(db: Session, author: str, content: str) -> dict[str, Any]:
    """Build the origin-marked ADF body of a Jira comment written on behalf of ``author``."""

    marked = mark_self_originated(content, author)
    paragraphs = []
    for block in _BLOCK_SPLIT_RE.split(marked):
        nodes: list[dict[str, Any]] = []
        for index, line in enumerate(block.split("\n")):
            if index:
                nodes.append({"type": "hardBreak"})
            nodes.extend(discord_text_to_adf_nodes(db, line))
        paragraphs.append(nodes)
    return build_document(paragraphs)


@dataclass(slots=True)
class DiscordSyncService:
    """Applies one Discord gateway event to Jira and the identity store."""

    db: Session
    chat: ChatPlatformClient
    jira: JiraClient
    bot_user_id: str | None = None

    async def message_created(self, message: ChatMessage) -> SyncOutcome:
        if self._is_own_or_bot(message):
            return SyncOutcome.ignored(MESSAGE_CREATED, "bot-author", discord_message_id=message.id)
        if not message.in_thread:
            return SyncOutcome.ignored(MESSAGE_CREATED, "not-thread", discord_message_id=message.id)

        thread_id = message.channel_id
        ticket_key = identity_store.get_ticket_key_by_thread_id(self.db, thread_id)
        if ticket_key is None:
            return SyncOutcome.ignored(MESSAGE_CREATED, "no-mapping", thread_id=thread_id, discord_message_id=message.id)

        content = message.content.strip()
        if not content:
            return SyncOutcome.ignored(
                MESSAGE_CREATED,
                "empty-content",
                ticket_key=ticket_key,
                thread_id=thread_id,
                discord_message_id=message.id,
            )

        author = message.author_name
        repost_id: str | None = None
        try:
            # The repost gives the comment a bot-owned message id that later
            # edit/delete events can be matched against.
            await self.chat.delete_message(thread_id, message.id)
            repost_id = await self.chat.send_message(thread_id, content=format_discord_repost(author, content))
            identity_store.save_comment_mapping(
                self.db,
                discord_message_id=repost_id,
                jira_comment_id=None,
                thread_id=thread_id,
                ticket_key=ticket_key,
                source=SOURCE_DISCORD,
            )

            body = build_comment_document(self.db, author, content)
            jira_comment_id = await asyncio.to_thread(self.jira.add_comment, ticket_key, body)
            identity_store.set_jira_comment_id(self.db, repost_id, jira_comment_id)
        except (ChatPlatformError, JiraApiError, OSError, SQLAlchemyError) as exc:
            logger.exception(
                "discord_sync.comment_failed ticket_key=%s thread_id=%s discord_message_id=%s",
                ticket_key,
                thread_id,
                message.id,
            )
            if isinstance(exc, SQLAlchemyError):
                self.db.rollback()
            await self._post_failure_notice(thread_id, ticket_key, exc)
            return SyncOutcome.failed(
                MESSAGE_CREATED,
                str(exc),
                ticket_key=ticket_key,
                thread_id=thread_id,
                discord_message_id=repost_id or message.id,
            )

        logger.info(
            "discord_sync.comment_mirrored ticket_key=%s author=%r jira_comment_id=%s discord_message_id=%s",
            ticket_key,
            author,
            jira_comment_id,
            repost_id,
        )
        return SyncOutcome.success(
            MESSAGE_CREATED,
            "created",
            ticket_key=ticket_key,
            thread_id=thread_id,
            discord_message_id=repost_id,
            jira_comment_id=jira_comment_id,
        )

    async def message_updated(self, edit: ChatMessageEdit) -> SyncOutcome:
        if not edit.in_thread:
            return SyncOutcome.ignored(MESSAGE_UPDATED, "not-thread", discord_message_id=edit.message_id)

        message = edit.message
        if message is None:
            try:
                message = await self.chat.fetch_message(edit.channel_id, edit.message_id)
            except ChatPlatformError as exc:
                logger.info("discord_sync.fetch_failed discord_message_id=%s error=%s", edit.message_id, exc)
                return SyncOutcome.ignored(MESSAGE_UPDATED, "fetch-failed", discord_message_id=edit.message_id)

        if self._is_own_or_bot(message):
            return SyncOutcome.ignored(MESSAGE_UPDATED, "bot-author", discord_message_id=message.id)
        if edit.previous_content is not None and edit.previous_content == message.content:
            return SyncOutcome.ignored(MESSAGE_UPDATED, "content-unchanged", discord_message_id=message.id)

        mapping = identity_store.get_comment_mapping_by_discord_message(self.db, message.id)
        if mapping is None or mapping.jira_comment_id is None:
            return SyncOutcome.ignored(MESSAGE_UPDATED, "no-mapping", discord_message_id=message.id)
        if mapping.source != SOURCE_DISCORD:
            return SyncOutcome.ignored(
                MESSAGE_UPDATED,
                "jira-originated",
                ticket_key=mapping.ticket_key,
                discord_message_id=message.id,
                jira_comment_id=mapping.jira_comment_id,
            )

        body = build_comment_document(self.db, message.author_name, message.content)
        try:
            await asyncio.to_thread(self.jira.update_comment, mapping.ticket_key, mapping.jira_comment_id, body)
        except _JIRA_ERRORS as exc:
            logger.exception(
                "discord_sync.update_failed ticket_key=%s jira_comment_id=%s",
                mapping.ticket_key,
                mapping.jira_comment_id,
            )
            return SyncOutcome.failed(
                MESSAGE_UPDATED,
                str(exc),
                ticket_key=mapping.ticket_key,
                discord_message_id=message.id,
                jira_comment_id=mapping.jira_comment_id,
            )

        logger.info("discord_sync.comment_updated ticket_key=%s jira_comment_id=%s", mapping.ticket_key, mapping.jira_comment_id)
        return SyncOutcome.success(
            MESSAGE_UPDATED,
            "updated",
            ticket_key=mapping.ticket_key,
            thread_id=mapping.thread_id,
            discord_message_id=message.id,
            jira_comment_id=mapping.jira_comment_id,
        )

    async def message_deleted(self, message_id: str) -> SyncOutcome:
        """Handle a deletion using the message id alone; the message cannot be fetched any more."""

        mapping = identity_store.get_comment_mapping_by_discord_message(self.db, message_id)
        if mapping is None or mapping.jira_comment_id is None:
            return SyncOutcome.ignored(MESSAGE_DELETED, "no-mapping", discord_message_id=message_id)

        ticket_key = mapping.ticket_key
        jira_comment_id = mapping.jira_comment_id
        details = {"ticket_key": ticket_key, "discord_message_id": message_id, "jira_comment_id": jira_comment_id}

        if mapping.source != SOURCE_DISCORD:
            # Jira owns this comment; only forget the Discord copy.
            identity_store.delete_comment_mapping_by_discord_message(self.db, message_id)
            return SyncOutcome.success(MESSAGE_DELETED, "mapping-dropped", **details)

        # The local row goes whether or not Jira accepted the delete.
        try:
            await asyncio.to_thread(self.jira.delete_comment, ticket_key, jira_comment_id)
        except _JIRA_ERRORS as exc:
            logger.exception("discord_sync.delete_failed ticket_key=%s jira_comment_id=%s", ticket_key, jira_comment_id)
            outcome = SyncOutcome.failed(MESSAGE_DELETED, str(exc), **details)
        else:
            logger.info("discord_sync.comment_deleted ticket_key=%s jira_comment_id=%s", ticket_key, jira_comment_id)
            outcome = SyncOutcome.success(MESSAGE_DELETED, "deleted", **details)
        finally:
            identity_store.delete_comment_mapping_by_discord_message(self.db, message_id)
        return outcome

    async def thread_deleted(self, thread_id: str) -> SyncOutcome:
        mapping = identity_store.get_mapping_by_thread_id(self.db, thread_id)
        if mapping is None:
            return SyncOutcome.ignored(THREAD_DELETED, "no-mapping", thread_id=thread_id)

        ticket_key = mapping.ticket_key
        removed = identity_store.delete_ticket_mappings(self.db, ticket_key, thread_id)
        logger.info(
            "discord_sync.thread_deleted ticket_key=%s thread_id=%s comment_mappings_removed=%d",
            ticket_key,
            thread_id,
            removed,
        )
        return SyncOutcome.success(THREAD_DELETED, "mappings-removed", ticket_key=ticket_key, thread_id=thread_id)

    def _is_own_or_bot(self, message: ChatMessage) -> bool:
        return message.author_is_bot or (self.bot_user_id is not None and message.author_id == self.bot_user_id)

    async def _post_failure_notice(self, thread_id: str, ticket_key: str, exc: Exception) -> None:
        notice = f"❌ Failed to add this comment to {ticket_key} in Jira: {exc}"
        try:
            await self.chat.send_message(thread_id, content=notice[:DISCORD_MESSAGE_LIMIT])
        except ChatPlatformError:
            logger.exception("discord_sync.failure_notice_failed thread_id=%s", thread_id)
