"""Discord gateway client that feeds thread activity into the Discord-side reconciler."""

from __future__ import annotations

import logging
from collections.abc import Callable

import discord
from sqlalchemy.orm import Session

from relay.db.session import SessionLocal
from relay.schemas.sync import SyncOutcome
from relay.services.discord_client import DiscordChatClient, chat_message_from_discord
from relay.services.discord_sync import ChatMessageEdit, DiscordSyncService
from relay.services.jira_client import JiraClient

logger = logging.getLogger(__name__)


def build_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True
    return intents


class RelayBot(discord.Client):
    """Listens for thread messages, edits, deletions and thread removal."""

    def __init__(
        self,
        jira: JiraClient,
        *,
        session_factory: Callable[[], Session] = SessionLocal,
    ) -> None:
        super().__init__(intents=build_intents())
        self.jira = jira
        self.session_factory = session_factory
        self.chat = DiscordChatClient(self)

    def _service(self, db: Session) -> DiscordSyncService:
        return DiscordSyncService(
            db=db,
            chat=self.chat,
            jira=self.jira,
            bot_user_id=str(self.user.id) if self.user else None,
        )

    def _in_thread(self, channel_id: int) -> bool:
        # An uncached channel is left to the thread-mapping lookup.
        channel = self.get_channel(channel_id)
        return channel is None or isinstance(channel, discord.Thread)

    async def on_ready(self) -> None:
        logger.info("bot.ready user=%s guilds=%d", self.user, len(self.guilds))

    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or not isinstance(message.channel, discord.Thread):
            return
        with self.session_factory() as db:
            outcome = await self._service(db).message_created(chat_message_from_discord(message))
        _log_outcome(outcome)

    async def on_raw_message_edit(self, payload: discord.RawMessageUpdateEvent) -> None:
        if not self._in_thread(payload.channel_id):
            return
        cached = payload.cached_message
        edit = ChatMessageEdit(
            message_id=str(payload.message_id),
            channel_id=str(payload.channel_id),
            in_thread=True,
            previous_content=cached.content if cached is not None else None,
        )
        with self.session_factory() as db:
            outcome = await self._service(db).message_updated(edit)
        _log_outcome(outcome)

    async def on_raw_message_delete(self, payload: discord.RawMessageDeleteEvent) -> None:
        if not self._in_thread(payload.channel_id):
            return
        with self.session_factory() as db:
            outcome = await self._service(db).message_deleted(str(payload.message_id))
        _log_outcome(outcome)

    async def on_raw_thread_delete(self, payload: discord.RawThreadDeleteEvent) -> None:
        with self.session_factory() as db:
            outcome = await self._service(db).thread_deleted(str(payload.thread_id))
        _log_outcome(outcome)


def _log_outcome(outcome: SyncOutcome) -> None:
    level = logging.WARNING if outcome.status == "failed" else logging.DEBUG
    logger.log(
        level,
        "bot.outcome event=%s status=%s action=%s reason=%s ticket_key=%s",
        outcome.event,
        outcome.status,
        outcome.action,
        outcome.reason,
        outcome.ticket_key,
    )
