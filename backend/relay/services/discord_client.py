"""Discord side of the relay: the chat-platform client contract and its discord.py implementation."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

import discord

from relay.services.tickets import TicketCard

logger = logging.getLogger(__name__)

THREAD_AUTO_ARCHIVE_MINUTES = 10080


class ChatPlatformError(RuntimeError):
    """Raised when a Discord API call fails."""


class ChatNotFoundError(ChatPlatformError):
    """The channel, thread or message no longer exists."""


class ChatPermissionError(ChatPlatformError):
    """The bot is not allowed to perform the action."""


@dataclass(slots=True)
class ChatMessage:
    """Platform-neutral view of a Discord message."""

    id: str
    channel_id: str
    author_id: str
    author_name: str
    author_is_bot: bool
    content: str
    in_thread: bool


class ChatPlatformClient(Protocol):
    """Discord operations the reconcilers depend on."""

    async def send_message(self, channel_id: str, *, content: str | None = None, card: TicketCard | None = None) -> str:
        """Post a message and return its id."""

    async def start_thread(self, channel_id: str, message_id: str, name: str) -> str:
        """Open a thread on a message and return the thread id."""

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        *,
        content: str | None = None,
        card: TicketCard | None = None,
    ) -> None:
        """Replace a message's content or card."""

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        """Delete one message."""

    async def fetch_message(self, channel_id: str, message_id: str) -> ChatMessage:
        """Load a full message."""

    async def delete_thread(self, thread_id: str) -> None:
        """Delete a thread and its messages."""

    async def unarchive_thread(self, thread_id: str) -> None:
        """Reopen an archived thread; no-op when it is already open."""


@contextlib.contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except discord.NotFound as exc:
        raise ChatNotFoundError(f"{action}: not found ({exc.text or exc.status})") from exc
    except discord.Forbidden as exc:
        raise ChatPermissionError(f"{action}: forbidden ({exc.text or exc.status})") from exc
    except discord.HTTPException as exc:
        raise ChatPlatformError(f"{action}: Discord HTTP {exc.status} ({exc.text})") from exc


def chat_message_from_discord(message: discord.Message) -> ChatMessage:
    author = message.author
    return ChatMessage(
        id=str(message.id),
        channel_id=str(message.channel.id),
        author_id=str(author.id),
        author_name=getattr(author, "display_name", None) or author.name,
        author_is_bot=bool(author.bot),
        content=message.content or "",
        in_thread=isinstance(message.channel, discord.Thread),
    )


def card_to_embed(card: TicketCard) -> discord.Embed:
    embed = discord.Embed(
        title=card.title,
        url=card.url,
        color=card.color,
        timestamp=discord.utils.utcnow(),
    )
    for card_field in card.fields:
        embed.add_field(name=card_field.name, value=card_field.value, inline=card_field.inline)
    embed.set_footer(text=card.footer)
    return embed


class DiscordChatClient:
    """ChatPlatformClient backed by a connected ``discord.Client``."""

    def __init__(self, client: discord.Client) -> None:
        self.client = client

    async def _channel(self, channel_id: str) -> discord.TextChannel | discord.Thread:
        channel = self.client.get_channel(int(channel_id))
        if channel is None:
            with _translate_errors(f"fetch channel {channel_id}"):
                channel = await self.client.fetch_channel(int(channel_id))
        if not isinstance(channel, (discord.TextChannel, discord.Thread)):
            raise ChatPlatformError(f"Channel {channel_id} is not a text channel or thread")
        return channel

    async def send_message(self, channel_id: str, *, content: str | None = None, card: TicketCard | None = None) -> str:
        channel = await self._channel(channel_id)
        with _translate_errors(f"send message to {channel_id}"):
            message = await channel.send(
                content=content,
                embed=card_to_embed(card) if card is not None else None,
                allowed_mentions=discord.AllowedMentions(users=True, roles=False, everyone=False),
            )
        return str(message.id)

    async def start_thread(self, channel_id: str, message_id: str, name: str) -> str:
        channel = await self._channel(channel_id)
        with _translate_errors(f"start thread on {message_id}"):
            thread = await channel.get_partial_message(int(message_id)).create_thread(
                name=name,
                auto_archive_duration=THREAD_AUTO_ARCHIVE_MINUTES,
            )
        return str(thread.id)

    async def edit_message(
        self,
        channel_id: str,
        message_id: str,
        *,
        content: str | None = None,
        card: TicketCard | None = None,
    ) -> None:
        channel = await self._channel(channel_id)
        kwargs: dict[str, object] = {"allowed_mentions": discord.AllowedMentions(users=True, roles=False, everyone=False)}
        if content is not None:
            kwargs["content"] = content
        if card is not None:
            kwargs["embed"] = card_to_embed(card)
        with _translate_errors(f"edit message {message_id}"):
            await channel.get_partial_message(int(message_id)).edit(**kwargs)

    async def delete_message(self, channel_id: str, message_id: str) -> None:
        channel = await self._channel(channel_id)
        with _translate_errors(f"delete message {message_id}"):
            await channel.get_partial_message(int(message_id)).delete()

    async def fetch_message(self, channel_id: str, message_id: str) -> ChatMessage:
        channel = await self._channel(channel_id)
        with _translate_errors(f"fetch message {message_id}"):
            message = await channel.fetch_message(int(message_id))
        return chat_message_from_discord(message)

    async def delete_thread(self, thread_id: str) -> None:
        thread = await self._channel(thread_id)
        if not isinstance(thread, discord.Thread):
            raise ChatPlatformError(f"Channel {thread_id} is not a thread")
        with _translate_errors(f"delete thread {thread_id}"):
            await thread.delete()

    async def unarchive_thread(self, thread_id: str) -> None:
        thread = await self._channel(thread_id)
        if isinstance(thread, discord.Thread) and thread.archived:
            with _translate_errors(f"unarchive thread {thread_id}"):
                await thread.edit(archived=False)
            logger.info("discord_client.thread_unarchived thread_id=%s", thread_id)
