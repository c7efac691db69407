"""FastAPI application entrypoint."""

from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi import FastAPI, Request

from relay.bot import RelayBot
from relay.config import RelayConfigError, get_settings
from relay.db.session import engine
from relay.logging_config import configure_logging
from relay.models.base import Base
from relay.routers import user_links, webhook
from relay.services.jira_client import get_default_jira_client

logger = logging.getLogger(__name__)


def _log_bot_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("bot.stopped error=%r", exc, exc_info=exc)


def _build_bot() -> RelayBot | None:
    settings = get_settings()
    if not settings.enable_discord_bot:
        logger.info("bot.disabled")
        return None
    try:
        settings.require("discord_bot_token", "discord_channel_id")
        jira = get_default_jira_client()
    except RelayConfigError:
        logger.exception("bot.not_started")
        return None
    return RelayBot(jira)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    Base.metadata.create_all(engine)

    bot = _build_bot()
    bot_task: asyncio.Task | None = None
    app.state.bot = bot
    app.state.chat_client = bot.chat if bot is not None else None
    if bot is not None:
        bot_task = asyncio.create_task(bot.start(settings.discord_bot_token or ""))
        bot_task.add_done_callback(_log_bot_exit)

    yield

    if bot is not None:
        await bot.close()
    if bot_task is not None and not bot_task.done():
        bot_task.cancel()


app = FastAPI(title="Jira Discord Relay", version="0.1.0", lifespan=lifespan)

app.include_router(webhook.router, tags=["webhook"])
app.include_router(user_links.router, tags=["user-links"])


@app.get("/health")
def health(request: Request) -> dict[str, str]:
    """Health check including the Discord gateway state."""

    bot: RelayBot | None = getattr(request.app.state, "bot", None)
    if bot is None:
        discord_state = "disabled"
    elif bot.is_ready() and not bot.is_closed():
        discord_state = "connected"
    else:
        discord_state = "connecting"
    return {"status": "ok", "discord": discord_state}
