"""Jira webhook receiver."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from relay.config import RelayConfigError, Settings, get_settings
from relay.db.dependencies import get_db
from relay.schemas.common import ApiResponse
from relay.schemas.jira_webhook import JiraWebhookPayload
from relay.schemas.sync import SyncOutcome
from relay.services.discord_client import ChatPlatformClient
from relay.services.jira_sync import SUPPORTED_EVENTS, InvalidWebhookPayload, JiraSyncError, JiraSyncService

router = APIRouter()


def get_chat_client(request: Request) -> ChatPlatformClient:
    """Return the Discord client started by the application lifespan."""

    chat_client = getattr(request.app.state, "chat_client", None)
    if chat_client is None:
        raise HTTPException(status_code=503, detail="Discord client is not connected")
    return chat_client


@router.post("/webhook/jira", response_model=ApiResponse[SyncOutcome])
async def receive_jira_webhook(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    chat: ChatPlatformClient = Depends(get_chat_client),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[SyncOutcome]:
    """Mirror one Jira issue/comment event into Discord."""

    event = str(payload.get("webhookEvent") or "")
    if event not in SUPPORTED_EVENTS:
        return ApiResponse(data=SyncOutcome.ignored(event, "unsupported-event"))

    try:
        webhook = JiraWebhookPayload.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=f"Malformed {event} payload: {exc.error_count()} error(s)") from exc

    try:
        settings.require("discord_channel_id", "jira_host")
    except RelayConfigError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    service = JiraSyncService(
        db=db,
        chat=chat,
        channel_id=settings.discord_channel_id or "",
        jira_site_url=settings.jira_host or "",
    )
    try:
        outcome = await service.handle(webhook)
    except InvalidWebhookPayload as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except JiraSyncError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ApiResponse(data=outcome)
