"""Jira/Discord identity link administration routes."""

from fastapi import APIRouter, Depends, Header, HTTPException, Path
from sqlalchemy.orm import Session

from relay.config import Settings, get_settings
from relay.db.dependencies import get_db
from relay.schemas.common import ApiResponse, DeleteResult
from relay.schemas.user_link import UserLinkRead, UserLinkUpsert
from relay.services.identity_store import delete_user_mapping, list_user_mappings, save_user_mapping


def require_admin_token(
    x_admin_token: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Check ``X-Admin-Token`` when an admin token is configured."""

    if settings.admin_api_token and x_admin_token != settings.admin_api_token:
        raise HTTPException(status_code=401, detail="Invalid admin token")


router = APIRouter(prefix="/user-links", dependencies=[Depends(require_admin_token)])


@router.get("", response_model=ApiResponse[list[UserLinkRead]])
def get_user_links(db: Session = Depends(get_db)) -> ApiResponse[list[UserLinkRead]]:
    """List every linked identity."""

    return ApiResponse(data=[UserLinkRead.model_validate(row) for row in list_user_mappings(db)])


@router.put("/{jira_account_id}", response_model=ApiResponse[UserLinkRead])
def put_user_link(
    payload: UserLinkUpsert,
    jira_account_id: str = Path(..., min_length=1, max_length=128),
    db: Session = Depends(get_db),
) -> ApiResponse[UserLinkRead]:
    """Link (or re-link) a Jira account to a Discord user."""

    mapping = save_user_mapping(
        db,
        jira_account_id=jira_account_id.strip(),
        jira_display_name=payload.jira_display_name.strip(),
        discord_user_id=payload.discord_user_id,
    )
    return ApiResponse(data=UserLinkRead.model_validate(mapping))


@router.delete("/{jira_account_id}", response_model=ApiResponse[DeleteResult])
def remove_user_link(
    jira_account_id: str = Path(..., min_length=1, max_length=128),
    db: Session = Depends(get_db),
) -> ApiResponse[DeleteResult]:
    """Unlink a Jira account."""

    if not delete_user_mapping(db, jira_account_id):
        raise HTTPException(status_code=404, detail="User link not found")
    return ApiResponse(data=DeleteResult(id=jira_account_id, deleted=True))
