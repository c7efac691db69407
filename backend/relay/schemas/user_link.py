"""User identity link request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class UserLinkUpsert(BaseModel):
    """Link payload; the Jira account id comes from the path."""

    jira_display_name: str = Field(min_length=1, max_length=255)
    discord_user_id: str = Field(min_length=1, max_length=64, pattern=r"^\d+$")


class UserLinkRead(BaseModel):
    """Serialized user link."""

    model_config = ConfigDict(from_attributes=True)

    jira_account_id: str
    jira_display_name: str
    discord_user_id: str
    created_at: datetime
