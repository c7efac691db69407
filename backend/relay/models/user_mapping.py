"""Linked Jira/Discord identity ORM model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from relay.models.base import Base, CreatedAtMixin, IdMixin


class UserMapping(Base, IdMixin, CreatedAtMixin):
    """One person's Jira account linked to their Discord user."""

    __tablename__ = "user_mappings"

    jira_account_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    jira_display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    discord_user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
