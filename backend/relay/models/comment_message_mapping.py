"""Comment/message mapping ORM model."""

from typing import Literal

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from relay.models.base import Base, CreatedAtMixin, IdMixin

CommentSource = Literal["discord", "jira"]
SOURCE_DISCORD: CommentSource = "discord"
SOURCE_JIRA: CommentSource = "jira"


class CommentMessageMapping(Base, IdMixin, CreatedAtMixin):
    """A mirrored comment: one Discord message paired with one Jira comment.

    ``source`` names the system the content originated in. A Discord-originated
    row is saved before Jira answers, so ``jira_comment_id`` may be NULL for a
    short while (or permanently, if the Jira call failed).
    """

    __tablename__ = "comment_message_mappings"
    __table_args__ = (
        CheckConstraint("source IN ('discord', 'jira')", name="ck_comment_message_mappings_source"),
    )

    discord_message_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    jira_comment_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    thread_id: Mapped[str] = mapped_column(String(64), nullable=False)
    ticket_key: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False)
