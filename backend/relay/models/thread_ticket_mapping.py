"""Thread/ticket mapping ORM model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from relay.models.base import Base, CreatedAtMixin, IdMixin


class ThreadTicketMapping(Base, IdMixin, CreatedAtMixin):
    """A Jira issue's notification message and its Discord discussion thread."""

    __tablename__ = "thread_ticket_mappings"

    thread_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    ticket_key: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    message_id: Mapped[str] = mapped_column(String(64), nullable=False)
    channel_id: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<ThreadTicketMapping(ticket_key='{self.ticket_key}', thread_id='{self.thread_id}')>"
