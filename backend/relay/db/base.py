"""SQLAlchemy metadata registry import for Alembic."""

from relay.models import CommentMessageMapping, ThreadTicketMapping, UserMapping
from relay.models.base import Base

__all__ = ["Base", "ThreadTicketMapping", "UserMapping", "CommentMessageMapping"]
