"""ORM models package exports."""

from relay.models.comment_message_mapping import CommentMessageMapping
from relay.models.thread_ticket_mapping import ThreadTicketMapping
from relay.models.user_mapping import UserMapping

__all__ = [
    "ThreadTicketMapping",
    "UserMapping",
    "CommentMessageMapping",
]
