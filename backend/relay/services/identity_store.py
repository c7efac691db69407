"""Persistent identity mappings between Discord and Jira.

Every function takes the caller's session and commits its own write. Storage
errors propagate unchanged; nothing here retries.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from relay.models.comment_message_mapping import CommentMessageMapping, CommentSource
from relay.models.thread_ticket_mapping import ThreadTicketMapping
from relay.models.user_mapping import UserMapping

logger = logging.getLogger(__name__)


# --- thread <-> ticket -------------------------------------------------------


def save_thread_mapping(
    db: Session,
    *,
    thread_id: str,
    ticket_key: str,
    message_id: str,
    channel_id: str,
) -> ThreadTicketMapping:
    """Persist the notification message/thread for a ticket.

    A ticket is mapped at most once. A second save for the same ticket keeps
    the original row and returns it.
    """

    existing = get_mapping_by_ticket_key(db, ticket_key)
    if existing is not None:
        if existing.thread_id != thread_id:
            logger.warning(
                "identity_store.duplicate_ticket_mapping ticket_key=%s kept_thread_id=%s rejected_thread_id=%s",
                ticket_key,
                existing.thread_id,
                thread_id,
            )
        return existing

    mapping = ThreadTicketMapping(
        thread_id=thread_id,
        ticket_key=ticket_key,
        message_id=message_id,
        channel_id=channel_id,
    )
    db.add(mapping)
    db.commit()
    db.refresh(mapping)
    return mapping


def get_mapping_by_thread_id(db: Session, thread_id: str) -> ThreadTicketMapping | None:
    return db.scalar(select(ThreadTicketMapping).where(ThreadTicketMapping.thread_id == thread_id))


def get_mapping_by_ticket_key(db: Session, ticket_key: str) -> ThreadTicketMapping | None:
    return db.scalar(select(ThreadTicketMapping).where(ThreadTicketMapping.ticket_key == ticket_key))


def get_ticket_key_by_thread_id(db: Session, thread_id: str) -> str | None:
    return db.scalar(select(ThreadTicketMapping.ticket_key).where(ThreadTicketMapping.thread_id == thread_id))


def delete_mapping_by_thread_id(db: Session, thread_id: str) -> bool:
    """Delete a thread mapping; returns False when nothing was mapped."""

    result = db.execute(delete(ThreadTicketMapping).where(ThreadTicketMapping.thread_id == thread_id))
    db.commit()
    return bool(result.rowcount)


def list_thread_mappings(db: Session) -> list[ThreadTicketMapping]:
    stmt = select(ThreadTicketMapping).order_by(ThreadTicketMapping.created_at.desc(), ThreadTicketMapping.id.desc())
    return list(db.scalars(stmt).all())


# --- users ---------------------------------------------------------------------


def save_user_mapping(
    db: Session,
    *,
    jira_account_id: str,
    jira_display_name: str,
    discord_user_id: str,
) -> UserMapping:
    """Link a Jira account to a Discord user, overwriting any previous link."""

    mapping = get_user_by_jira_account_id(db, jira_account_id)
    if mapping is None:
        mapping = UserMapping(
            jira_account_id=jira_account_id,
            jira_display_name=jira_display_name,
            discord_user_id=discord_user_id,
        )
        db.add(mapping)
    else:
        mapping.jira_display_name = jira_display_name
        mapping.discord_user_id = discord_user_id
    db.commit()
    db.refresh(mapping)
    return mapping


def get_user_by_jira_account_id(db: Session, jira_account_id: str) -> UserMapping | None:
    return db.scalar(select(UserMapping).where(UserMapping.jira_account_id == jira_account_id))


def get_user_by_jira_display_name(db: Session, display_name: str) -> UserMapping | None:
    """Case-insensitive display-name lookup; the most recent link wins on ties."""

    clean = display_name.strip()
    if not clean:
        return None
    stmt = (
        select(UserMapping)
        .where(func.lower(UserMapping.jira_display_name) == clean.lower())
        .order_by(UserMapping.created_at.desc(), UserMapping.id.desc())
        .limit(1)
    )
    return db.scalar(stmt)


def get_user_by_discord_id(db: Session, discord_user_id: str) -> UserMapping | None:
    stmt = (
        select(UserMapping)
        .where(UserMapping.discord_user_id == discord_user_id)
        .order_by(UserMapping.created_at.desc(), UserMapping.id.desc())
        .limit(1)
    )
    return db.scalar(stmt)


def delete_user_mapping(db: Session, jira_account_id: str) -> bool:
    result = db.execute(delete(UserMapping).where(UserMapping.jira_account_id == jira_account_id))
    db.commit()
    return bool(result.rowcount)


def list_user_mappings(db: Session) -> list[UserMapping]:
    stmt = select(UserMapping).order_by(UserMapping.jira_display_name.asc(), UserMapping.id.asc())
    return list(db.scalars(stmt).all())


# --- comments <-> messages -----------------------------------------------------


def save_comment_mapping(
    db: Session,
    *,
    discord_message_id: str,
    jira_comment_id: str | None,
    thread_id: str,
    ticket_key: str,
    source: CommentSource,
) -> CommentMessageMapping:
    mapping = CommentMessageMapping(
        discord_message_id=discord_message_id,
        jira_comment_id=jira_comment_id,
        thread_id=thread_id,
        ticket_key=ticket_key,
        source=source,
    )
    db.add(mapping)
    db.commit()
    db.refresh(mapping)
    return mapping


def set_jira_comment_id(db: Session, discord_message_id: str, jira_comment_id: str) -> CommentMessageMapping | None:
    """Record the Jira id for a mapping that was saved before Jira answered."""

    mapping = get_comment_mapping_by_discord_message(db, discord_message_id)
    if mapping is None:
        return None
    mapping.jira_comment_id = jira_comment_id
    db.commit()
    db.refresh(mapping)
    return mapping


def get_comment_mapping_by_discord_message(db: Session, discord_message_id: str) -> CommentMessageMapping | None:
    return db.scalar(
        select(CommentMessageMapping).where(CommentMessageMapping.discord_message_id == discord_message_id)
    )


def get_comment_mapping_by_jira_comment(db: Session, jira_comment_id: str) -> CommentMessageMapping | None:
    return db.scalar(select(CommentMessageMapping).where(CommentMessageMapping.jira_comment_id == jira_comment_id))


def delete_comment_mapping_by_discord_message(db: Session, discord_message_id: str) -> bool:
    result = db.execute(
        delete(CommentMessageMapping).where(CommentMessageMapping.discord_message_id == discord_message_id)
    )
    db.commit()
    return bool(result.rowcount)


def delete_comment_mapping_by_jira_comment(db: Session, jira_comment_id: str) -> bool:
    result = db.execute(delete(CommentMessageMapping).where(CommentMessageMapping.jira_comment_id == jira_comment_id))
    db.commit()
    return bool(result.rowcount)


def delete_comment_mappings_by_ticket_key(db: Session, ticket_key: str) -> int:
    result = db.execute(delete(CommentMessageMapping).where(CommentMessageMapping.ticket_key == ticket_key))
    db.commit()
    return int(result.rowcount or 0)


def list_comment_mappings(db: Session, ticket_key: str | None = None) -> list[CommentMessageMapping]:
    stmt = select(CommentMessageMapping)
    if ticket_key is not None:
        stmt = stmt.where(CommentMessageMapping.ticket_key == ticket_key)
    stmt = stmt.order_by(CommentMessageMapping.created_at.asc(), CommentMessageMapping.id.asc())
    return list(db.scalars(stmt).all())


# --- cascade -------------------------------------------------------------------


def delete_ticket_mappings(db: Session, ticket_key: str, thread_id: str) -> int:
    """Drop every comment mapping of a ticket, then its thread mapping.

    Comment rows go first so no comment mapping outlives its thread. If the
    second step fails the error propagates; the comment deletions stay.
    Returns the number of comment rows removed.
    """

    removed_comments = delete_comment_mappings_by_ticket_key(db, ticket_key)
    delete_mapping_by_thread_id(db, thread_id)
    return removed_comments
