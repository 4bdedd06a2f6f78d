"""Repository functions for tutor chat sessions.

Every function is scoped to the owning user: a session id that belongs to
somebody else behaves exactly like an id that does not exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from tutoring.db.database import get_db, with_db_retry
from tutoring.db.models import ChatSession, as_utc, utcnow

logger = structlog.get_logger(__name__)


@dataclass
class ChatSessionRecord:
    """Chat session record from database."""

    id: str
    user_id: str
    subject: str
    topic: str | None
    title: str | None
    last_message: str | None
    messages: list[dict[str, Any]] = field(default_factory=list)
    message_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Row representation returned by the API."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "subject": self.subject,
            "topic": self.topic,
            "title": self.title,
            "last_message": self.last_message,
            "messages": self.messages,
            "message_count": self.message_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


def _to_record(row: ChatSession) -> ChatSessionRecord:
    return ChatSessionRecord(
        id=row.id,
        user_id=row.user_id,
        subject=row.subject,
        topic=row.topic,
        title=row.title,
        last_message=row.last_message,
        messages=list(row.messages or []),
        message_count=row.message_count,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _owned(session, user_id: str, session_id: str) -> ChatSession | None:
    return (
        session.query(ChatSession)
        .filter(ChatSession.id == session_id, ChatSession.user_id == user_id)
        .first()
    )


@with_db_retry
def list_sessions(user_id: str) -> list[ChatSessionRecord]:
    """List a user's sessions, most recently updated first."""
    with get_db() as session:
        rows = (
            session.query(ChatSession)
            .filter(ChatSession.user_id == user_id)
            .order_by(ChatSession.updated_at.desc())
            .all()
        )
        return [_to_record(r) for r in rows]


@with_db_retry
def get_session(user_id: str, session_id: str) -> ChatSessionRecord | None:
    """Get one session owned by the user."""
    with get_db() as session:
        row = _owned(session, user_id, session_id)
        return _to_record(row) if row is not None else None


@with_db_retry
def create_session(
    user_id: str,
    subject: str = "general",
    topic: str | None = None,
    title: str | None = None,
    last_message: str | None = None,
    messages: list[dict[str, Any]] | None = None,
) -> ChatSessionRecord:
    """Insert a new chat session."""
    messages = messages or []
    with get_db() as session:
        row = ChatSession(
            user_id=user_id,
            subject=subject or "general",
            topic=topic,
            title=title,
            last_message=last_message,
            messages=messages,
            message_count=len(messages),
        )
        session.add(row)
        session.flush()
        record = _to_record(row)

    logger.info("chat_session_created", session_id=record.id, subject=record.subject)
    return record


@with_db_retry
def update_session(
    user_id: str,
    session_id: str,
    subject: str | None = None,
    topic: str | None = None,
    title: str | None = None,
    last_message: str | None = None,
    messages: list[dict[str, Any]] | None = None,
) -> ChatSessionRecord | None:
    """Update an existing session owned by the user.

    Fields left as None keep their stored value. ``message_count`` always
    follows the stored message list.

    Returns:
        Updated record, or None if the session is not owned by the user
    """
    with get_db() as session:
        row = _owned(session, user_id, session_id)
        if row is None:
            return None

        if subject is not None:
            row.subject = subject
        if topic is not None:
            row.topic = topic
        if title is not None:
            row.title = title
        if last_message is not None:
            row.last_message = last_message
        if messages is not None:
            row.messages = messages
            row.message_count = len(messages)
        row.updated_at = utcnow()
        session.flush()
        record = _to_record(row)

    logger.debug("chat_session_updated", session_id=session_id, message_count=record.message_count)
    return record


def save_session(
    user_id: str,
    session_id: str | None = None,
    **fields: Any,
) -> ChatSessionRecord | None:
    """Upsert: update when ``session_id`` is given, create otherwise.

    Returns None when ``session_id`` does not name a session of this user.
    """
    if session_id:
        return update_session(user_id, session_id, **fields)
    return create_session(user_id, **fields)


@with_db_retry
def delete_session(user_id: str, session_id: str) -> bool:
    """Delete one session. Returns False if it is not owned by the user."""
    with get_db() as session:
        row = _owned(session, user_id, session_id)
        if row is None:
            return False
        session.delete(row)

    logger.info("chat_session_deleted", session_id=session_id)
    return True


@with_db_retry
def delete_all_sessions(user_id: str) -> int:
    """Delete every session of a user. Returns the number removed."""
    with get_db() as session:
        count = (
            session.query(ChatSession)
            .filter(ChatSession.user_id == user_id)
            .delete(synchronize_session=False)
        )

    logger.info("chat_sessions_cleared", user_id=user_id, count=count)
    return count
