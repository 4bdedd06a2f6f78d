"""ORM models for users, tutor chat sessions and exam results.

Deleting a user does not cascade to their sessions or results.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text

from tutoring.db.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite returns naive datetimes; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), unique=True, index=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(32), nullable=True)
    grade_level = Column(String(50), nullable=True)
    school = Column(String(200), nullable=True)
    # Inline data URLs
    avatar = Column(Text, nullable=True)
    full_image = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ChatSession(Base):
    __tablename__ = "chat_sessions"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), index=True, nullable=False)
    subject = Column(String(50), nullable=False, default="general")
    topic = Column(String(100), nullable=True)
    title = Column(String(200), nullable=True)
    last_message = Column(Text, nullable=True)
    messages = Column(JSON, nullable=False, default=list)
    message_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class ExamResult(Base):
    __tablename__ = "exam_results"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), index=True, nullable=False)
    subject = Column(String(50), nullable=False)
    score = Column(Float, nullable=False, default=0)
    max_score = Column(Float, nullable=False, default=0)
    percentage = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    time_spent = Column(Integer, nullable=False, default=0)  # minutes
    # {exam, answers, questionResults}
    answers = Column(JSON, nullable=True)
    feedback = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
