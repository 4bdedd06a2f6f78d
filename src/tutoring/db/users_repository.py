"""Repository functions for the users table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError

from tutoring.db.database import get_db, with_db_retry
from tutoring.db.models import User, as_utc, utcnow

logger = structlog.get_logger(__name__)

# Profile fields a user may edit, keyed by column name
PROFILE_FIELDS = (
    "first_name",
    "last_name",
    "phone",
    "grade_level",
    "school",
    "avatar",
    "full_image",
)


class DuplicateEmailError(Exception):
    """A user with this email already exists."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"User with email {email} already exists")


@dataclass
class UserRecord:
    """User record from database."""

    id: str
    email: str
    password_hash: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    grade_level: str | None
    school: str | None
    avatar: str | None
    full_image: str | None
    created_at: datetime
    updated_at: datetime

    def public_dict(self) -> dict[str, Any]:
        """User fields safe to return to clients (no password hash)."""
        return {
            "id": self.id,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "gradeLevel": self.grade_level,
            "school": self.school,
            "avatar": self.avatar,
        }

    def profile_dict(self) -> dict[str, Any]:
        """Public fields plus the full-size profile image."""
        data = self.public_dict()
        data["fullImage"] = self.full_image
        return data


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _to_record(row: User) -> UserRecord:
    return UserRecord(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        first_name=row.first_name,
        last_name=row.last_name,
        phone=row.phone,
        grade_level=row.grade_level,
        school=row.school,
        avatar=row.avatar,
        full_image=row.full_image,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


@with_db_retry
def get_user_by_email(email: str) -> UserRecord | None:
    """Get user by email (case-insensitive)."""
    with get_db() as session:
        row = session.query(User).filter(User.email == normalize_email(email)).first()
        return _to_record(row) if row is not None else None


@with_db_retry
def get_user_by_id(user_id: str) -> UserRecord | None:
    """Get user by ID."""
    with get_db() as session:
        row = session.get(User, user_id)
        return _to_record(row) if row is not None else None


@with_db_retry
def create_user(
    email: str,
    password_hash: str,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
    grade_level: str | None = None,
    school: str | None = None,
) -> UserRecord:
    """Insert a new user.

    Args:
        email: Login email (stored lowercased)
        password_hash: bcrypt hash, never the plaintext password

    Raises:
        DuplicateEmailError: If the email is already registered
    """
    email = normalize_email(email)
    try:
        with get_db() as session:
            if session.query(User.id).filter(User.email == email).first() is not None:
                raise DuplicateEmailError(email)

            row = User(
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
                grade_level=grade_level,
                school=school,
            )
            session.add(row)
            session.flush()
            record = _to_record(row)
    except IntegrityError as e:
        # Concurrent signup with the same email
        raise DuplicateEmailError(email) from e

    logger.info("user_created", user_id=record.id)
    return record


@with_db_retry
def update_profile(user_id: str, fields: dict[str, Any]) -> UserRecord | None:
    """Update profile fields of a user.

    Only keys listed in PROFILE_FIELDS are applied; empty strings are stored
    as NULL.

    Returns:
        Updated UserRecord, or None if the user does not exist
    """
    with get_db() as session:
        row = session.get(User, user_id)
        if row is None:
            return None

        for key, value in fields.items():
            if key not in PROFILE_FIELDS:
                continue
            setattr(row, key, value if value != "" else None)
        row.updated_at = utcnow()
        session.flush()
        record = _to_record(row)

    logger.info("user_profile_updated", user_id=user_id, fields=sorted(k for k in fields if k in PROFILE_FIELDS))
    return record
