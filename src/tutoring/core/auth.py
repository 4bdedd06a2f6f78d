"""Password hashing and session tokens.

Tokens are HS256 JWTs carrying ``{id, email}`` and a fixed 7-day expiry.
Verification is uniform: a missing, malformed, expired or wrongly signed
token yields ``None`` and nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import structlog
from jose import JWTError, jwt

from tutoring.config.app_config import AppConfig, load_app_config
from tutoring.db import users_repository
from tutoring.db.users_repository import UserRecord

logger = structlog.get_logger(__name__)

# bcrypt only looks at the first 72 bytes
BCRYPT_MAX_BYTES = 72


class AuthConfigurationError(Exception):
    """No signing secret is available (production without JWT_SECRET)."""

    pass


@dataclass(frozen=True)
class Principal:
    """Verified identity carried by a session token."""

    id: str
    email: str


# =============================================================================
# PASSWORDS
# =============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt with a fresh salt.

    Raises:
        ValueError: If the password is empty
    """
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    if not password_bytes:
        raise ValueError("Password cannot be empty")

    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against a stored bcrypt hash."""
    password_bytes = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    if not password_bytes or not password_hash:
        return False

    try:
        return bcrypt.checkpw(password_bytes, password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("password_hash_invalid")
        return False


# =============================================================================
# TOKENS
# =============================================================================


def _secret(config: AppConfig) -> str:
    secret = config.effective_jwt_secret()
    if secret is None:
        raise AuthConfigurationError("JWT_SECRET must be set in production")
    return secret


def issue_token(
    principal: Principal,
    now: datetime | None = None,
    config: AppConfig | None = None,
) -> str:
    """Sign a session token for a principal.

    Raises:
        AuthConfigurationError: If no signing secret is configured
    """
    config = config or load_app_config()
    now = now or datetime.now(timezone.utc)
    expires = now + timedelta(days=config.auth.token_ttl_days)

    claims = {
        "id": principal.id,
        "email": principal.email,
        "iat": int(now.timestamp()),
        "exp": int(expires.timestamp()),
    }
    token = jwt.encode(claims, _secret(config), algorithm=config.auth.algorithm)
    logger.debug("token_issued", user_id=principal.id)
    return token


def verify_token(token: str | None, config: AppConfig | None = None) -> Principal | None:
    """Return the principal carried by a valid token, or None."""
    if not token:
        return None

    config = config or load_app_config()
    secret = config.effective_jwt_secret()
    if secret is None:
        logger.error("token_verification_without_secret")
        return None

    try:
        claims = jwt.decode(token, secret, algorithms=[config.auth.algorithm])
    except JWTError as e:
        logger.debug("token_rejected", reason=type(e).__name__)
        return None

    user_id = claims.get("id")
    email = claims.get("email")
    if not isinstance(user_id, str) or not isinstance(email, str):
        logger.debug("token_rejected", reason="missing_claims")
        return None

    return Principal(id=user_id, email=email)


def token_max_age_seconds(config: AppConfig | None = None) -> int:
    """Cookie max-age matching the token lifetime."""
    config = config or load_app_config()
    return config.auth.token_ttl_days * 24 * 60 * 60


# =============================================================================
# LOGIN
# =============================================================================


def authenticate(email: str, password: str) -> UserRecord | None:
    """Look up a user by email and check the password.

    Unknown email and wrong password are indistinguishable to the caller.
    """
    user = users_repository.get_user_by_email(email)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def principal_for(user: UserRecord) -> Principal:
    return Principal(id=user.id, email=user.email)

