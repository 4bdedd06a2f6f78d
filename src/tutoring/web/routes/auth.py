"""Authentication endpoints: signup, login, logout and current user."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Request, Response

from tutoring.config.app_config import load_app_config
from tutoring.core.auth import (
    AuthConfigurationError,
    authenticate,
    hash_password,
    issue_token,
    principal_for,
    token_max_age_seconds,
    verify_token,
)
from tutoring.db import users_repository
from tutoring.db.users_repository import DuplicateEmailError, UserRecord
from tutoring.web.errors import ApiError, BadRequestError, ConflictError, NotFoundError, UnauthorizedError
from tutoring.web.schemas import LoginRequest, SignupRequest

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

MIN_PASSWORD_LENGTH = 6


def set_auth_cookie(response: Response, token: str) -> None:
    """HTTP-only session cookie living as long as the token."""
    config = load_app_config()
    response.set_cookie(
        config.auth.cookie_name,
        token,
        max_age=token_max_age_seconds(config),
        path="/",
        httponly=True,
        samesite="lax",
        secure=config.is_production,
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(load_app_config().auth.cookie_name, path="/")


def _session_token(user: UserRecord) -> str:
    try:
        return issue_token(principal_for(user))
    except AuthConfigurationError as e:
        logger.error("token_issue_failed", error=str(e))
        raise ApiError("Authentication is not configured") from e


@router.post("/signup")
def signup(body: SignupRequest, response: Response) -> dict[str, Any]:
    """Create an account and start a session."""
    if not body.email or not body.password:
        raise BadRequestError("Email and password are required")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")

    try:
        user = users_repository.create_user(
            email=body.email,
            password_hash=hash_password(body.password),
            first_name=body.firstName,
            last_name=body.lastName,
            phone=body.phone,
            grade_level=body.gradeLevel,
            school=body.school,
        )
    except DuplicateEmailError as e:
        logger.info("signup_duplicate_email")
        raise ConflictError("User with this email already exists") from e

    token = _session_token(user)
    set_auth_cookie(response, token)
    return {"message": "User created successfully", "user": user.public_dict(), "token": token}


@router.post("/login")
def login(body: LoginRequest, response: Response) -> dict[str, Any]:
    """Check credentials and set the session cookie."""
    if not body.email or not body.password:
        raise BadRequestError("Email and password are required")

    user = authenticate(body.email, body.password)
    if user is None:
        logger.info("login_failed")
        raise UnauthorizedError("Invalid email or password")

    set_auth_cookie(response, _session_token(user))
    logger.info("login_succeeded", user_id=user.id)
    return {"message": "Login successful", "user": user.public_dict()}


@router.post("/logout")
def logout(response: Response) -> dict[str, str]:
    clear_auth_cookie(response)
    return {"message": "Logged out successfully"}


@router.get("/me")
def me(request: Request) -> dict[str, Any]:
    """Return the user behind the session cookie."""
    token = request.cookies.get(load_app_config().auth.cookie_name)
    if not token:
        raise UnauthorizedError("Not authenticated")

    principal = verify_token(token)
    if principal is None:
        raise UnauthorizedError("Invalid token")

    user = users_repository.get_user_by_id(principal.id)
    if user is None:
        raise NotFoundError("User not found")
    return {"user": user.public_dict()}
