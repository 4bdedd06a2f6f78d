"""User profile endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from tutoring.core.auth import Principal
from tutoring.db import users_repository
from tutoring.web.dependencies import require_principal
from tutoring.web.errors import NotFoundError
from tutoring.web.schemas import PROFILE_FIELD_MAP, ProfileUpdateRequest

router = APIRouter(prefix="/api/user/profile", tags=["profile"])


@router.get("")
def get_profile(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    user = users_repository.get_user_by_id(principal.id)
    if user is None:
        raise NotFoundError("User not found")
    return user.profile_dict()


@router.put("")
def update_profile(
    body: ProfileUpdateRequest,
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    """Update the fields present in the body; empty avatar/fullImage clear them."""
    fields = {PROFILE_FIELD_MAP[key]: value for key, value in body.model_dump(exclude_unset=True).items()}
    user = users_repository.update_profile(principal.id, fields)
    if user is None:
        raise NotFoundError("User not found")
    return user.profile_dict()
