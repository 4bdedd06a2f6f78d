"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Request

from tutoring.config.app_config import load_app_config
from tutoring.core.auth import Principal
from tutoring.llm.client import LLMClient
from tutoring.web.errors import UnauthorizedError


def optional_principal(request: Request) -> Principal | None:
    """Identity verified by AuthMiddleware, if any."""
    return getattr(request.state, "principal", None)


def require_principal(request: Request) -> Principal:
    principal = optional_principal(request)
    if principal is None:
        raise UnauthorizedError("Unauthorized")
    return principal


# LLM clients are built per request so tests can override them and so a key
# added to the environment is picked up without a restart.


def get_chat_client() -> LLMClient:
    return LLMClient(model=load_app_config().llm.chat_model)


def get_exam_client() -> LLMClient:
    return LLMClient(model=load_app_config().llm.exam_model)


def get_grading_client() -> LLMClient:
    return LLMClient(model=load_app_config().llm.grading_model)
