"""Chat session history endpoints.

Rows are returned as stored (snake_case columns, ISO timestamps).
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool

from tutoring.core.auth import Principal
from tutoring.core.tutor import session_fields
from tutoring.db import chat_sessions_repository
from tutoring.web.dependencies import require_principal
from tutoring.web.errors import BadRequestError, NotFoundError
from tutoring.web.schemas import ChatSessionSaveRequest

router = APIRouter(prefix="/api/chat-sessions", tags=["chat-sessions"])


def _fields(body: ChatSessionSaveRequest, is_new: bool) -> dict[str, Any]:
    """Repository fields from the body; metadata the client left out is derived
    from the messages."""
    fields: dict[str, Any] = {
        "subject": body.subject,
        "topic": body.topic,
        "title": body.title,
        "last_message": body.lastMessage,
        "messages": body.messages,
    }
    if body.messages:
        derived = session_fields(body.messages, body.subject, is_new=is_new)
        for key, value in derived.items():
            if fields.get(key) is None:
                fields[key] = value
    return {k: v for k, v in fields.items() if v is not None}


@router.get("")
def list_chat_sessions(
    id: str | None = Query(default=None),
    principal: Principal = Depends(require_principal),
) -> Any:
    """List sessions (most recent first), or one session with ``?id=``."""
    if id:
        record = chat_sessions_repository.get_session(principal.id, id)
        if record is None:
            raise NotFoundError("Chat session not found")
        return record.to_dict()

    return [r.to_dict() for r in chat_sessions_repository.list_sessions(principal.id)]


@router.post("")
def save_chat_session(
    body: ChatSessionSaveRequest,
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    """Create a session, or update it when the body carries an owned ``id``."""
    record = chat_sessions_repository.save_session(
        principal.id,
        session_id=body.id,
        **_fields(body, is_new=not body.id),
    )
    if record is None:
        raise NotFoundError("Chat session not found")
    return record.to_dict()


@router.put("")
def update_chat_session(
    body: ChatSessionSaveRequest,
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    if not body.id:
        raise BadRequestError("Session ID is required")

    record = chat_sessions_repository.update_session(principal.id, body.id, **_fields(body, is_new=False))
    if record is None:
        raise NotFoundError("Chat session not found")
    return record.to_dict()


async def _optional_json(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


@router.delete("")
async def delete_chat_sessions(
    request: Request,
    id: str | None = Query(default=None),
    principal: Principal = Depends(require_principal),
) -> dict[str, Any]:
    """Delete one session (``?id=``) or all of them (body ``{"clearAll": true}``)."""
    body = await _optional_json(request)

    if body.get("clearAll") is True:
        count = await run_in_threadpool(chat_sessions_repository.delete_all_sessions, principal.id)
        return {"message": "All sessions deleted successfully", "deleted": count}

    if not id:
        raise BadRequestError("Session ID is required")

    if not await run_in_threadpool(chat_sessions_repository.delete_session, principal.id, id):
        raise NotFoundError("Chat session not found")
    return {"message": "Session deleted successfully"}
