"""Tutor chat endpoint.

Streams the tutor's reply as plain text. When the LLM is not configured or
cannot be reached the reply is a JSON payload ``{error, message, isMock}``
with status 200, so the client can show the canned message in the chat.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.responses import Response

from tutoring.core.tutor import stream_reply
from tutoring.llm.client import LLMClient
from tutoring.web.dependencies import get_chat_client
from tutoring.web.schemas import ChatRequest

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("")
def chat(
    body: ChatRequest,
    client: LLMClient = Depends(get_chat_client),
) -> Response:
    reply = stream_reply(body.messages, body.subject, client=client)
    if reply.is_mock:
        return JSONResponse(content=reply.fallback)
    return StreamingResponse(reply.stream, media_type="text/plain; charset=utf-8")
