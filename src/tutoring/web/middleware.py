"""HTTP middleware: request correlation ids and edge authentication.

AuthMiddleware runs before routing. Protected API paths are rejected with
401 before any handler or database access when the session cookie is missing
or invalid. On success the verified principal is stored on
``request.state.principal`` and forwarded to handlers as ``x-user-id`` /
``x-user-email`` headers. Client-supplied copies of those headers are always
stripped.
"""

from __future__ import annotations

import time

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from tutoring.config.app_config import load_app_config
from tutoring.core.auth import Principal, verify_token
from tutoring.logging_setup import bind_request_id, clear_request_id
from tutoring.web.errors import error_body

logger = structlog.get_logger(__name__)

PROTECTED_API_PREFIXES = (
    "/api/user/profile",
    "/api/chat-sessions",
    "/api/exam-results",
    "/api/grade-exam",
    "/api/dashboard",
)
PAGE_PREFIXES = ("/student/",)
LOGIN_PATH = "/login"

USER_ID_HEADER = b"x-user-id"
USER_EMAIL_HEADER = b"x-user-email"
REQUEST_ID_HEADER = "X-Request-ID"


def is_protected_api(path: str) -> bool:
    return path.startswith(PROTECTED_API_PREFIXES)


def is_protected_page(path: str) -> bool:
    return path.startswith(PAGE_PREFIXES)


def _forward_identity(request: Request, principal: Principal | None) -> None:
    headers = [
        (k, v) for k, v in request.scope["headers"] if k not in (USER_ID_HEADER, USER_EMAIL_HEADER)
    ]
    if principal is not None:
        headers.append((USER_ID_HEADER, principal.id.encode("utf-8")))
        headers.append((USER_EMAIL_HEADER, principal.email.encode("utf-8")))
        request.state.principal = principal
    else:
        request.state.principal = None
    request.scope["headers"] = headers


class AuthMiddleware(BaseHTTPMiddleware):
    """Verify the session cookie at the edge."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cookie_name = load_app_config().auth.cookie_name
        path = request.url.path
        token = request.cookies.get(cookie_name)
        principal = verify_token(token) if token else None

        if principal is None and is_protected_api(path):
            logger.info("auth_rejected", path=path, reason="invalid_token" if token else "missing_token")
            return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=error_body("Unauthorized"))

        if principal is None and is_protected_page(path):
            response = RedirectResponse(url=LOGIN_PATH, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
            if token:
                response.delete_cookie(cookie_name, path="/")
            return response

        _forward_identity(request, principal)
        return await call_next(request)


async def request_id_middleware(request: Request, call_next: RequestResponseEndpoint) -> Response:
    """Bind a short request id to every log event of the request."""
    request_id = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
    start = time.perf_counter()
    logger.debug("request_started", method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        clear_request_id()
