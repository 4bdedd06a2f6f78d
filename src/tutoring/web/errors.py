"""API error envelope.

Every failure leaves the API as ``{"error": str, "details"?: any, "code"?: str}``
with the status code of its category: 400 bad input, 401 unauthenticated,
404 missing or not owned, 409 conflict, 503 database unreachable, 500 otherwise.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tutoring.db.database import DatabaseUnavailableError

logger = structlog.get_logger(__name__)

DATABASE_UNAVAILABLE_CODE = "DATABASE_UNAVAILABLE"


def error_body(error: str, details: Any = None, code: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": error}
    if details is not None:
        body["details"] = details
    if code is not None:
        body["code"] = code
    return body


# =============================================================================
# ERROR HIERARCHY
# =============================================================================


class ApiError(Exception):
    """Error rendered directly as an API response."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, error: str, details: Any = None, code: str | None = None):
        self.error = error
        self.details = details
        self.code = code
        super().__init__(error)

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content=jsonable_encoder(error_body(self.error, self.details, self.code)),
        )


class BadRequestError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ApiError):
    status_code = status.HTTP_409_CONFLICT


# =============================================================================
# HANDLERS
# =============================================================================


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api_error", path=request.url.path, status=exc.status_code, error=exc.error)
    return exc.to_response()


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    logger.info("request_validation_failed", path=request.url.path, errors=len(details))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_body("Invalid request", details=details),
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def _database_unavailable_handler(request: Request, exc: DatabaseUnavailableError) -> JSONResponse:
    logger.error("database_unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_body("Database unavailable", code=DATABASE_UNAVAILABLE_CODE),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", path=request.url.path, method=request.method)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error envelope on an application."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(DatabaseUnavailableError, _database_unavailable_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
