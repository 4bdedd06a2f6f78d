"""Centralized structlog configuration.

- configure_logging(): call once on startup (API lifespan, CLI entrypoint)
- bind_request_id()/clear_request_id(): per-request correlation id carried
  through structlog.contextvars into every event logged while handling it

Format is chosen by LOG_FORMAT ("console" or "json"); production defaults to
JSON. Level comes from LOG_LEVEL (default INFO).
"""

from __future__ import annotations

import logging
import os
import sys
import uuid

import structlog

_configured = False


def configure_logging(
    level: str | None = None,
    json_output: bool | None = None,
    force: bool = False,
) -> None:
    """Configure structlog and the stdlib root logger.

    Safe to call multiple times; only the first call (or one with
    ``force=True``) takes effect.

    Args:
        level: Log level name (defaults to env LOG_LEVEL or INFO)
        json_output: Render JSON lines instead of console output. Defaults to
            LOG_FORMAT=json, or True when APP_ENV is production.
        force: Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return

    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    if json_output is None:
        fmt = os.getenv("LOG_FORMAT", "").lower()
        if fmt:
            json_output = fmt == "json"
        else:
            json_output = os.getenv("APP_ENV", os.getenv("NODE_ENV", "")).lower() == "production"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = True


def new_request_id() -> str:
    """Short correlation id for one request."""
    return uuid.uuid4().hex[:8]


def bind_request_id(request_id: str | None = None) -> str:
    """Bind a request id to the current context and return it."""
    rid = request_id or new_request_id()
    structlog.contextvars.bind_contextvars(request_id=rid)
    return rid


def clear_request_id() -> None:
    """Drop all context-bound values for the current context."""
    structlog.contextvars.clear_contextvars()
