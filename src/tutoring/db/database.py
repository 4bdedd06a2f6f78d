"""Database engine, sessions and schema management.

The credential store is reached through SQLAlchemy: PostgreSQL in production
(``DATABASE_URL``), SQLite by default for development and tests.
"""

from __future__ import annotations

import functools
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Generator, TypeVar

import structlog
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from tutoring.config.app_config import load_app_config

logger = structlog.get_logger(__name__)

Base = declarative_base()

T = TypeVar("T")

# Current engine (module-level, rebuilt by init_db/configure_engine)
_engine: Engine | None = None
_session_factory: sessionmaker | None = None


class DatabaseUnavailableError(Exception):
    """The database could not be reached after retrying."""

    pass


def _normalize_url(url: str) -> str:
    # Hosted Postgres providers hand out postgres:// URLs
    if url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def configure_engine(database_url: str | None = None) -> Engine:
    """Create the engine and session factory.

    Args:
        database_url: SQLAlchemy URL. Defaults to the configured DATABASE_URL.

    Returns:
        The new engine.
    """
    global _engine, _session_factory

    settings = load_app_config().database
    url = _normalize_url(database_url or settings.url)

    connect_args = {}
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        db_file = url.split("sqlite:///", 1)[-1]
        if db_file and db_file != ":memory:":
            Path(db_file).parent.mkdir(parents=True, exist_ok=True)

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(url, connect_args=connect_args, echo=settings.echo, future=True)
    _session_factory = sessionmaker(
        bind=_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )

    logger.debug("database_engine_configured", dialect=_engine.dialect.name)
    return _engine


def get_engine() -> Engine:
    """Return the current engine, creating it on first use."""
    if _engine is None:
        return configure_engine()
    return _engine


def init_db(database_url: str | None = None) -> None:
    """Initialize database with schema.

    Creates all tables that don't exist yet.

    Args:
        database_url: SQLAlchemy URL. Defaults to the configured DATABASE_URL.
    """
    # Register models on Base.metadata
    from tutoring.db import models  # noqa: F401

    engine = configure_engine(database_url)
    try:
        Base.metadata.create_all(bind=engine)
    except (OperationalError, InterfaceError) as e:
        raise DatabaseUnavailableError(f"Cannot initialize database: {e}") from e

    logger.info("database_initialized", dialect=engine.dialect.name)


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """Get an ORM session as a transactional context manager.

    Commits on success, rolls back and re-raises on error.

    Example:
        with get_db() as session:
            user = session.query(User).filter(User.email == email).first()
    """
    if _session_factory is None:
        configure_engine()

    session = _session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def with_db_retry(func: Callable[..., T]) -> Callable[..., T]:
    """Retry a database operation on connection failures.

    Attempts and base backoff come from the database settings (3 attempts,
    0.1 s doubled per attempt by default). Only connectivity errors are
    retried; integrity and programming errors propagate immediately.

    Raises:
        DatabaseUnavailableError: When every attempt failed to connect.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        settings = load_app_config().database
        attempts = max(1, settings.retries)
        last_error: Exception | None = None

        for attempt in range(attempts):
            try:
                return func(*args, **kwargs)
            except (OperationalError, InterfaceError) as e:
                last_error = e
                logger.warning(
                    "database_operation_failed",
                    operation=func.__name__,
                    attempt=attempt + 1,
                    attempts=attempts,
                    error=str(e.orig) if e.orig is not None else str(e),
                )
                if attempt < attempts - 1:
                    time.sleep(settings.backoff_seconds * (2**attempt))

        logger.error("database_unavailable", operation=func.__name__)
        raise DatabaseUnavailableError(
            f"Database unavailable after {attempts} attempts"
        ) from last_error

    return wrapper


def ping() -> bool:
    """Check database reachability with a trivial query."""
    try:
        with get_db() as session:
            session.execute(text("SELECT 1"))
        return True
    except (OperationalError, InterfaceError) as e:
        logger.warning("database_ping_failed", error=str(e))
        return False
