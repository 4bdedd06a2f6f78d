"""Database module for ORM persistence.

Provides:
- Engine/session management and schema initialization
- Retry wrapper for transient connection failures
- Repository functions for users, chat sessions and exam results
"""

from tutoring.db.database import (
    DatabaseUnavailableError,
    configure_engine,
    get_db,
    init_db,
    ping,
    with_db_retry,
)

__all__ = [
    "DatabaseUnavailableError",
    "configure_engine",
    "get_db",
    "init_db",
    "ping",
    "with_db_retry",
]
