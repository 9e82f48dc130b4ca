"""Infrastructure services for Taskflow."""

from services.database import get_session_factory, get_sync_session, run_migrations

__all__ = [
    "get_session_factory",
    "get_sync_session",
    "run_migrations",
]
