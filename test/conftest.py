"""Pytest configuration for the Taskflow test suite."""

import os
import sys
from collections.abc import Generator
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
    os.environ.setdefault("USER_TIMEZONE", "UTC")
    os.environ.setdefault("TASKFLOW_BASE_URL", "https://wiki.example.test/view")
    os.environ.setdefault("CELERY_BROKER_URL", "memory://")
    os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


class RecordingNotifier:
    """Notifier stub that records every notification for assertions."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        """Initialize with an optional set of user ids whose delivery fails."""
        self.sent = []
        self._fail_for = fail_for or set()

    def notify(self, notification) -> None:
        """Record the notification or raise for configured users."""
        if notification.user_id in self._fail_for:
            raise RuntimeError(f"delivery failed for {notification.user_id}")
        self.sent.append(notification)


@pytest.fixture()
def sqlite_session_factory() -> Generator[sessionmaker, None, None]:
    """Provide a sqlite session factory and ensure engine cleanup."""
    from models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture()
def recording_notifier() -> RecordingNotifier:
    """Provide a notifier that records notifications."""
    return RecordingNotifier()


@pytest.fixture()
def notifier_factory():
    """Build recording notifiers with configurable per-user failures."""

    def build(fail_for: set[str] | None = None) -> RecordingNotifier:
        return RecordingNotifier(fail_for=fail_for)

    return build
