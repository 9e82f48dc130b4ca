"""Reminder interval table and window computation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from types import MappingProxyType

from taskflow.domain import IntervalKey
from time_utils import to_utc

logger = logging.getLogger(__name__)

WINDOW_LENGTH = timedelta(hours=1)

INTERVAL_OFFSETS: MappingProxyType[IntervalKey, timedelta] = MappingProxyType(
    {
        "h1": timedelta(hours=1),
        "h2": timedelta(hours=2),
        "h4": timedelta(hours=4),
        "h8": timedelta(hours=8),
        "h12": timedelta(hours=12),
        "d1": timedelta(hours=24),
        "d2": timedelta(hours=48),
        "d5": timedelta(hours=120),
    }
)


@dataclass(frozen=True)
class ReminderWindow:
    """Half-open ``[start, end)`` range evaluated for one interval key."""

    interval_key: IntervalKey
    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        """Return True when ``value`` falls inside the half-open window."""
        return self.start <= value < self.end


def reminder_windows(now: datetime) -> list[ReminderWindow]:
    """Return one window per interval key, in table order."""
    reference = to_utc(now)
    windows: list[ReminderWindow] = []
    for key, offset in INTERVAL_OFFSETS.items():
        start = reference + offset
        windows.append(ReminderWindow(interval_key=key, start=start, end=start + WINDOW_LENGTH))
    return windows


def parse_interval_keys(raw: str | None) -> frozenset[IntervalKey]:
    """Parse a comma-separated ``reminderTimes`` value into known interval keys."""
    if not raw:
        return frozenset()
    keys: set[IntervalKey] = set()
    for token in raw.split(","):
        key = token.strip().lower()
        if not key:
            continue
        if key not in INTERVAL_OFFSETS:
            logger.warning("Ignoring unknown reminder interval: %s", key)
            continue
        keys.add(key)
    return frozenset(keys)


__all__ = [
    "INTERVAL_OFFSETS",
    "ReminderWindow",
    "WINDOW_LENGTH",
    "parse_interval_keys",
    "reminder_windows",
]
