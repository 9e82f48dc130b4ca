"""Task identifier generation.

Identifiers look like ``k3v9x0qz2a-1761153864688``: a random lowercase
alphanumeric prefix, a dash, then the generation time in epoch milliseconds.
The prefix is drawn from ``secrets`` so concurrent editors generating ids in
the same millisecond are very unlikely to collide.
"""

from __future__ import annotations

import secrets
import time
from typing import Callable

ID_ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
DEFAULT_PREFIX_LENGTH = 10
MIN_PREFIX_LENGTH = 3


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_task_id(
    *,
    prefix_length: int = DEFAULT_PREFIX_LENGTH,
    now_ms: int | None = None,
    choice: Callable[[str], str] = secrets.choice,
) -> str:
    """Return a new ``<prefix>-<millis>`` task identifier."""
    if prefix_length < MIN_PREFIX_LENGTH:
        raise ValueError(f"prefix_length must be >= {MIN_PREFIX_LENGTH}")
    millis = _epoch_millis() if now_ms is None else int(now_ms)
    prefix = "".join(choice(ID_ALPHABET) for _ in range(prefix_length))
    return f"{prefix}-{millis}"


class TaskIdGenerator:
    """Callable identifier source with injectable clock and randomness."""

    def __init__(
        self,
        *,
        prefix_length: int = DEFAULT_PREFIX_LENGTH,
        clock: Callable[[], int] = _epoch_millis,
        choice: Callable[[str], str] = secrets.choice,
    ) -> None:
        if prefix_length < MIN_PREFIX_LENGTH:
            raise ValueError(f"prefix_length must be >= {MIN_PREFIX_LENGTH}")
        self._prefix_length = prefix_length
        self._clock = clock
        self._choice = choice

    def generate(self) -> str:
        """Return a new task identifier."""
        return generate_task_id(
            prefix_length=self._prefix_length,
            now_ms=self._clock(),
            choice=self._choice,
        )

    def __call__(self) -> str:
        return self.generate()


__all__ = [
    "DEFAULT_PREFIX_LENGTH",
    "ID_ALPHABET",
    "TaskIdGenerator",
    "generate_task_id",
]
