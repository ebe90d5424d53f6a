from __future__ import annotations

from typing import Optional


class MutexError(Exception):
    pass


class DoubleLockError(MutexError):
    def __init__(self, event: str, owner: Optional[str] = None) -> None:
        super().__init__(f"event {event!r} is already locked (owner={owner!r})")
        self.event = event
        self.owner = owner


class MutexTimeoutError(MutexError, TimeoutError):
    """Raised when a lock is still held after the wait deadline.

    Subclasses the builtin ``TimeoutError`` so callers can catch either.
    """

    def __init__(self, event: str, max_wait: float) -> None:
        super().__init__(f"event {event!r} still locked after {max_wait}s")
        self.event = event
        self.max_wait = max_wait
