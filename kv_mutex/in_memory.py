from __future__ import annotations

import copy
import threading
import time
from typing import Any, Callable, Optional

from .records import owner_of


class InMemoryStore:
    """Process-local key-value store with TTL support.

    Useful for tests and single-process deployments. Expired entries are
    treated as absent and dropped on the next access.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._guard = threading.Lock()
        # key -> (value, expires_at or None)
        self._state: dict[str, tuple[Any, Optional[float]]] = {}

    def _expires_at(self, ttl: Optional[int]) -> Optional[float]:
        if ttl is None:
            return None
        if ttl <= 0:
            raise ValueError("ttl must be > 0")
        return self._clock() + float(ttl)

    def _live(self, key: str) -> Optional[tuple[Any, Optional[float]]]:
        # caller holds the guard
        stored = self._state.get(key)
        if stored is None:
            return None
        _, expires_at = stored
        if expires_at is not None and self._clock() >= expires_at:
            del self._state[key]
            return None
        return stored

    def get(self, key: str, default: Any = None) -> Any:
        with self._guard:
            stored = self._live(key)
        if stored is None:
            return default
        return copy.deepcopy(stored[0])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        expires_at = self._expires_at(ttl)
        with self._guard:
            self._state[key] = (copy.deepcopy(value), expires_at)

    def delete(self, key: str) -> bool:
        with self._guard:
            self._state.pop(key, None)
        return True

    def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        expires_at = self._expires_at(ttl)
        with self._guard:
            if self._live(key) is not None:
                return False
            self._state[key] = (copy.deepcopy(value), expires_at)
        return True

    def compare_and_delete(self, key: str, owner: str) -> bool:
        with self._guard:
            stored = self._live(key)
            if stored is None:
                return True
            if owner_of(stored[0]) != owner:
                return False
            del self._state[key]
        return True

    def ping(self) -> bool:
        return True

    def __len__(self) -> int:
        with self._guard:
            return sum(1 for key in list(self._state) if self._live(key) is not None)
