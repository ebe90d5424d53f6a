"""Store capabilities the mutex depends on.

Any object with matching ``get``/``set``/``delete`` methods works; the
protocols only document the contract. ``delete`` must report an absent key
as success.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> bool: ...


@runtime_checkable
class AtomicKeyValueStore(KeyValueStore, Protocol):
    def add(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """Write ``value`` only if ``key`` is absent. Returns True if written."""
        ...

    def compare_and_delete(self, key: str, owner: str) -> bool:
        """Delete ``key`` if its record is owned by ``owner``.

        Returns True if deleted or already absent, False on owner mismatch.
        """
        ...
