from __future__ import annotations

import contextlib
import logging
import os
import time
from collections.abc import Mapping
from typing import Any, Callable, Iterator, Optional

from .exceptions import DoubleLockError, MutexTimeoutError
from .records import LockRecord, owner_of
from .store import AtomicKeyValueStore, KeyValueStore

logger = logging.getLogger(__name__)

KEY_SEGMENT = "mutex"


def process_token() -> str:
    return str(os.getpid())


class Mutex:
    """Advisory named mutex whose state lives in a shared key-value store.

    Every instance built on the same store with the same prefix sees the same
    locks. ``lock`` reads the current state and then writes the record in a
    separate call, so two callers racing on one event can both succeed; use
    :class:`AtomicMutex` where the store supports set-if-absent.

    Args:
        store:          Object providing ``get``, ``set`` and ``delete``.
        prefix:         Optional namespace prepended to every lock key.
        token_factory:  Produces the owner token when ``lock`` is not given one.
                        Defaults to the OS process id.
        clock:          Monotonic time source used for wait deadlines.
        sleep:          Called with seconds between polls.
    """

    def __init__(
        self,
        store: KeyValueStore,
        prefix: Optional[str] = None,
        *,
        token_factory: Callable[[], str] = process_token,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._token_factory = token_factory
        self._clock = clock
        self._sleep = sleep

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def prefix(self) -> Optional[str]:
        return self._prefix

    def key_for(self, event: str) -> str:
        if not event:
            raise ValueError("event must be a non-empty string")
        return ":".join(part for part in (self._prefix, KEY_SEGMENT, event) if part)

    def _new_token(self, owner: Optional[str]) -> str:
        token = owner if owner is not None else self._token_factory()
        token = str(token)
        if not token:
            raise ValueError("owner token must be non-empty")
        return token

    @staticmethod
    def _check_ttl(ttl: Optional[int]) -> None:
        if ttl is not None and ttl <= 0:
            raise ValueError("ttl must be > 0")

    def lock(self, event: str, ttl: Optional[int] = None, owner: Optional[str] = None) -> str:
        """Lock ``event`` and return the owner token.

        Raises:
            DoubleLockError: the event is already locked, by anyone.
        """
        key = self.key_for(event)
        self._check_ttl(ttl)
        if self.is_locked(event):
            raise DoubleLockError(event, self.get_owner(event))

        token = self._new_token(owner)
        self._store.set(key, LockRecord(owner=token).to_dict(), ttl)
        logger.debug("locked %s owner=%s ttl=%s", key, token, ttl)
        return token

    def unlock(self, event: str, owner: Optional[str] = None) -> bool:
        """Release ``event``.

        Without ``owner`` the lock is removed whoever holds it. With ``owner``
        the lock is only removed if that token holds it; a mismatch returns
        False and leaves the lock in place. An event that is not locked
        counts as released.
        """
        key = self.key_for(event)
        if owner is None:
            released = bool(self._store.delete(key))
            logger.debug("force-unlocked %s", key)
            return released

        record = self._store.get(key)
        if not record:
            return True
        if owner_of(record) != owner:
            logger.info("refusing to unlock %s: %r is not the owner", key, owner)
            return False

        released = bool(self._store.delete(key))
        logger.debug("unlocked %s owner=%s", key, owner)
        return released

    def wait_until_unlocked(
        self,
        event: str,
        max_wait: float = 0,
        pre_delay_us: int = 0,
        check_period_us: int = 1_000_000,
    ) -> None:
        """Block until ``event`` is unlocked, polling every ``check_period_us``.

        ``max_wait`` is in seconds. Zero means no deadline: the loop only ends
        when the lock clears.

        Raises:
            MutexTimeoutError: still locked after ``max_wait`` seconds.
        """
        if max_wait < 0:
            raise ValueError("max_wait must be >= 0")
        if pre_delay_us < 0:
            raise ValueError("pre_delay_us must be >= 0")
        if check_period_us < 0:
            raise ValueError("check_period_us must be >= 0")

        if pre_delay_us:
            self._sleep(pre_delay_us / 1_000_000)

        deadline = self._clock() + max_wait if max_wait > 0 else None
        while True:
            if not self.is_locked(event):
                return

            self._sleep(check_period_us / 1_000_000)
            if deadline is not None and self._clock() > deadline:
                logger.info("gave up waiting for %s after %ss", self.key_for(event), max_wait)
                raise MutexTimeoutError(event, max_wait)

    def is_locked(self, event: str) -> bool:
        record = self._store.get(self.key_for(event), False)
        if not record:
            return False
        if isinstance(record, Mapping):
            return bool(record.get("locked"))
        return bool(record)

    def get_owner(self, event: str) -> Optional[str]:
        return owner_of(self._store.get(self.key_for(event)))

    @contextlib.contextmanager
    def hold(
        self,
        event: str,
        ttl: Optional[int] = None,
        max_wait: Optional[float] = None,
        check_period_us: int = 1_000_000,
    ) -> Iterator[str]:
        """Lock ``event`` for the duration of a ``with`` block.

        When ``max_wait`` is given, waits for the current holder first
        (``0`` waits indefinitely). The lock is released with an owner check
        on exit, so a lock that expired and was taken by someone else is left
        alone.
        """
        if max_wait is not None:
            self.wait_until_unlocked(event, max_wait=max_wait, check_period_us=check_period_us)
        token = self.lock(event, ttl=ttl)
        try:
            yield token
        finally:
            self.unlock(event, token)


class AtomicMutex(Mutex):
    """Mutex variant that never lets two callers hold the same event.

    Requires a store with ``add`` (set-if-absent) and ``compare_and_delete``.
    ``lock`` is a single ``add`` instead of a read followed by a write, and an
    owner-checked ``unlock`` is a single ``compare_and_delete``.
    """

    def __init__(
        self,
        store: AtomicKeyValueStore,
        prefix: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        if not isinstance(store, AtomicKeyValueStore):
            raise TypeError(f"{type(store).__name__} does not support add/compare_and_delete")
        super().__init__(store, prefix, **kwargs)

    def lock(self, event: str, ttl: Optional[int] = None, owner: Optional[str] = None) -> str:
        key = self.key_for(event)
        self._check_ttl(ttl)
        token = self._new_token(owner)
        if not self._store.add(key, LockRecord(owner=token).to_dict(), ttl):
            raise DoubleLockError(event, self.get_owner(event))
        logger.debug("locked %s owner=%s ttl=%s", key, token, ttl)
        return token

    def unlock(self, event: str, owner: Optional[str] = None) -> bool:
        if owner is None:
            return super().unlock(event)

        key = self.key_for(event)
        released = bool(self._store.compare_and_delete(key, owner))
        if released:
            logger.debug("unlocked %s owner=%s", key, owner)
        else:
            logger.info("refusing to unlock %s: %r is not the owner", key, owner)
        return released
