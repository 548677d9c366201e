"""Per-key lock arena for ledger mutations.

Each ``(account_id, denomination)`` pair gets its own ``threading.Lock``,
created lazily the first time the key is touched.  Unrelated accounts never
contend with each other.

Multi-key operations (``transfer``) acquire their keys in sorted order, so
two opposite-direction transfers between the same accounts cannot deadlock.
Acquisition of the whole key set shares one deadline: if any lock is not
obtained before it expires, every lock already held is released and
:exc:`~currency_ledger.errors.LockTimeout` is raised.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from currency_ledger.errors import LockTimeout

logger = logging.getLogger(__name__)

LockKey = tuple[str, str]


class KeyLockArena:
    """Lazily populated mapping of lock keys to mutexes.

    Args:
        timeout: Default bound, in seconds, for acquiring a key set.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        if timeout <= 0:
            raise ValueError("Lock timeout must be positive.")
        self.timeout = timeout
        self._locks: dict[LockKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._locks)

    def _lock_for(self, key: LockKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[LockKey], *, timeout: float | None = None) -> Iterator[None]:
        """Hold every lock in ``keys`` for the duration of the block.

        Duplicate keys are collapsed; order is normalized by sorting.

        Raises:
            LockTimeout: If the full key set is not acquired in time.
        """
        ordered = sorted(set(keys))
        budget = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + budget
        acquired: list[threading.Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not lock.acquire(timeout=remaining):
                    logger.warning(
                        "Lock wait on %s:%s exceeded %.2fs", key[0], key[1], budget
                    )
                    raise LockTimeout(
                        f"Timed out after {budget:.2f}s waiting for "
                        f"account {key[0]!r} ({key[1]})"
                    )
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
