"""
In-memory lockout store.

Holds one immutable AccountLockoutRecord per normalized username and
serializes all writers of the same key with striped locks: the load,
transition and commit of a key happen while its stripe lock is held, so
two concurrent attempts for one account can never both start from the
same pre-state.
"""

from __future__ import annotations

import logging
import threading
from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Callable, Generator, TypeVar

from lockout.clock import Clock, SystemClock
from lockout.records import AccountLockoutRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

Transition = Callable[[AccountLockoutRecord, datetime], tuple[AccountLockoutRecord, T]]


class LockoutStore:
    """Concurrent keyed storage with atomic per-key read-modify-write."""

    def __init__(self, clock: Clock | None = None, stripes: int = 64) -> None:
        if stripes < 1:
            raise ValueError(f"stripes must be >= 1, got {stripes}")
        self._clock = clock or SystemClock()
        self._locks = [threading.Lock() for _ in range(stripes)]
        self._records: dict[str, AccountLockoutRecord] = {}
        # Guards the dict itself; always taken after any stripe lock.
        self._index_lock = threading.Lock()

    def now(self) -> datetime:
        return self._clock.now()

    @contextmanager
    def _key_lock(self, username: str) -> Generator[None, None, None]:
        with self._locks[hash(username) % len(self._locks)]:
            yield

    def get(self, username: str) -> AccountLockoutRecord | None:
        """Current snapshot for a username, or None if never seen."""
        return self._records.get(username)

    def transact(
        self,
        username: str,
        transition: Transition[T],
    ) -> tuple[AccountLockoutRecord, T]:
        """
        Atomically apply a transition to a username's record.

        The record is created from AccountLockoutRecord.fresh() if absent.
        The transition receives the record and the current time, and its
        returned record is committed before the lock is released.

        Returns:
            The committed record and whatever the transition decided.
        """
        with self._key_lock(username):
            now = self._clock.now()
            current = self._records.get(username)
            if current is None:
                current = AccountLockoutRecord.fresh(username, now)
            updated, outcome = transition(current, now)
            with self._index_lock:
                self._records[username] = updated
            return updated, outcome

    def update(
        self,
        username: str,
        mutate: Callable[[AccountLockoutRecord], AccountLockoutRecord],
    ) -> AccountLockoutRecord | None:
        """Atomically replace an existing record. Returns None if absent."""
        with self._key_lock(username):
            current = self._records.get(username)
            if current is None:
                return None
            updated = mutate(current)
            with self._index_lock:
                self._records[username] = updated
            return updated

    def remove(self, username: str) -> bool:
        """Delete a record. Returns whether one existed."""
        with self._key_lock(username), self._index_lock:
            return self._records.pop(username, None) is not None

    def snapshots(self) -> list[AccountLockoutRecord]:
        """
        Every record at roughly this moment.

        Each record is internally consistent; the list as a whole is not a
        global point-in-time view.
        """
        with self._index_lock:
            return list(self._records.values())

    def clear(self) -> int:
        """Remove every record. Returns how many were removed."""
        with ExitStack() as stack:
            for lock in self._locks:
                stack.enter_context(lock)
            with self._index_lock:
                count = len(self._records)
                self._records.clear()
        logger.debug("Lockout store cleared (%d records)", count)
        return count

    def __len__(self) -> int:
        return len(self._records)
