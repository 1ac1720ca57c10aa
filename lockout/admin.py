"""
Administrative operations over the lockout store.

Used by the status/monitoring endpoints. Mutations go through the same
per-key primitives as attempt processing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from lockout.engine import LockoutPolicy, remaining_lockout, unlock_record
from lockout.errors import NotFoundError, ValidationError
from lockout.records import AccountLockoutRecord, normalize_username
from lockout.store import LockoutStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountStatus:
    """Record snapshot plus the lockout time still to run."""

    record: AccountLockoutRecord
    remaining_lockout_seconds: float


@dataclass(frozen=True)
class LockoutStatistics:
    total_accounts: int
    locked_accounts: int
    active_accounts: int
    recent_failed_attempts: int
    lockout_threshold: int
    lockout_duration_minutes: float
    timestamp: datetime


class AccountAdmin:
    """Status, listing and manual reset/unlock of lockout records."""

    def __init__(
        self,
        store: LockoutStore,
        policy: LockoutPolicy,
        recent_window: timedelta = timedelta(minutes=5),
    ) -> None:
        self._store = store
        self._policy = policy
        self._recent_window = recent_window

    def _key(self, username: str) -> str:
        key = normalize_username(username)
        if not key:
            raise ValidationError("Username is required")
        return key

    def _status(self, record: AccountLockoutRecord, now: datetime) -> AccountStatus:
        remaining = remaining_lockout(self._policy, record, now)
        return AccountStatus(record=record, remaining_lockout_seconds=remaining.total_seconds())

    def status(self, username: str) -> AccountStatus:
        record = self._store.get(self._key(username))
        if record is None:
            raise NotFoundError(username)
        return self._status(record, self._store.now())

    def reset(self, username: str) -> None:
        """Forget everything about an account."""
        key = self._key(username)
        if not self._store.remove(key):
            raise NotFoundError(username)
        logger.info("Account reset for user: %s", key)

    def unlock(self, username: str) -> AccountLockoutRecord:
        """Lift a lock and zero the counter, keeping the record."""
        key = self._key(username)
        record = self._store.update(key, unlock_record)
        if record is None:
            raise NotFoundError(username)
        logger.info("Account manually unlocked for user: %s", key)
        return record

    def clear_all(self) -> int:
        count = self._store.clear()
        logger.warning("All accounts cleared. Total accounts removed: %d", count)
        return count

    def list_accounts(self) -> list[AccountStatus]:
        now = self._store.now()
        accounts = [self._status(record, now) for record in self._store.snapshots()]
        logger.info("Account list requested. Total accounts: %d", len(accounts))
        return accounts

    def statistics(self) -> LockoutStatistics:
        """Aggregate counts over the current records."""
        now = self._store.now()
        records = self._store.snapshots()
        locked = sum(1 for r in records if r.locked)
        cutoff = now - self._recent_window
        recent = sum(1 for r in records if r.last_failed_attempt_at > cutoff)

        logger.info("Statistics requested. Total accounts: %d, Locked: %d", len(records), locked)
        return LockoutStatistics(
            total_accounts=len(records),
            locked_accounts=locked,
            active_accounts=len(records) - locked,
            recent_failed_attempts=recent,
            lockout_threshold=self._policy.threshold,
            lockout_duration_minutes=self._policy.unlock_window.total_seconds() / 60,
            timestamp=now,
        )
