"""
Lockout state machine.

Pure functions mapping (record, attempt, now) to (next record, decision).
They never touch shared state; the store runs them under its per-key lock
so the transition and the commit happen as one unit.

Transition rules for an attempt against record R:

1. R is locked and the unlock window has not elapsed: R is unchanged and
   the decision is Locked, even when the attempt is flagged successful.
   If the window has elapsed, R is unlocked and the unlocking attempt is
   counted as one fresh failure (failed_attempts = 1).
2. Otherwise the attempt is counted: failed_attempts += 1.
3. A successful attempt then resets the counter and is Allowed.
4. A failed attempt locks R once failed_attempts reaches the threshold,
   else it is Rejected with the running count.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Union

from lockout.records import AccountLockoutRecord


@dataclass(frozen=True)
class LockoutPolicy:
    """Threshold and unlock window applied to every account."""

    threshold: int = 5
    unlock_window: timedelta = field(default_factory=lambda: timedelta(minutes=1))

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise ValueError(f"threshold must be >= 1, got {self.threshold}")
        if self.unlock_window < timedelta(0):
            raise ValueError(f"unlock_window must not be negative, got {self.unlock_window}")


@dataclass(frozen=True)
class Allowed:
    """Sign-in may proceed."""


@dataclass(frozen=True)
class Rejected:
    """Failed attempt recorded; account still open."""

    attempt: int
    of: int


@dataclass(frozen=True)
class Locked:
    """Account is locked for the remaining duration."""

    remaining: timedelta


Decision = Union[Allowed, Rejected, Locked]


def remaining_lockout(
    policy: LockoutPolicy,
    record: AccountLockoutRecord,
    now: datetime,
) -> timedelta:
    """Time left before a locked record may be unlocked. Zero if not locked."""
    if not record.locked:
        return timedelta(0)
    elapsed = now - record.lockout_started_at
    return max(timedelta(0), policy.unlock_window - elapsed)


def evaluate_attempt(
    policy: LockoutPolicy,
    record: AccountLockoutRecord,
    success: bool,
    now: datetime,
) -> tuple[AccountLockoutRecord, Decision]:
    """Apply one sign-in attempt to a record."""
    if record.locked:
        elapsed = now - record.lockout_started_at
        if elapsed < policy.unlock_window:
            return record, Locked(remaining=remaining_lockout(policy, record, now))
        record = record.evolve(
            locked=False,
            lockout_started_at=None,
            failed_attempts=1,
            last_failed_attempt_at=now,
        )
    else:
        record = record.evolve(
            failed_attempts=record.failed_attempts + 1,
            last_failed_attempt_at=now,
        )

    if success:
        return (
            record.evolve(failed_attempts=0, locked=False, lockout_started_at=None),
            Allowed(),
        )

    if record.failed_attempts >= policy.threshold:
        return (
            record.evolve(locked=True, lockout_started_at=now),
            Locked(remaining=policy.unlock_window),
        )

    return record, Rejected(attempt=record.failed_attempts, of=policy.threshold)


def unlock_record(record: AccountLockoutRecord) -> AccountLockoutRecord:
    """Administrative unlock: clear the lock and the failure count."""
    return record.evolve(locked=False, lockout_started_at=None, failed_attempts=0)
