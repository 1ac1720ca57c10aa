"""
Per-account lockout record.

Records are immutable: every change produces a new instance, so a record
handed out by the store is always a consistent snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime


def normalize_username(raw: str) -> str:
    """Lowercase and trim a sign-in name so variants map to one record."""
    return raw.strip().lower()


@dataclass(frozen=True)
class AccountLockoutRecord:
    """Lockout state for a single normalized username."""

    username: str
    failed_attempts: int
    last_failed_attempt_at: datetime
    locked: bool = False
    lockout_started_at: datetime | None = None

    def __post_init__(self) -> None:
        assert self.failed_attempts >= 0, "failed_attempts must not be negative"
        assert self.locked == (self.lockout_started_at is not None), (
            "lockout_started_at must be set exactly when the record is locked"
        )

    @classmethod
    def fresh(cls, username: str, now: datetime) -> AccountLockoutRecord:
        """Default record for a username seen for the first time."""
        return cls(username=username, failed_attempts=0, last_failed_attempt_at=now)

    def evolve(self, **changes) -> AccountLockoutRecord:
        return replace(self, **changes)
