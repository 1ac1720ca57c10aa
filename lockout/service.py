"""
Sign-in attempt processing.

Normalizes the username and runs the lockout state machine inside the
store's atomic per-key transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime

from lockout.engine import Allowed, Decision, Locked, LockoutPolicy, Rejected, evaluate_attempt
from lockout.errors import ValidationError
from lockout.records import AccountLockoutRecord, normalize_username
from lockout.store import LockoutStore

logger = logging.getLogger(__name__)


class LockoutService:
    """Records sign-in attempts and returns the lockout decision."""

    def __init__(self, store: LockoutStore, policy: LockoutPolicy) -> None:
        self._store = store
        self._policy = policy

    @property
    def policy(self) -> LockoutPolicy:
        return self._policy

    def record_attempt(self, sign_in_name: str, success: bool) -> Decision:
        """
        Count one attempt for a username.

        Args:
            sign_in_name: Username as sent by the identity provider
            success: Whether the caller already verified the credentials

        Returns:
            Allowed, Rejected or Locked
        """
        username = normalize_username(sign_in_name)
        if not username:
            raise ValidationError("Username is null or empty")

        def apply(
            record: AccountLockoutRecord, now: datetime
        ) -> tuple[AccountLockoutRecord, tuple[Decision, AccountLockoutRecord]]:
            updated, decision = evaluate_attempt(self._policy, record, success, now)
            return updated, (decision, record)

        record, (decision, previous) = self._store.transact(username, apply)
        lock_changed = record.lockout_started_at != previous.lockout_started_at

        if previous.locked and lock_changed:
            logger.info("Account %s unlocked after lockout period", username)

        if isinstance(decision, Allowed):
            logger.info("Successful sign-in for user: %s", username)
        elif isinstance(decision, Rejected):
            logger.info(
                "Failed login attempt for user: %s. Attempt %d of %d",
                username,
                decision.attempt,
                decision.of,
            )
        elif isinstance(decision, Locked) and lock_changed:
            logger.warning(
                "Account %s locked after %d failed attempts",
                username,
                record.failed_attempts,
            )
        else:
            logger.info(
                "Account %s is locked. Remaining lockout time: %.0f seconds",
                username,
                decision.remaining.total_seconds(),
            )
        return decision
