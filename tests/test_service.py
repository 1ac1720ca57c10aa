"""
Tests for attempt processing and the administrative operations.

Tests cover:
- Username normalization
- The five-failure lockout scenario with simulated time
- First-ever successful attempt
- status / reset / unlock / clear_all / statistics / list_accounts
- Concurrent attempts through the service
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from lockout.admin import AccountAdmin
from lockout.clock import ManualClock
from lockout.engine import Allowed, Locked, LockoutPolicy, Rejected
from lockout.errors import NotFoundError, ValidationError
from lockout.service import LockoutService
from lockout.store import LockoutStore


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture()
def store(clock: ManualClock) -> LockoutStore:
    return LockoutStore(clock=clock)


@pytest.fixture()
def policy() -> LockoutPolicy:
    return LockoutPolicy(threshold=5, unlock_window=timedelta(minutes=1))


@pytest.fixture()
def service(store: LockoutStore, policy: LockoutPolicy) -> LockoutService:
    return LockoutService(store, policy)


@pytest.fixture()
def admin(store: LockoutStore, policy: LockoutPolicy) -> AccountAdmin:
    return AccountAdmin(store, policy)


class TestNormalization:
    """Case and surrounding whitespace do not create separate accounts."""

    def test_variants_share_one_record(self, service: LockoutService, admin: AccountAdmin):
        service.record_attempt("Alice", success=False)
        service.record_attempt(" alice ", success=False)
        decision = service.record_attempt("ALICE", success=False)

        assert decision == Rejected(attempt=3, of=5)
        for name in ("Alice", " alice ", "ALICE"):
            assert admin.status(name).record.username == "alice"
            assert admin.status(name).record.failed_attempts == 3

    def test_blank_username_rejected(self, service: LockoutService, store: LockoutStore):
        with pytest.raises(ValidationError):
            service.record_attempt("   ", success=False)
        assert len(store) == 0


class TestLockoutScenario:
    """Five failures lock alice for a minute; she gets a fresh count afterwards."""

    def test_full_cycle(self, service: LockoutService, clock: ManualClock):
        for k in range(1, 5):
            assert service.record_attempt("alice", success=False) == Rejected(attempt=k, of=5)

        fifth = service.record_attempt("alice", success=False)
        assert fifth == Locked(remaining=timedelta(seconds=60))

        clock.advance(seconds=10)
        sixth = service.record_attempt("alice", success=False)
        assert isinstance(sixth, Locked)
        assert sixth.remaining == timedelta(seconds=50)

        clock.advance(seconds=51)
        assert service.record_attempt("alice", success=False) == Rejected(attempt=1, of=5)

    def test_success_while_locked_is_still_locked(
        self, service: LockoutService, admin: AccountAdmin
    ):
        for _ in range(5):
            service.record_attempt("alice", success=False)
        assert isinstance(service.record_attempt("alice", success=True), Locked)
        assert admin.status("alice").record.locked

    def test_logs_lock_event(self, service: LockoutService, caplog):
        with caplog.at_level(logging.INFO, logger="lockout.service"):
            for _ in range(5):
                service.record_attempt("alice", success=False)
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "locked after 5 failed attempts" in warnings[0].getMessage()


class TestFirstSuccess:
    def test_first_attempt_success(self, service: LockoutService, admin: AccountAdmin):
        assert service.record_attempt("bob", success=True) == Allowed()
        status = admin.status("bob")
        assert status.record.failed_attempts == 0
        assert status.record.locked is False


class TestConcurrentAttempts:
    def test_no_lost_updates(self, store: LockoutStore):
        service = LockoutService(store, LockoutPolicy(threshold=1_000))
        n = 100
        with ThreadPoolExecutor(max_workers=12) as pool:
            list(pool.map(lambda _: service.record_attempt("Zed", success=False), range(n)))
        assert store.get("zed").failed_attempts == n


class TestStatus:
    def test_unknown_user(self, admin: AccountAdmin):
        with pytest.raises(NotFoundError):
            admin.status("nobody")

    def test_remaining_seconds(self, service: LockoutService, admin: AccountAdmin, clock):
        for _ in range(5):
            service.record_attempt("alice", success=False)
        clock.advance(seconds=25)
        assert admin.status("alice").remaining_lockout_seconds == pytest.approx(35.0)

    def test_remaining_zero_when_unlocked(self, service: LockoutService, admin: AccountAdmin):
        service.record_attempt("alice", success=False)
        assert admin.status("alice").remaining_lockout_seconds == 0

    def test_blank_username(self, admin: AccountAdmin):
        with pytest.raises(ValidationError):
            admin.status("  ")


class TestReset:
    def test_reset_then_status_not_found(self, service: LockoutService, admin: AccountAdmin):
        service.record_attempt("alice", success=False)
        admin.reset("Alice")
        with pytest.raises(NotFoundError):
            admin.status("alice")

    def test_reset_twice(self, service: LockoutService, admin: AccountAdmin):
        service.record_attempt("alice", success=False)
        admin.reset("alice")
        with pytest.raises(NotFoundError):
            admin.reset("alice")

    def test_attempt_after_reset_starts_over(self, service: LockoutService, admin: AccountAdmin):
        for _ in range(3):
            service.record_attempt("alice", success=False)
        admin.reset("alice")
        assert service.record_attempt("alice", success=False) == Rejected(attempt=1, of=5)


class TestUnlock:
    def test_unlock_locked_account(self, service: LockoutService, admin: AccountAdmin):
        for _ in range(5):
            service.record_attempt("alice", success=False)
        record = admin.unlock("alice")
        assert not record.locked
        assert record.failed_attempts == 0
        assert service.record_attempt("alice", success=False) == Rejected(attempt=1, of=5)

    def test_unlock_keeps_record(self, service: LockoutService, admin: AccountAdmin):
        service.record_attempt("alice", success=False)
        admin.unlock("alice")
        assert admin.status("alice").record.failed_attempts == 0

    def test_unlock_unknown(self, admin: AccountAdmin, store: LockoutStore):
        with pytest.raises(NotFoundError):
            admin.unlock("ghost")
        assert store.get("ghost") is None


class TestClearAllAndStatistics:
    def test_clear_all_scenario(self, service: LockoutService, admin: AccountAdmin):
        for i in range(10):
            service.record_attempt(f"user{i}", success=False)

        assert admin.clear_all() == 10

        stats = admin.statistics()
        assert stats.total_accounts == 0
        assert stats.locked_accounts == 0
        assert stats.active_accounts == 0
        assert stats.recent_failed_attempts == 0

    def test_statistics_counts(self, service: LockoutService, admin: AccountAdmin, clock):
        for _ in range(5):
            service.record_attempt("locked", success=False)
        service.record_attempt("old", success=False)
        clock.advance(minutes=6)
        service.record_attempt("recent", success=False)

        stats = admin.statistics()
        assert stats.total_accounts == 3
        assert stats.locked_accounts == 1
        assert stats.active_accounts == 2
        assert stats.recent_failed_attempts == 1
        assert stats.lockout_threshold == 5
        assert stats.lockout_duration_minutes == 1
        assert stats.timestamp == clock.now()

    def test_list_accounts(self, service: LockoutService, admin: AccountAdmin):
        for _ in range(5):
            service.record_attempt("alice", success=False)
        service.record_attempt("bob", success=False)

        accounts = {a.record.username: a for a in admin.list_accounts()}
        assert set(accounts) == {"alice", "bob"}
        assert accounts["alice"].remaining_lockout_seconds == pytest.approx(60.0)
        assert accounts["bob"].remaining_lockout_seconds == 0


class TestAutoUnlockLog:
    def test_logs_unlock_after_window(self, service: LockoutService, clock: ManualClock, caplog):
        for _ in range(5):
            service.record_attempt("alice", success=False)
        clock.advance(seconds=61)
        with caplog.at_level(logging.INFO, logger="lockout.service"):
            service.record_attempt("alice", success=False)
        messages = [r.getMessage() for r in caplog.records]
        assert "Account alice unlocked after lockout period" in messages

    def test_no_unlock_log_while_locked(self, service: LockoutService, clock: ManualClock, caplog):
        for _ in range(5):
            service.record_attempt("alice", success=False)
        clock.advance(seconds=30)
        with caplog.at_level(logging.INFO, logger="lockout.service"):
            service.record_attempt("alice", success=False)
        assert not any("unlocked" in r.getMessage() for r in caplog.records)
