"""Unit tests for auth/lockout.py and the lockout path through AuthService.sign_in.

Covers:
- counter increments per failure; lock opens at max_attempts
- the attempt after lockout is refused even with the right password
- an elapsed lock restarts the count at 1 on the next failure
- successful sign-in after the window resets the counter to 0
- reset() clears counter and lock; returns False for a missing account
"""

from datetime import timedelta

import pytest

from auth.errors import AccountLocked, InvalidCredentials
from auth.lockout import LockoutPolicy
from auth.service import AuthService
from auth.tokens import TokenIssuer, utcnow
from tests.helpers import TEST_ADMIN_CODE, TEST_PASSWORD, TEST_SECRET, make_account


class _Clock:
    """Settable clock for moving past the lock window."""

    def __init__(self) -> None:
        self.now = utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> _Clock:
    return _Clock()


@pytest.fixture
def service(store, clock) -> AuthService:
    return AuthService(store, TokenIssuer(TEST_SECRET), LockoutPolicy(clock=clock), TEST_ADMIN_CODE)


class TestLockoutPolicy:
    def test_failures_increment_counter(self, store) -> None:
        account = make_account(store, "count@example.com")
        policy = LockoutPolicy()
        for expected in (1, 2, 3):
            policy.register_failure(store, account)
            assert store.get_by_id(account.id).failed_attempt_count == expected
        assert policy.is_locked(store.get_by_id(account.id)) is False

    def test_max_attempts_opens_lock(self, store, clock) -> None:
        account = make_account(store, "lock@example.com")
        policy = LockoutPolicy(max_attempts=3, lock_seconds=60, clock=clock)
        for _ in range(3):
            policy.register_failure(store, account)
        stored = store.get_by_id(account.id)
        assert policy.is_locked(stored) is True
        assert stored.locked_until == (clock.now + timedelta(seconds=60)).isoformat()

    def test_lock_lapses_after_window(self, store, clock) -> None:
        account = make_account(store, "lapse@example.com")
        policy = LockoutPolicy(max_attempts=2, lock_seconds=60, clock=clock)
        policy.register_failure(store, account)
        policy.register_failure(store, account)
        clock.advance(seconds=61)
        assert policy.is_locked(store.get_by_id(account.id)) is False

    def test_failure_after_elapsed_lock_restarts_count(self, store, clock) -> None:
        account = make_account(store, "restart@example.com")
        policy = LockoutPolicy(max_attempts=2, lock_seconds=60, clock=clock)
        policy.register_failure(store, account)
        policy.register_failure(store, account)
        clock.advance(seconds=61)

        stored = store.get_by_id(account.id)
        policy.register_failure(store, stored)
        stored = store.get_by_id(account.id)
        assert stored.failed_attempt_count == 1
        assert stored.locked_until is None

    def test_register_success_resets(self, store) -> None:
        account = make_account(store, "ok@example.com")
        policy = LockoutPolicy()
        policy.register_failure(store, account)
        policy.register_success(store, account)
        stored = store.get_by_id(account.id)
        assert stored.failed_attempt_count == 0
        assert stored.locked_until is None
        assert stored.last_login is not None

    def test_reset(self, store) -> None:
        account = make_account(store, "reset@example.com")
        policy = LockoutPolicy(max_attempts=1)
        policy.register_failure(store, account)
        assert policy.reset(store, account.id) is True
        stored = store.get_by_id(account.id)
        assert stored.failed_attempt_count == 0
        assert policy.is_locked(stored) is False

    def test_reset_missing_account(self, store) -> None:
        assert LockoutPolicy().reset(store, 999) is False


class TestSignInLockout:
    def test_sixth_attempt_with_correct_password_is_locked(self, store, service) -> None:
        make_account(store, "victim@example.com")
        for _ in range(5):
            with pytest.raises(InvalidCredentials):
                service.sign_in("victim@example.com", "WrongPass1")
        with pytest.raises(AccountLocked) as exc_info:
            service.sign_in("victim@example.com", TEST_PASSWORD)
        assert exc_info.value.extra["lockUntil"] is not None

    def test_success_after_window_resets_counter(self, store, service, clock) -> None:
        account = make_account(store, "patient@example.com")
        for _ in range(5):
            with pytest.raises(InvalidCredentials):
                service.sign_in("patient@example.com", "WrongPass1")

        clock.advance(hours=2, seconds=1)
        result = service.sign_in("patient@example.com", TEST_PASSWORD)
        assert result.account.id == account.id
        stored = store.get_by_id(account.id)
        assert stored.failed_attempt_count == 0
        assert stored.locked_until is None

    def test_unknown_email_does_not_touch_counters(self, store, service) -> None:
        account = make_account(store, "bystander@example.com")
        with pytest.raises(InvalidCredentials):
            service.sign_in("nobody@example.com", TEST_PASSWORD)
        assert store.get_by_id(account.id).failed_attempt_count == 0
