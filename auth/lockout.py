"""
auth/lockout.py -- Brute-force lockout policy.

Per-account state machine with two states:

  unlocked --(failure brings count to max_attempts)--> locked
  locked   --(now >= locked_until, checked lazily)---> unlocked
  locked   --(reset(): superadmin unlock)------------> unlocked

Any successful sign-in resets the counter to 0 and clears locked_until.

Counter updates are read-modify-write on a single row. Two concurrent failures
can both read 4 and both write 5; that lost update is accepted. The lockout is
a best-effort defence, not an exact counter.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from auth.models import Account
from auth.store import AccountStore
from auth.tokens import utcnow

logger = logging.getLogger("rolekeeper.auth")

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_LOCK_SECONDS = 2 * 60 * 60


def parse_timestamp(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class LockoutPolicy:
    """Track failed sign-in attempts and temporary lock windows per account."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        lock_seconds: int = DEFAULT_LOCK_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.max_attempts = max_attempts
        self.lock_seconds = lock_seconds
        self._clock = clock

    def is_locked(self, account: Account) -> bool:
        """True iff locked_until is set and still in the future."""
        locked_until = parse_timestamp(account.locked_until)
        return locked_until is not None and locked_until > self._clock()

    def register_failure(self, store: AccountStore, account: Account) -> None:
        """Record one failed password check against an unlocked account.

        A lock window that has already elapsed starts a fresh count at 1.
        Reaching max_attempts opens a new lock window of lock_seconds.
        """
        now = self._clock()
        updates: dict = {}
        if account.locked_until is not None and not self.is_locked(account):
            attempts = 1
            updates["locked_until"] = None
        else:
            attempts = account.failed_attempt_count + 1
        updates["failed_attempt_count"] = attempts

        if attempts >= self.max_attempts:
            updates["locked_until"] = (now + timedelta(seconds=self.lock_seconds)).isoformat()
            logger.warning("Account %s locked after %d failed sign-in attempts", account.id, attempts)

        store.update_account(account.id, **updates)
        account.failed_attempt_count = attempts
        account.locked_until = updates.get("locked_until", account.locked_until)

    def register_success(self, store: AccountStore, account: Account) -> None:
        """Reset the counter, clear any lock, and stamp last_login."""
        now = self._clock().isoformat()
        store.update_account(account.id, failed_attempt_count=0, locked_until=None, last_login=now)
        account.failed_attempt_count = 0
        account.locked_until = None
        account.last_login = now

    def reset(self, store: AccountStore, account_id: int) -> bool:
        """Explicit unlock. Returns False if the account does not exist."""
        return store.update_account(account_id, failed_attempt_count=0, locked_until=None)
