"""
auth/service.py -- Sign-in, sign-up, token refresh and password change.

AuthService owns the authentication flows. It is built once in the app
lifespan with everything it needs passed in explicitly: the store, the token
issuer, the lockout policy, and the shared admin code. No module-level config.

Sign-in order matters and is fixed:
  1. unknown email      -> InvalidCredentials (after a dummy bcrypt check)
  2. locked             -> AccountLocked (with lockUntil)
  3. inactive           -> AccountDeactivated
  4. privileged role    -> unique code must match, else InvalidCredentials
                           (checked before the password, no counter change)
  5. wrong password     -> lockout failure, then InvalidCredentials
  6. success            -> lockout reset, token issued

Nothing here retries. A retried sign-in is a new attempt and counts as one.
"""

from __future__ import annotations

import hmac
import logging

from auth.accounts import insert_account
from auth.errors import (
    AccountDeactivated,
    AccountLocked,
    InvalidAdminCode,
    InvalidCredentials,
    InvalidCurrentPassword,
    NotFound,
)
from auth.lockout import LockoutPolicy
from auth.models import PRIVILEGED_ROLES, Account, AuthResult, Registration
from auth.store import AccountStore
from auth.tokens import TokenIssuer, equalize_timing, hash_password, verify_password

logger = logging.getLogger("rolekeeper.auth")


class AuthService:
    def __init__(
        self,
        store: AccountStore,
        issuer: TokenIssuer,
        lockout: LockoutPolicy,
        admin_unique_code: str,
    ) -> None:
        self.store = store
        self.issuer = issuer
        self.lockout = lockout
        self._admin_unique_code = admin_unique_code

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def check_admin_code(self, code: str | None) -> bool:
        """Constant-time comparison against the shared privileged code."""
        if not code:
            return False
        return hmac.compare_digest(code.encode("utf-8"), self._admin_unique_code.encode("utf-8"))

    def create_account(self, registration: Registration) -> Account:
        return insert_account(self.store, registration)

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    def sign_up(self, registration: Registration) -> AuthResult:
        """Register a new account and issue its first session token."""
        if registration.role in PRIVILEGED_ROLES and not self.check_admin_code(registration.unique_code):
            raise InvalidAdminCode()
        account = self.create_account(registration)
        return AuthResult(account=account, token=self.issuer.issue(account.id))

    def sign_in(self, email: str, password: str, unique_code: str | None = None) -> AuthResult:
        """Authenticate by email and password; see the module docstring for the order of checks."""
        account = self.store.get_by_email(email)
        if account is None:
            equalize_timing(password)
            logger.info("Sign-in failed: unknown email")
            raise InvalidCredentials()

        if self.lockout.is_locked(account):
            logger.info("Sign-in refused: account %s is locked", account.id)
            raise AccountLocked(lockUntil=account.locked_until)

        if not account.is_active:
            logger.info("Sign-in refused: account %s is deactivated", account.id)
            raise AccountDeactivated()

        if account.role in PRIVILEGED_ROLES and not self.check_admin_code(unique_code):
            logger.info("Sign-in failed: bad unique code for account %s", account.id)
            raise InvalidCredentials()

        if not verify_password(password, account.hashed_password):
            self.lockout.register_failure(self.store, account)
            logger.info("Sign-in failed: wrong password for account %s", account.id)
            raise InvalidCredentials()

        self.lockout.register_success(self.store, account)
        logger.info("Sign-in succeeded for account %s", account.id)
        return AuthResult(account=account, token=self.issuer.issue(account.id))

    def refresh(self, account: Account) -> str:
        return self.issuer.refresh(account.id)

    def change_password(self, account: Account, current_password: str, new_password: str) -> None:
        """Rotate the caller's password after re-checking the current one."""
        stored = self.store.get_by_id(account.id)
        if stored is None:
            raise NotFound()
        if not verify_password(current_password, stored.hashed_password):
            raise InvalidCurrentPassword()
        self.store.update_account(account.id, hashed_password=hash_password(new_password))
        logger.info("Password changed for account %s", account.id)
