"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; api/models.py owns the HTTP shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLE_SUPERADMIN = "superadmin"

# Ascending privilege. Position in this tuple is the role's rank.
ROLES: tuple[str, ...] = (ROLE_USER, ROLE_ADMIN, ROLE_SUPERADMIN)
PRIVILEGED_ROLES: frozenset[str] = frozenset({ROLE_ADMIN, ROLE_SUPERADMIN})


@dataclass
class Account:
    """A stored user identity with credentials, role, and status.

    email is always stored stripped and lowercased (see auth.store.normalize_email).

    failed_attempt_count / locked_until are the lockout state owned by
    auth.lockout.LockoutPolicy. locked_until is an ISO 8601 UTC string; a value
    in the future means the account is locked regardless of the counter.

    hashed_password must never reach an API response or a log line.
    """

    email: str
    first_name: str
    last_name: str
    hashed_password: str
    role: str = ROLE_USER  # "user", "admin", "superadmin"
    id: int | None = None
    is_active: bool = True
    phone_number: str | None = None
    department: str | None = None
    position: str | None = None
    failed_attempt_count: int = 0
    locked_until: str | None = None
    last_login: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class Registration:
    """Validated input for creating an account (self signup or superadmin create).

    password is plaintext here and only here; the service hashes it before the
    Account is built.
    """

    email: str
    first_name: str
    last_name: str
    password: str
    role: str = ROLE_USER
    phone_number: str | None = None
    department: str | None = None
    position: str | None = None
    unique_code: str | None = None


@dataclass
class AuthResult:
    """A successful signin/signup: the account as stored plus a fresh session token."""

    account: Account
    token: str


@dataclass
class AccountPage:
    """One page of an account listing plus the total match count."""

    items: list[Account]
    total: int
    page: int
    limit: int


@dataclass
class QrCode:
    """A generated QR code value saved by an admin-tier account.

    code is unique across the table; created_by is the saving account's id.
    """

    code: str
    created_by: int
    id: int | None = None
    created_at: str | None = None
