"""
tests/helpers.py -- Plain helpers shared by conftest.py and the test modules.

Kept out of conftest.py so test modules can import them without importing
conftest a second time under another module name.
"""

from __future__ import annotations

import uuid

from auth.accounts import insert_account
from auth.models import ROLE_USER, Account, Registration
from auth.store import AccountStore

TEST_SECRET = "rolekeeper-test-secret-0123456789abcdef0123456789abcdef"
TEST_ADMIN_CODE = "test-unique-code"
TEST_PASSWORD = "Passw0rd"


def make_store(prefix: str = "test") -> AccountStore:
    """Create an isolated named shared-memory SQLite store.

    Named URIs allow multiple connections (from different threads in
    TestClient) to reach the same in-memory database. Plain ':memory:' would
    give each thread a blank schema. Every call gets a fresh database name so
    tests never see each other's rows.
    """
    url = f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    return AccountStore(db_url=url)


def make_account(
    store: AccountStore,
    email: str,
    role: str = ROLE_USER,
    password: str = TEST_PASSWORD,
    first_name: str = "Test",
    last_name: str = "Account",
) -> Account:
    return insert_account(
        store,
        Registration(email=email, first_name=first_name, last_name=last_name, password=password, role=role),
    )


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
