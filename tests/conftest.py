"""
tests/conftest.py -- Shared test fixtures for RoleKeeper tests.

This module provides:
  - _patch_lifespan(): wires test objects into app.state, bypassing real startup
  - api_client: TestClient plus a seeded user, admin and superadmin with tokens
  - store / issuer / lockout / auth_service / account_service: unit-level objects

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares one
in-memory instance across all connections in the same process.

The DEBUG env var must be set before api.main is imported: the app reads
Settings at import time for CORS, and Settings refuses to load without a
SECRET_KEY outside dev mode.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import NamedTuple

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.accounts import AccountService
from auth.lockout import LockoutPolicy
from auth.models import ROLE_ADMIN, ROLE_SUPERADMIN, ROLE_USER, Account
from auth.service import AuthService
from auth.store import AccountStore
from auth.tokens import TokenIssuer
from tests.helpers import TEST_ADMIN_CODE, TEST_SECRET, make_account, make_store

# ---------------------------------------------------------------------------
# Lifespan patch
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, issuer: TokenIssuer, lockout: LockoutPolicy):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test objects into app.state so TestClient routes see
    the isolated test DB and the test secret rather than production settings.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.account_store = store
        app.state.token_issuer = issuer
        app.state.auth_service = AuthService(store, issuer, lockout, TEST_ADMIN_CODE)
        app.state.account_service = AccountService(store, lockout)
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _no_rate_limits() -> Generator[None, None, None]:
    """Integration tests sign in far more often than the production limits allow.

    Tests that exercise the limiter turn it back on themselves.
    """
    limiter.reset()
    limiter.enabled = False
    yield
    limiter.enabled = True
    limiter.reset()


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = make_store("unit")
    yield s
    s.close()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET)


@pytest.fixture
def lockout() -> LockoutPolicy:
    return LockoutPolicy()


@pytest.fixture
def auth_service(store: AccountStore, issuer: TokenIssuer, lockout: LockoutPolicy) -> AuthService:
    return AuthService(store, issuer, lockout, TEST_ADMIN_CODE)


@pytest.fixture
def account_service(store: AccountStore, lockout: LockoutPolicy) -> AccountService:
    return AccountService(store, lockout)


# ---------------------------------------------------------------------------
# Module-scoped API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


class ApiContext(NamedTuple):
    client: TestClient
    store: AccountStore
    issuer: TokenIssuer
    user: Account
    admin: Account
    superadmin: Account
    user_token: str
    admin_token: str
    superadmin_token: str


@pytest.fixture(scope="module")
def api_client() -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers but use an isolated in-memory store. One account
    per tier is created before the client starts, each with a session token.
    """
    store = make_store("api")
    issuer = TokenIssuer(TEST_SECRET)
    lockout = LockoutPolicy()

    user = make_account(store, "user@example.com", ROLE_USER, first_name="Una", last_name="User")
    admin = make_account(store, "admin@example.com", ROLE_ADMIN, first_name="Ada", last_name="Admin")
    superadmin = make_account(store, "root@example.com", ROLE_SUPERADMIN, first_name="Sue", last_name="Root")

    app.router.lifespan_context = _patch_lifespan(store, issuer, lockout)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            store=store,
            issuer=issuer,
            user=user,
            admin=admin,
            superadmin=superadmin,
            user_token=issuer.issue(user.id),
            admin_token=issuer.issue(admin.id),
            superadmin_token=issuer.issue(superadmin.id),
        )

    store.close()
