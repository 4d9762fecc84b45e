"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The authentication gate. Only one credential transport is accepted:
  Authorization: Bearer <token>

Resolution order (first failure wins):
  1. header missing or not a Bearer token  -> NoToken
  2. signature / format invalid            -> InvalidToken
     exp in the past                       -> TokenExpired
  3. account referenced by the token gone  -> InvalidToken
  4. account deactivated                   -> AccountDeactivated
  5. the Account is returned to the route

get_current_user() is the gate. require_admin() and require_superadmin()
compose it with auth.policy.authorize() -- role lists are module constants,
never closures over mutable state.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
Errors are raised as auth.errors types; api/main.py maps them to responses.
"""

from __future__ import annotations

from collections.abc import Iterable

from fastapi import Request

from auth.errors import AccessDenied, AccountDeactivated, InvalidToken, NoToken
from auth.models import Account
from auth.policy import ADMIN_TIER, SUPERADMIN_TIER, authorize
from auth.store import AccountStore
from auth.tokens import TokenIssuer


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request) -> Account:
    """Require a valid Bearer token for an active account.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: Account = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise NoToken()

    issuer: TokenIssuer = request.app.state.token_issuer
    account_id = issuer.verify(token)

    store: AccountStore = request.app.state.account_store
    account = store.get_by_id(account_id)
    if account is None:
        raise InvalidToken("Invalid token. User not found.")
    if not account.is_active:
        raise AccountDeactivated()
    return account


def _require_roles(request: Request, roles: Iterable[str]) -> Account:
    account = get_current_user(request)
    roles = tuple(roles)
    if not authorize(account.role, roles):
        raise AccessDenied(
            "Access denied. Insufficient permissions.",
            requiredRoles=list(roles),
            userRole=account.role,
        )
    return account


def require_admin(request: Request) -> Account:
    """Require admin or superadmin. 401 if unauthenticated, 403 otherwise."""
    return _require_roles(request, ADMIN_TIER)


def require_superadmin(request: Request) -> Account:
    """Require superadmin. 401 if unauthenticated, 403 otherwise."""
    return _require_roles(request, SUPERADMIN_TIER)
