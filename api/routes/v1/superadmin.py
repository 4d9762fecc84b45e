"""
api/routes/v1/superadmin.py -- Superadmin-only account management endpoints.

Routes (all require superadmin):
  GET    /api/superadmin/users                           -- list accounts of every tier
  POST   /api/superadmin/users                           -- create an account with any role (201)
  PUT    /api/superadmin/users/{user_id}                 -- sparse update, any tier
  DELETE /api/superadmin/users/{user_id}                 -- delete any account
  POST   /api/superadmin/users/{user_id}/reset-password  -- set a new password
  POST   /api/superadmin/users/{user_id}/unlock          -- clear the lockout state
  GET    /api/superadmin/dashboard                       -- account counts

Removing, deactivating or demoting the last active superadmin is refused
with LAST_SUPERADMIN.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import (
    AdminUserUpdate,
    DashboardResponse,
    DashboardStats,
    MessageResponse,
    PageLimit,
    PageNumber,
    PublicProfile,
    ResetPasswordRequest,
    RoleEnum,
    SuperAdminCreate,
    UserEnvelope,
    UserId,
    UserListResponse,
)
from api.routes.v1.admin import page_response
from auth.accounts import AccountService
from auth.dependencies import require_superadmin
from auth.models import Account

# Auth policy: every route requires superadmin (require_superadmin).
router = APIRouter()


def _accounts(request: Request) -> AccountService:
    return request.app.state.account_service


@router.get("/superadmin/users", response_model=UserListResponse)
def list_users(
    request: Request,
    page: PageNumber = 1,
    limit: PageLimit = 10,
    search: str = Query("", max_length=100),
    role: Optional[RoleEnum] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    user: Account = Depends(require_superadmin),
) -> UserListResponse:
    result = _accounts(request).list_accounts(
        user,
        search=search.strip(),
        role=role.value if role else None,
        is_active=is_active,
        page=page,
        limit=limit,
    )
    return page_response(result)


@router.post("/superadmin/users", response_model=UserEnvelope, status_code=201)
def create_user(
    request: Request,
    body: SuperAdminCreate,
    user: Account = Depends(require_superadmin),
) -> UserEnvelope:
    """Create an account of any role. No uniqueCode is needed and no token is issued."""
    account = _accounts(request).create_account(user, body.to_registration())
    return UserEnvelope(message="User created successfully", user=PublicProfile.from_account(account))


@router.put("/superadmin/users/{user_id}", response_model=UserEnvelope)
def update_user(
    request: Request,
    user_id: UserId,
    body: AdminUserUpdate,
    user: Account = Depends(require_superadmin),
) -> UserEnvelope:
    account = _accounts(request).admin_update(user, user_id, body.changes())
    return UserEnvelope(message="User updated successfully", user=PublicProfile.from_account(account))


@router.delete("/superadmin/users/{user_id}", response_model=MessageResponse)
def delete_user(request: Request, user_id: UserId, user: Account = Depends(require_superadmin)) -> MessageResponse:
    _accounts(request).admin_delete(user, user_id)
    return MessageResponse(message="User deleted successfully")


@router.post("/superadmin/users/{user_id}/reset-password", response_model=MessageResponse)
def reset_password(
    request: Request,
    user_id: UserId,
    body: ResetPasswordRequest,
    user: Account = Depends(require_superadmin),
) -> MessageResponse:
    _accounts(request).reset_password(user, user_id, body.new_password)
    return MessageResponse(message="Password reset successfully")


@router.post("/superadmin/users/{user_id}/unlock", response_model=UserEnvelope)
def unlock_user(request: Request, user_id: UserId, user: Account = Depends(require_superadmin)) -> UserEnvelope:
    account = _accounts(request).unlock(user, user_id)
    return UserEnvelope(message="User unlocked successfully", user=PublicProfile.from_account(account))


@router.get("/superadmin/dashboard", response_model=DashboardResponse)
def dashboard(request: Request, user: Account = Depends(require_superadmin)) -> DashboardResponse:
    return DashboardResponse(stats=DashboardStats(**_accounts(request).dashboard_stats()))
