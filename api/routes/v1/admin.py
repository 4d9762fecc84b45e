"""
api/routes/v1/admin.py -- Admin-tier account management endpoints.

Routes (all require admin or superadmin):
  GET    /api/admin/users                     -- paginated list of user-tier accounts
  GET    /api/admin/users/{user_id}           -- read a managed account
  PUT    /api/admin/users/{user_id}           -- sparse update, including role/isActive
  DELETE /api/admin/users/{user_id}           -- delete a managed account
  POST   /api/admin/users/{user_id}/activate
  POST   /api/admin/users/{user_id}/deactivate
  GET    /api/admin/dashboard                 -- account counts
  POST   /api/admin/qrcodes                   -- save a batch of generated codes (201)

An admin caller only ever reaches user-tier accounts. Targets above that tier
answer ACCESS_DENIED; missing targets answer USER_NOT_FOUND first.
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
    Pagination,
    PublicProfile,
    QrCodeBatch,
    QrCodeBatchResponse,
    QrCodeRecord,
    RoleEnum,
    UserEnvelope,
    UserId,
    UserListResponse,
)
from auth.accounts import AccountService, total_pages
from auth.dependencies import require_admin
from auth.models import Account, AccountPage

# Auth policy: every route requires the admin tier (require_admin).
router = APIRouter()


def _accounts(request: Request) -> AccountService:
    return request.app.state.account_service


def page_response(page: AccountPage) -> UserListResponse:
    """Shared by the admin and superadmin list routes."""
    pages = total_pages(page.total, page.limit)
    return UserListResponse(
        users=[PublicProfile.from_account(a) for a in page.items],
        pagination=Pagination(
            current_page=page.page,
            total_pages=pages,
            total_users=page.total,
            has_next_page=page.page < pages,
            has_prev_page=page.page > 1,
            limit=page.limit,
        ),
    )


@router.get("/admin/users", response_model=UserListResponse)
def list_users(
    request: Request,
    page: PageNumber = 1,
    limit: PageLimit = 10,
    search: str = Query("", max_length=100),
    role: Optional[RoleEnum] = None,
    is_active: Optional[bool] = Query(None, alias="isActive"),
    user: Account = Depends(require_admin),
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


@router.get("/admin/users/{user_id}", response_model=UserEnvelope)
def get_user(request: Request, user_id: UserId, user: Account = Depends(require_admin)) -> UserEnvelope:
    account = _accounts(request).admin_get(user, user_id)
    return UserEnvelope(user=PublicProfile.from_account(account))


@router.put("/admin/users/{user_id}", response_model=UserEnvelope)
def update_user(
    request: Request,
    user_id: UserId,
    body: AdminUserUpdate,
    user: Account = Depends(require_admin),
) -> UserEnvelope:
    """Only a superadmin may set role admin or superadmin; see auth.policy.can_assign_role."""
    account = _accounts(request).admin_update(user, user_id, body.changes())
    return UserEnvelope(message="User updated successfully", user=PublicProfile.from_account(account))


@router.delete("/admin/users/{user_id}", response_model=MessageResponse)
def delete_user(request: Request, user_id: UserId, user: Account = Depends(require_admin)) -> MessageResponse:
    _accounts(request).admin_delete(user, user_id)
    return MessageResponse(message="User deleted successfully")


@router.post("/admin/users/{user_id}/activate", response_model=UserEnvelope)
def activate_user(request: Request, user_id: UserId, user: Account = Depends(require_admin)) -> UserEnvelope:
    account = _accounts(request).set_active(user, user_id, True)
    return UserEnvelope(message="User activated successfully", user=PublicProfile.from_account(account))


@router.post("/admin/users/{user_id}/deactivate", response_model=UserEnvelope)
def deactivate_user(request: Request, user_id: UserId, user: Account = Depends(require_admin)) -> UserEnvelope:
    account = _accounts(request).set_active(user, user_id, False)
    return UserEnvelope(message="User deactivated successfully", user=PublicProfile.from_account(account))


@router.get("/admin/dashboard", response_model=DashboardResponse)
def dashboard(request: Request, user: Account = Depends(require_admin)) -> DashboardResponse:
    return DashboardResponse(stats=DashboardStats(**_accounts(request).dashboard_stats()))


@router.post("/admin/qrcodes", response_model=QrCodeBatchResponse, status_code=201)
def save_qr_codes(request: Request, body: QrCodeBatch, user: Account = Depends(require_admin)) -> QrCodeBatchResponse:
    """Store a batch of codes. One duplicate rejects the whole batch with CODES_EXIST."""
    saved = _accounts(request).save_qr_codes(user, body.codes)
    return QrCodeBatchResponse(codes=[QrCodeRecord.from_qr_code(qr) for qr in saved])
