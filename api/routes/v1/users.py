"""
api/routes/v1/users.py -- Self-profile and single-account read endpoints.

Routes:
  GET    /api/users/profile      -- caller's own profile
  PUT    /api/users/profile      -- sparse update of the caller's own profile
  DELETE /api/users/profile      -- delete the caller's own account
  GET    /api/users/{user_id}    -- read another account, gated by can_access_user

The profile update body has no role or isActive field, so no caller can
elevate or reactivate themselves through this path.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, ProfileUpdate, PublicProfile, UserEnvelope, UserId
from auth.accounts import AccountService
from auth.dependencies import get_current_user
from auth.models import Account

# Auth policy: every route requires a valid Bearer token (get_current_user).
router = APIRouter()


def _accounts(request: Request) -> AccountService:
    return request.app.state.account_service


@router.get("/users/profile", response_model=UserEnvelope)
def get_profile(request: Request, user: Account = Depends(get_current_user)) -> UserEnvelope:
    account = _accounts(request).get_profile(user)
    return UserEnvelope(user=PublicProfile.from_account(account))


@router.put("/users/profile", response_model=UserEnvelope)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    user: Account = Depends(get_current_user),
) -> UserEnvelope:
    """Apply only the fields present in the body; explicit null clears optional fields."""
    account = _accounts(request).update_profile(user, body.changes())
    return UserEnvelope(message="Profile updated successfully", user=PublicProfile.from_account(account))


@router.delete("/users/profile", response_model=MessageResponse)
def delete_profile(request: Request, user: Account = Depends(get_current_user)) -> MessageResponse:
    """Delete the caller's account. Outstanding tokens stop working at the gate."""
    _accounts(request).delete_self(user)
    return MessageResponse(message="Account deleted successfully")


@router.get("/users/{user_id}", response_model=UserEnvelope)
def get_user(request: Request, user_id: UserId, user: Account = Depends(get_current_user)) -> UserEnvelope:
    account = _accounts(request).get_user(user, user_id)
    return UserEnvelope(user=PublicProfile.from_account(account))
