"""
api/routes/v1/auth.py -- Sign-up, sign-in and session REST endpoints.

Routes:
  POST /api/auth/signup            -- register; returns profile + token (201)
  POST /api/auth/signin            -- email/password (+ uniqueCode for admin tier)
  POST /api/auth/logout            -- server-side no-op; the client drops its token
  GET  /api/auth/me                -- current profile (requires auth)
  POST /api/auth/refresh           -- new token for the current account (requires auth)
  POST /api/auth/change-password   -- rotate password after re-checking it (requires auth)

Security:
  signin and signup are rate limited per IP (limits come from Settings).
  Unknown email and wrong password return the same INVALID_CREDENTIALS.
  Cache-Control: no-store on every response that carries a token.
"""

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import limiter, signin_limit, signup_limit
from api.models import (
    AuthResponse,
    ChangePasswordRequest,
    MessageResponse,
    PublicProfile,
    SigninRequest,
    SignupRequest,
    TokenResponse,
    UserEnvelope,
)
from auth.dependencies import get_current_user
from auth.models import Account
from auth.service import AuthService

# Auth policy:
# - POST /api/auth/signup:           public, rate limited
# - POST /api/auth/signin:           public, rate limited
# - POST /api/auth/logout:           requires auth (get_current_user)
# - GET  /api/auth/me:               requires auth (get_current_user)
# - POST /api/auth/refresh:          requires auth (get_current_user)
# - POST /api/auth/change-password:  requires auth (get_current_user)
router = APIRouter()


def _auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/signup", response_model=AuthResponse, status_code=201)
@limiter.limit(signup_limit)
def signup(request: Request, response: Response, body: SignupRequest) -> AuthResponse:
    """Register a new account and sign it in.

    Requesting role admin or superadmin requires the shared uniqueCode.
    """
    result = _auth_service(request).sign_up(body.to_registration())
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        message="User registered successfully",
        user=PublicProfile.from_account(result.account),
        token=result.token,
    )


@router.post("/auth/signin", response_model=AuthResponse)
@limiter.limit(signin_limit)  # brute-force mitigation alongside the per-account lockout
def signin(request: Request, response: Response, body: SigninRequest) -> AuthResponse:
    """Authenticate with email and password.

    Failures for unknown email and wrong password are indistinguishable.
    Admin-tier accounts must also send the shared uniqueCode.
    """
    result = _auth_service(request).sign_in(str(body.email), body.password, body.unique_code)
    response.headers["Cache-Control"] = "no-store"
    return AuthResponse(
        message="Login successful",
        user=PublicProfile.from_account(result.account),
        token=result.token,
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(user: Account = Depends(get_current_user)) -> MessageResponse:
    """Acknowledge logout. Tokens are not revoked; the client discards its copy."""
    return MessageResponse(message="Logout successful")


@router.get("/auth/me", response_model=UserEnvelope)
def me(user: Account = Depends(get_current_user)) -> UserEnvelope:
    """Return the current account's public profile."""
    return UserEnvelope(user=PublicProfile.from_account(user))


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, response: Response, user: Account = Depends(get_current_user)) -> TokenResponse:
    """Issue a fresh token. The previous token remains valid until it expires."""
    token = _auth_service(request).refresh(user)
    response.headers["Cache-Control"] = "no-store"
    return TokenResponse(message="Token refreshed successfully", token=token)


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: Account = Depends(get_current_user),
) -> MessageResponse:
    """Rotate the caller's password. The current password must be re-entered."""
    _auth_service(request).change_password(user, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully")
