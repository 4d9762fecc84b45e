"""
auth/errors.py -- Exception taxonomy for the auth core.

Every failure the core can report is an AuthError subclass carrying the HTTP
status, the machine-readable code, and a human message. Services raise them;
api/main.py has exactly one handler that turns them into
{"message": ..., "code": ..., **extra} responses. Nothing below the API layer
imports fastapi to report an error.

Sign-in failures for unknown email and wrong password share InvalidCredentials
so the response never reveals which field was wrong.
"""

from __future__ import annotations

from typing import Any


class AuthError(Exception):
    """Base class. Subclasses override status_code, code and message."""

    status_code: int = 400
    code: str = "AUTH_ERROR"
    message: str = "Request failed."

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code, **self.extra}


class ValidationFailed(AuthError):
    status_code = 400
    code = "VALIDATION_FAILED"
    message = "Validation failed."


class InvalidCredentials(AuthError):
    status_code = 401
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials."


class AccountLocked(AuthError):
    status_code = 423
    code = "ACCOUNT_LOCKED"
    message = "Account is temporarily locked due to too many failed login attempts."


class AccountDeactivated(AuthError):
    status_code = 401
    code = "ACCOUNT_DEACTIVATED"
    message = "Account is deactivated."


class NoToken(AuthError):
    status_code = 401
    code = "NO_TOKEN"
    message = "Access denied. No token provided."


class InvalidToken(AuthError):
    status_code = 401
    code = "INVALID_TOKEN"
    message = "Invalid token."


class TokenExpired(AuthError):
    status_code = 401
    code = "TOKEN_EXPIRED"
    message = "Token expired."


class AccessDenied(AuthError):
    status_code = 403
    code = "ACCESS_DENIED"
    message = "Access denied."


class InvalidAdminCode(AuthError):
    status_code = 403
    code = "INVALID_UNIQUE_CODE"
    message = "Unique code is required and must be correct for admin or superadmin accounts."


class NotFound(AuthError):
    status_code = 404
    code = "USER_NOT_FOUND"
    message = "User not found."


class EmailExists(AuthError):
    # 400 rather than 409 -- the front end keys on the code, not the status.
    status_code = 400
    code = "EMAIL_EXISTS"
    message = "User with this email already exists."


class CodesExist(AuthError):
    status_code = 409
    code = "CODES_EXIST"
    message = "Some codes already exist."


class InvalidCurrentPassword(AuthError):
    status_code = 400
    code = "INVALID_CURRENT_PASSWORD"
    message = "Current password is incorrect."


class LastSuperAdmin(AuthError):
    status_code = 400
    code = "LAST_SUPERADMIN"
    message = "Cannot remove the last active superadmin account."


class InternalError(AuthError):
    status_code = 500
    code = "INTERNAL_ERROR"
    message = "An unexpected error occurred."
