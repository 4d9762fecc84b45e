"""
API request and response models for RoleKeeper REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

JSON keys are camelCase on the wire (firstName, isActive, uniqueCode) because
that is what the single-page front end sends and reads. Python attributes stay
snake_case; the alias generator bridges the two and populate_by_name lets
tests build models with either spelling.

Validation here is the whole of request validation: the auth core assumes
every value it receives already passed these models.
"""

import re
from enum import Enum
from typing import Annotated, Optional

from fastapi import Path, Query
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Account, QrCode, Registration

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PHONE_PATTERN = r"^\+?[1-9]\d{0,15}$"
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"\d")

_Name = Annotated[str, Field(min_length=2, max_length=50)]
_Phone = Annotated[str, Field(pattern=PHONE_PATTERN)]
_Label = Annotated[str, Field(max_length=100)]

# SQLite INTEGER is signed 64-bit. Ids and page offsets past it cannot be bound.
MAX_DB_INT = 2**63 - 1
PAGE_LIMIT_MAX = 100
PAGE_MAX = MAX_DB_INT // PAGE_LIMIT_MAX

UserId = Annotated[int, Path(ge=1, le=MAX_DB_INT)]
PageNumber = Annotated[int, Query(ge=1, le=PAGE_MAX)]
PageLimit = Annotated[int, Query(ge=1, le=PAGE_LIMIT_MAX)]


def _check_password_strength(value: str) -> str:
    if not (_UPPER.search(value) and _LOWER.search(value) and _DIGIT.search(value)):
        raise ValueError("Password must contain at least one uppercase letter, one lowercase letter, and one number")
    return value


_Password = Annotated[
    str,
    Field(min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN),
    AfterValidator(_check_password_strength),
]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"
    superadmin = "superadmin"


# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------


class SignupRequest(_CamelModel):
    """Request body for POST /api/auth/signup."""

    first_name: _Name
    last_name: _Name
    email: EmailStr
    password: _Password
    phone_number: Optional[_Phone] = None
    department: Optional[_Label] = None
    position: Optional[_Label] = None
    role: RoleEnum = RoleEnum.user
    unique_code: Optional[str] = Field(default=None, max_length=100)

    def to_registration(self) -> Registration:
        return Registration(
            email=str(self.email),
            first_name=self.first_name,
            last_name=self.last_name,
            password=self.password,
            role=self.role.value,
            phone_number=self.phone_number,
            department=self.department,
            position=self.position,
            unique_code=self.unique_code,
        )


class SigninRequest(_CamelModel):
    """Request body for POST /api/auth/signin."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)
    unique_code: Optional[str] = Field(default=None, max_length=100)


class ChangePasswordRequest(_CamelModel):
    """Request body for POST /api/auth/change-password."""

    current_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LEN)
    new_password: _Password


# ---------------------------------------------------------------------------
# Account request models
# ---------------------------------------------------------------------------


class ProfileUpdate(_CamelModel):
    """Request body for PUT /api/users/profile.

    Every field is optional. Omitted fields are left unchanged; phoneNumber,
    department and position accept an explicit null to clear them. Names can
    be changed but never cleared. There is deliberately no role field.
    """

    first_name: Optional[_Name] = None
    last_name: Optional[_Name] = None
    phone_number: Optional[_Phone] = None
    department: Optional[_Label] = None
    position: Optional[_Label] = None

    @field_validator("first_name", "last_name")
    @classmethod
    def names_not_null(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("Name cannot be cleared")
        return value

    def changes(self) -> dict:
        """Only the fields the client actually sent, keyed by domain attribute name."""
        return self.model_dump(exclude_unset=True)


class AdminUserUpdate(ProfileUpdate):
    """Request body for PUT /api/admin/users/{id} and /api/superadmin/users/{id}."""

    role: Optional[RoleEnum] = None
    is_active: Optional[bool] = None

    @field_validator("role", "is_active")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    def changes(self) -> dict:
        data = self.model_dump(exclude_unset=True)
        if "role" in data:
            data["role"] = RoleEnum(data["role"]).value
        return data


class SuperAdminCreate(_CamelModel):
    """Request body for POST /api/superadmin/users. role is required here."""

    first_name: _Name
    last_name: _Name
    email: EmailStr
    password: _Password
    role: RoleEnum
    phone_number: Optional[_Phone] = None
    department: Optional[_Label] = None
    position: Optional[_Label] = None

    def to_registration(self) -> Registration:
        return Registration(
            email=str(self.email),
            first_name=self.first_name,
            last_name=self.last_name,
            password=self.password,
            role=self.role.value,
            phone_number=self.phone_number,
            department=self.department,
            position=self.position,
        )


class ResetPasswordRequest(_CamelModel):
    """Request body for POST /api/superadmin/users/{id}/reset-password."""

    new_password: _Password


class QrCodeBatch(_CamelModel):
    """Request body for POST /api/admin/qrcodes."""

    codes: list[Annotated[str, Field(min_length=1, max_length=200)]] = Field(min_length=1, max_length=500)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class PublicProfile(_CamelModel):
    """The subset of an Account that is safe to return to API clients.

    No hashed password, no failed-attempt counter, no lock timestamp.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    phone_number: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    last_login: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_account(cls, account: Account) -> "PublicProfile":
        """Factory Method -- the Account-to-wire mapping lives here, next to the output model."""
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            role=account.role,
            is_active=account.is_active,
            phone_number=account.phone_number,
            department=account.department,
            position=account.position,
            last_login=account.last_login,
            created_at=account.created_at or "",
            updated_at=account.updated_at or "",
        )


class MessageResponse(_CamelModel):
    message: str
    code: Optional[str] = None


class AuthResponse(_CamelModel):
    """Response for signup and signin: the public profile plus a session token."""

    message: str
    user: PublicProfile
    token: str


class TokenResponse(_CamelModel):
    """Response for POST /api/auth/refresh."""

    message: str
    token: str


class UserEnvelope(_CamelModel):
    user: PublicProfile
    message: Optional[str] = None


class Pagination(_CamelModel):
    current_page: int
    total_pages: int
    total_users: int
    has_next_page: bool
    has_prev_page: bool
    limit: int


class UserListResponse(_CamelModel):
    users: list[PublicProfile]
    pagination: Pagination


class DashboardStats(_CamelModel):
    total_users: int
    active_users: int
    inactive_users: int
    user_role_count: int
    admin_role_count: int
    super_admin_role_count: int
    recent_users: int


class DashboardResponse(_CamelModel):
    stats: DashboardStats


class QrCodeRecord(_CamelModel):
    id: int
    code: str
    created_by: int
    created_at: str

    @classmethod
    def from_qr_code(cls, qr: QrCode) -> "QrCodeRecord":
        return cls(id=qr.id, code=qr.code, created_by=qr.created_by, created_at=qr.created_at or "")


class QrCodeBatchResponse(_CamelModel):
    success: bool = True
    codes: list[QrCodeRecord]


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx: message plus machine-readable code.

    Some errors add fields (lockUntil, requiredRoles, userRole, errors); extra
    keys are allowed through.
    """

    model_config = ConfigDict(extra="allow")

    message: str
    code: str


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
