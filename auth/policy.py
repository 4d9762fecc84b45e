"""
auth/policy.py -- Role-tier authorization rules.

Three hard-coded tiers ordered user < admin < superadmin. Every rule here is a
pure function of roles and ids: no store access, no request objects, no
exceptions. Dependencies and services ask these functions and raise
AccessDenied themselves, so the rules can be tested as plain truth tables.

Who may do what:
  user        -- only their own account.
  admin       -- list/read/update/(de)activate/delete user-tier accounts, and
                 their own account through self-profile routes. Never another
                 admin or a superadmin; never assigns a privileged role; never
                 creates accounts.
  superadmin  -- everything, including creating accounts with any role.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import PRIVILEGED_ROLES, ROLE_ADMIN, ROLE_SUPERADMIN, ROLE_USER, ROLES

ADMIN_TIER: tuple[str, ...] = (ROLE_ADMIN, ROLE_SUPERADMIN)
SUPERADMIN_TIER: tuple[str, ...] = (ROLE_SUPERADMIN,)

# user < admin < superadmin
ROLE_ORDER: dict[str, int] = {role: rank for rank, role in enumerate(ROLES)}


def outranks(role_a: str, role_b: str) -> bool:
    """True iff role_a sits strictly above role_b. Unknown roles rank lowest."""
    return ROLE_ORDER.get(role_a, -1) > ROLE_ORDER.get(role_b, -1)


def authorize(caller_role: str, required_roles: Iterable[str]) -> bool:
    """True iff caller_role is one of required_roles."""
    return caller_role in tuple(required_roles)


def can_access_user(caller_role: str, caller_id: int, target_role: str, target_id: int) -> bool:
    """Target-resource check for reading another account's profile."""
    if caller_role == ROLE_SUPERADMIN:
        return True
    if caller_role == ROLE_ADMIN:
        return target_role == ROLE_USER or caller_id == target_id
    return caller_id == target_id


def can_manage(caller_role: str, target_role: str) -> bool:
    """True iff caller may read, modify, (de)activate or delete an account of target_role."""
    if caller_role == ROLE_SUPERADMIN:
        return True
    if caller_role == ROLE_ADMIN:
        return target_role == ROLE_USER
    return False


def can_assign_role(caller_role: str, new_role: str) -> bool:
    """True iff caller may set an account's role to new_role.

    Only a superadmin can make someone an admin or superadmin.
    """
    if new_role not in ROLES:
        return False
    if new_role in PRIVILEGED_ROLES:
        return caller_role == ROLE_SUPERADMIN
    return caller_role in ADMIN_TIER


def visible_roles(caller_role: str) -> list[str] | None:
    """Roles an account listing may include for this caller. None means unrestricted."""
    if caller_role == ROLE_SUPERADMIN:
        return None
    if caller_role == ROLE_ADMIN:
        return [ROLE_USER]
    return []
