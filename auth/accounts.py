"""
auth/accounts.py -- Profile and account administration operations.

AccountService is the layer between the routes and AccountStore for
everything that is not a sign-in flow: self-profile CRUD, reading other
accounts, admin/superadmin management, dashboard counts, and QR code batches.

Every operation that touches another account runs the tier check before it
mutates anything:
  1. load the target's role only (store.get_role)
  2. missing target        -> NotFound
  3. policy says no        -> AccessDenied
  4. then load / change the full record

Sparse updates take a dict of the fields the client actually sent (pydantic's
exclude_unset), not a truthiness filter. An explicit null clears an optional
profile field; an omitted field is left alone.

Last-superadmin guard: deleting, deactivating or demoting the only active
superadmin raises LastSuperAdmin.
"""

from __future__ import annotations

import logging
import math
from datetime import timedelta

from sqlalchemy.exc import IntegrityError

from auth.errors import AccessDenied, CodesExist, EmailExists, LastSuperAdmin, NotFound
from auth.lockout import LockoutPolicy
from auth.models import ROLE_ADMIN, ROLE_SUPERADMIN, ROLE_USER, Account, AccountPage, QrCode, Registration
from auth.policy import (
    SUPERADMIN_TIER,
    authorize,
    can_access_user,
    can_assign_role,
    can_manage,
    outranks,
    visible_roles,
)
from auth.store import AccountStore, normalize_email
from auth.tokens import hash_password, utcnow

logger = logging.getLogger("rolekeeper.auth")

# Fields a caller may change on their own account. No role, no is_active:
# nobody elevates or reactivates themselves through the profile path.
PROFILE_FIELDS = frozenset({"first_name", "last_name", "phone_number", "department", "position"})

# Fields an admin-tier caller may change on a managed account.
MANAGED_FIELDS = PROFILE_FIELDS | {"role", "is_active"}

RECENT_WINDOW = timedelta(days=7)


def insert_account(store: AccountStore, registration: Registration) -> Account:
    """Hash the password and insert the account. Raises EmailExists on duplicates.

    No role checks here; callers decide who may create which role.
    """
    if store.get_by_email(registration.email) is not None:
        raise EmailExists()
    account = Account(
        email=normalize_email(registration.email),
        first_name=registration.first_name,
        last_name=registration.last_name,
        hashed_password=hash_password(registration.password),
        role=registration.role,
        phone_number=registration.phone_number,
        department=registration.department,
        position=registration.position,
    )
    try:
        account_id = store.create_account(account)
    except IntegrityError as exc:
        # A concurrent signup won the race past the pre-check above.
        raise EmailExists() from exc
    created = store.get_by_id(account_id)
    if created is None:
        raise NotFound("Account not found after write.")
    logger.info("Account %s created with role %s", created.id, created.role)
    return created


class AccountService:
    def __init__(self, store: AccountStore, lockout: LockoutPolicy) -> None:
        self.store = store
        self.lockout = lockout

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _reload(self, account_id: int) -> Account:
        account = self.store.get_by_id(account_id)
        if account is None:
            raise NotFound()
        return account

    def _load_managed(self, caller: Account, target_id: int) -> Account:
        """Return the target account if caller may manage it; tier check before full load."""
        target_role = self.store.get_role(target_id)
        if target_role is None:
            raise NotFound()
        if not can_manage(caller.role, target_role):
            raise AccessDenied(
                "Access denied. Cannot access admin or super admin accounts.",
                userRole=caller.role,
            )
        return self._reload(target_id)

    def _guard_last_superadmin(self, target: Account) -> None:
        if target.role == ROLE_SUPERADMIN and target.is_active and self.store.count_active_superadmins() <= 1:
            raise LastSuperAdmin()

    # ------------------------------------------------------------------
    # Self-profile
    # ------------------------------------------------------------------

    def get_profile(self, caller: Account) -> Account:
        return self._reload(caller.id)

    def update_profile(self, caller: Account, changes: dict) -> Account:
        """Apply the sent profile fields to the caller's own account."""
        updates = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        if updates and not self.store.update_account(caller.id, **updates):
            raise NotFound()
        return self._reload(caller.id)

    def delete_self(self, caller: Account) -> None:
        current = self._reload(caller.id)
        self._guard_last_superadmin(current)
        if not self.store.delete_account(caller.id):
            raise NotFound()
        logger.info("Account %s deleted itself", caller.id)

    # ------------------------------------------------------------------
    # Reading other accounts
    # ------------------------------------------------------------------

    def get_user(self, caller: Account, target_id: int) -> Account:
        """Read any account the caller is allowed to see (can_access_user)."""
        # A plain user can only ever see themselves; that check needs no lookup.
        if caller.role == ROLE_USER and caller.id != target_id:
            raise AccessDenied("Access denied. You can only access your own data.", userRole=caller.role)
        target_role = self.store.get_role(target_id)
        if target_role is None:
            raise NotFound()
        if not can_access_user(caller.role, caller.id, target_role, target_id):
            raise AccessDenied(
                "Access denied. Cannot access admin or super admin accounts.",
                userRole=caller.role,
            )
        return self._reload(target_id)

    def list_accounts(
        self,
        caller: Account,
        search: str = "",
        role: str | None = None,
        is_active: bool | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> AccountPage:
        """Page through the accounts the caller may see, newest first.

        Admins only ever see user-tier accounts, whatever role filter they send.
        """
        allowed = visible_roles(caller.role)
        if allowed == []:
            raise AccessDenied(userRole=caller.role)
        if role:
            roles = [role] if allowed is None or role in allowed else []
        else:
            roles = allowed

        if roles == []:
            return AccountPage(items=[], total=0, page=page, limit=limit)

        total = self.store.count_accounts(search=search, roles=roles, is_active=is_active)
        items = self.store.find_accounts(
            search=search,
            roles=roles,
            is_active=is_active,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return AccountPage(items=items, total=total, page=page, limit=limit)

    # ------------------------------------------------------------------
    # Admin / superadmin management
    # ------------------------------------------------------------------

    def create_account(self, caller: Account, registration: Registration) -> Account:
        """Create an account of any role on behalf of a superadmin. No token is issued."""
        if not authorize(caller.role, SUPERADMIN_TIER):
            raise AccessDenied(requiredRoles=list(SUPERADMIN_TIER), userRole=caller.role)
        created = insert_account(self.store, registration)
        logger.info("Account %s created by %s", created.id, caller.id)
        return created

    def admin_get(self, caller: Account, target_id: int) -> Account:
        return self._load_managed(caller, target_id)

    def admin_update(self, caller: Account, target_id: int, changes: dict) -> Account:
        """Apply sent fields to a managed account.

        Role changes are checked against the caller's tier: only a superadmin
        can make an account admin or superadmin.
        """
        target = self._load_managed(caller, target_id)
        updates = {k: v for k, v in changes.items() if k in MANAGED_FIELDS}

        new_role = updates.get("role")
        if new_role is not None and new_role != target.role:
            if not can_assign_role(caller.role, new_role):
                raise AccessDenied(
                    "Access denied. Only super admin can promote users to admin role.",
                    userRole=caller.role,
                )
            if outranks(target.role, new_role):
                self._guard_last_superadmin(target)
        if updates.get("is_active") is False:
            self._guard_last_superadmin(target)

        if updates:
            self.store.update_account(target_id, **updates)
            if new_role is not None and new_role != target.role:
                logger.info("Account %s role changed %s -> %s by %s", target_id, target.role, new_role, caller.id)
        return self._reload(target_id)

    def admin_delete(self, caller: Account, target_id: int) -> None:
        target = self._load_managed(caller, target_id)
        self._guard_last_superadmin(target)
        if not self.store.delete_account(target_id):
            raise NotFound()
        logger.info("Account %s deleted by %s", target_id, caller.id)

    def set_active(self, caller: Account, target_id: int, active: bool) -> Account:
        target = self._load_managed(caller, target_id)
        if not active:
            self._guard_last_superadmin(target)
        self.store.update_account(target_id, is_active=active)
        logger.info("Account %s %s by %s", target_id, "activated" if active else "deactivated", caller.id)
        return self._reload(target_id)

    def reset_password(self, caller: Account, target_id: int, new_password: str) -> None:
        self._load_managed(caller, target_id)
        self.store.update_account(target_id, hashed_password=hash_password(new_password))
        logger.info("Password for account %s reset by %s", target_id, caller.id)

    def unlock(self, caller: Account, target_id: int) -> Account:
        self._load_managed(caller, target_id)
        self.lockout.reset(self.store, target_id)
        logger.info("Account %s unlocked by %s", target_id, caller.id)
        return self._reload(target_id)

    # ------------------------------------------------------------------
    # Dashboard and QR codes
    # ------------------------------------------------------------------

    def dashboard_stats(self) -> dict[str, int]:
        since = (utcnow() - RECENT_WINDOW).isoformat()
        return {
            "total_users": self.store.count_accounts(),
            "active_users": self.store.count_accounts(is_active=True),
            "inactive_users": self.store.count_accounts(is_active=False),
            "user_role_count": self.store.count_accounts(roles=[ROLE_USER]),
            "admin_role_count": self.store.count_accounts(roles=[ROLE_ADMIN]),
            "super_admin_role_count": self.store.count_accounts(roles=[ROLE_SUPERADMIN]),
            "recent_users": self.store.count_accounts(created_since=since),
        }

    def save_qr_codes(self, caller: Account, codes: list[str]) -> list[QrCode]:
        """Store a batch of generated codes. Any duplicate rejects the whole batch."""
        try:
            saved = self.store.insert_qr_codes(codes, created_by=caller.id)
        except IntegrityError as exc:
            raise CodesExist() from exc
        logger.info("Account %s saved %d QR codes", caller.id, len(saved))
        return saved


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0
