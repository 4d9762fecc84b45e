"""
tests/test_superadmin_routes.py -- Integration tests for /api/superadmin/* routes.

Coverage:
  - admin and user callers are refused (403)
  - create: any role without uniqueCode, duplicate email, no token in response
  - update/delete across tiers, role demotion
  - last-superadmin guard on delete, deactivate and demote
  - reset-password and unlock
  - dashboard
"""

from __future__ import annotations

from auth.lockout import LockoutPolicy
from tests.helpers import TEST_PASSWORD, bearer, make_account


def _headers(api_client) -> dict[str, str]:
    return bearer(api_client.superadmin_token)


class TestGate:
    def test_admin_is_denied(self, api_client) -> None:
        resp = api_client.client.get("/api/superadmin/users", headers=bearer(api_client.admin_token))
        assert resp.status_code == 403
        assert resp.json()["requiredRoles"] == ["superadmin"]

    def test_user_is_denied(self, api_client) -> None:
        resp = api_client.client.get("/api/superadmin/dashboard", headers=bearer(api_client.user_token))
        assert resp.status_code == 403


class TestCreate:
    def test_create_admin_without_unique_code(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/superadmin/users",
            json={
                "firstName": "Made",
                "lastName": "Admin",
                "email": "made.admin@example.com",
                "password": "Cr3atedPw",
                "role": "admin",
                "department": "IT",
            },
            headers=_headers(api_client),
        )
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["user"]["role"] == "admin"
        assert data["user"]["department"] == "IT"
        assert "token" not in data

    def test_role_is_required(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/superadmin/users",
            json={"firstName": "No", "lastName": "Role", "email": "norole@example.com", "password": "Cr3atedPw"},
            headers=_headers(api_client),
        )
        assert resp.status_code == 400

    def test_duplicate_email(self, api_client) -> None:
        resp = api_client.client.post(
            "/api/superadmin/users",
            json={
                "firstName": "Dup",
                "lastName": "Licate",
                "email": "admin@example.com",
                "password": "Cr3atedPw",
                "role": "user",
            },
            headers=_headers(api_client),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "EMAIL_EXISTS"


class TestManage:
    def test_list_includes_all_tiers(self, api_client) -> None:
        resp = api_client.client.get("/api/superadmin/users?limit=100", headers=_headers(api_client))
        assert resp.status_code == 200
        roles = {u["role"] for u in resp.json()["users"]}
        assert {"user", "admin", "superadmin"} <= roles

    def test_list_role_filter(self, api_client) -> None:
        resp = api_client.client.get("/api/superadmin/users?role=superadmin", headers=_headers(api_client))
        assert {u["role"] for u in resp.json()["users"]} == {"superadmin"}

    def test_demote_admin(self, api_client) -> None:
        admin = make_account(api_client.store, "demote.me@example.com", role="admin")
        resp = api_client.client.put(
            f"/api/superadmin/users/{admin.id}",
            json={"role": "user"},
            headers=_headers(api_client),
        )
        assert resp.status_code == 200
        assert resp.json()["user"]["role"] == "user"

    def test_delete_admin(self, api_client) -> None:
        admin = make_account(api_client.store, "delete.me@example.com", role="admin")
        resp = api_client.client.delete(f"/api/superadmin/users/{admin.id}", headers=_headers(api_client))
        assert resp.status_code == 200
        assert api_client.store.get_by_id(admin.id) is None

    def test_missing_target(self, api_client) -> None:
        resp = api_client.client.put(
            "/api/superadmin/users/777777",
            json={"department": "Nowhere"},
            headers=_headers(api_client),
        )
        assert resp.status_code == 404


class TestLastSuperadmin:
    def test_cannot_remove_only_superadmin(self, api_client) -> None:
        assert api_client.store.count_active_superadmins() == 1
        target = api_client.superadmin.id
        headers = _headers(api_client)

        resp = api_client.client.delete(f"/api/superadmin/users/{target}", headers=headers)
        assert resp.status_code == 400
        assert resp.json()["code"] == "LAST_SUPERADMIN"

        resp = api_client.client.put(f"/api/superadmin/users/{target}", json={"isActive": False}, headers=headers)
        assert resp.json()["code"] == "LAST_SUPERADMIN"

        resp = api_client.client.put(f"/api/superadmin/users/{target}", json={"role": "admin"}, headers=headers)
        assert resp.json()["code"] == "LAST_SUPERADMIN"

        resp = api_client.client.delete("/api/users/profile", headers=headers)
        assert resp.json()["code"] == "LAST_SUPERADMIN"

        assert api_client.store.get_role(target) == "superadmin"

    def test_second_superadmin_can_be_removed(self, api_client) -> None:
        spare = make_account(api_client.store, "spare.root@example.com", role="superadmin")
        resp = api_client.client.delete(f"/api/superadmin/users/{spare.id}", headers=_headers(api_client))
        assert resp.status_code == 200


class TestCredentials:
    def test_reset_password(self, api_client) -> None:
        account = make_account(api_client.store, "forgetful@example.com")
        resp = api_client.client.post(
            f"/api/superadmin/users/{account.id}/reset-password",
            json={"newPassword": "Fr3shStart"},
            headers=_headers(api_client),
        )
        assert resp.status_code == 200
        signin = api_client.client.post(
            "/api/auth/signin",
            json={"email": "forgetful@example.com", "password": "Fr3shStart"},
        )
        assert signin.status_code == 200

    def test_reset_password_validates_strength(self, api_client) -> None:
        resp = api_client.client.post(
            f"/api/superadmin/users/{api_client.user.id}/reset-password",
            json={"newPassword": "short"},
            headers=_headers(api_client),
        )
        assert resp.status_code == 400

    def test_unlock(self, api_client) -> None:
        account = make_account(api_client.store, "unlucky@example.com")
        policy = LockoutPolicy(max_attempts=1)
        policy.register_failure(api_client.store, account)
        assert policy.is_locked(api_client.store.get_by_id(account.id))

        resp = api_client.client.post(f"/api/superadmin/users/{account.id}/unlock", headers=_headers(api_client))
        assert resp.status_code == 200

        signin = api_client.client.post("/api/auth/signin", json={"email": "unlucky@example.com", "password": TEST_PASSWORD})
        assert signin.status_code == 200

    def test_unlock_missing(self, api_client) -> None:
        resp = api_client.client.post("/api/superadmin/users/555555/unlock", headers=_headers(api_client))
        assert resp.status_code == 404


def test_dashboard(api_client) -> None:
    resp = api_client.client.get("/api/superadmin/dashboard", headers=_headers(api_client))
    assert resp.status_code == 200
    assert resp.json()["stats"]["superAdminRoleCount"] >= 1
