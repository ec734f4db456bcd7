"""
API tests for the caging service.

Each test gets a fresh SQLite database under ``tmp_path`` and an Admin user.
"""

from __future__ import annotations

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from compass_caging.api.app import create_app
from compass_caging.config import Settings
from compass_caging.security import hash_password

ADMIN_PASSWORD = "correct-horse"


@pytest.fixture
def api(tmp_path) -> Iterator[TestClient]:  # type: ignore[no-untyped-def]
    """Test client with migrations applied and an Admin account seeded."""
    settings = Settings(
        DATABASE_PATH=str(tmp_path / "api.db"),
        PASSWORD_HASH_ROUNDS=4,
        JWT_SECRET_KEY="test-secret-key-for-testing-only-32chars",
        MAX_DOCUMENT_BYTES=16,
        LOG_LEVEL="WARNING",
    )
    app = create_app(settings)
    with TestClient(app) as client:
        app.state.store.add_user("admin", hash_password(ADMIN_PASSWORD, rounds=4), role="Admin")
        yield client


def _login(client: TestClient, username: str, password: str) -> dict[str, str]:
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(api: TestClient) -> dict[str, str]:
    return _login(api, "admin", ADMIN_PASSWORD)


def _create_client(api: TestClient, headers: dict[str, str], code: str = "ABC") -> int:
    response = api.post(
        "/api/clients",
        json={"client_code": code, "client_name": f"{code} Committee"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["id"]


class TestHealthAndAuth:
    """Health check, login and token handling."""

    def test_health_check(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "compass-caging", "database": "connected"}

    def test_login_returns_token_and_pending_policies(self, api):
        response = api.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "Admin"
        assert data["user"]["pending_policies"] == 1

    def test_login_rejects_bad_password(self, api):
        response = api.post("/api/auth/login", json={"username": "admin", "password": "wrong-password"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid username or password"}

    def test_missing_token_is_unauthorized(self, api):
        response = api.get("/api/clients")
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_garbage_token_is_unauthorized(self, api):
        response = api.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_accept_policies(self, api, admin_headers):
        policies = api.get("/api/auth/policies", headers=admin_headers).json()
        response = api.post(
            "/api/auth/policies",
            json={"policy_ids": [policy["id"] for policy in policies]},
            headers=admin_headers,
        )
        assert response.json() == {"success": True, "accepted": 1}
        assert api.get("/api/auth/policies", headers=admin_headers).json() == []


class TestErrorMapping:
    """Store errors surface as JSON ``{"error": ...}`` bodies."""

    def test_unknown_client_is_404(self, api, admin_headers):
        response = api.get("/api/clients/999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Client was not found."}

    def test_duplicate_client_is_409(self, api, admin_headers):
        _create_client(api, admin_headers)
        response = api.post(
            "/api/clients",
            json={"client_code": "abc", "client_name": "Again"},
            headers=admin_headers,
        )
        assert response.status_code == 409

    def test_missing_field_is_400(self, api, admin_headers):
        response = api.post("/api/clients", json={"client_code": "XYZ"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"].startswith("client_name")

    def test_business_rule_violation_is_400(self, api, admin_headers):
        client_id = _create_client(api, admin_headers)
        batch = api.post("/api/batches", json={"client_id": client_id}, headers=admin_headers).json()
        response = api.post(
            f"/api/batches/{batch['id']}/donations/quick",
            json={"amount": 0},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Amount is required."}

    def test_oversized_document_is_413(self, api, admin_headers):
        client_id = _create_client(api, admin_headers)
        batch = api.post("/api/batches", json={"client_id": client_id}, headers=admin_headers).json()
        response = api.post(
            f"/api/batches/{batch['id']}/documents",
            files={"file": ("checks.pdf", b"x" * 32, "application/pdf")},
            data={"type": "ChecksPDF"},
            headers=admin_headers,
        )
        assert response.status_code == 413


class TestRoles:
    """Client users are read-only and limited to their own clients."""

    @pytest.fixture
    def portal(self, api, admin_headers):
        own_client = _create_client(api, admin_headers, "OWN")
        other_client = _create_client(api, admin_headers, "OTH")
        api.app.state.store.add_user(
            "portal",
            hash_password("portal-password", rounds=4),
            role="ClientUser",
            client_ids=[own_client],
        )
        other_batch = api.post("/api/batches", json={"client_id": other_client}, headers=admin_headers).json()
        return {
            "headers": _login(api, "portal", "portal-password"),
            "own_client": own_client,
            "other_client": other_client,
            "other_batch": other_batch["id"],
        }

    def test_client_user_sees_only_assigned_clients(self, api, portal):
        response = api.get("/api/clients", headers=portal["headers"])
        assert [row["id"] for row in response.json()] == [portal["own_client"]]

        response = api.get(f"/api/clients/{portal['other_client']}", headers=portal["headers"])
        assert response.status_code == 403

    def test_client_user_cannot_write(self, api, portal):
        response = api.post("/api/batches", json={"client_id": portal["own_client"]}, headers=portal["headers"])
        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden"}

        response = api.get("/api/people", headers=portal["headers"])
        assert response.status_code == 403

    def test_client_user_cannot_open_other_client_batch(self, api, portal):
        response = api.get(f"/api/batches/{portal['other_batch']}", headers=portal["headers"])
        assert response.status_code == 403

    def test_clerk_cannot_use_admin_routes(self, api, admin_headers):
        api.app.state.store.add_user("clerk", hash_password("clerk-password", rounds=4), role="Clerk")
        headers = _login(api, "clerk", "clerk-password")

        assert api.get("/api/admin/users", headers=headers).status_code == 403
        assert api.post("/api/clients", json={"client_code": "C", "client_name": "C"}, headers=headers).status_code == 403


class TestBatchFlow:
    """Keying a batch through to its deposit slip."""

    def test_create_key_and_close_batch(self, api, admin_headers):
        client_id = _create_client(api, admin_headers)

        response = api.post(
            "/api/batches",
            json={"client_id": client_id, "payment_category": "Checks", "date": "2026-03-02"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        batch = response.json()
        assert batch["batch_code"] == "AD.01"

        quick = api.post(
            f"/api/batches/{batch['id']}/donations/quick",
            json={"amount": 40, "check_number": "555"},
            headers=admin_headers,
        )
        assert quick.status_code == 201
        keyed = api.post(
            f"/api/batches/{batch['id']}/donations",
            json={"amount": 60.5, "donor_first_name": "lee", "donor_last_name": "park", "gift_method": "Cash"},
            headers=admin_headers,
        )
        assert keyed.json()["donor_first_name"] == "Lee"

        donations = api.get(f"/api/batches/{batch['id']}/donations", headers=admin_headers).json()
        assert len(donations) == 2

        slip = api.get(f"/api/batches/{batch['id']}/deposit-slip", headers=admin_headers).json()
        assert slip["total_cents"] == 10050
        assert slip["item_count"] == 2

        csv_response = api.get(f"/api/batches/{batch['id']}/deposit-slip.csv", headers=admin_headers)
        assert csv_response.headers["content-type"].startswith("text/csv")
        assert "DepositSlip_AD.01.csv" in csv_response.headers["content-disposition"]

        refused = api.patch(f"/api/batches/{batch['id']}/status", json={"status": "Closed"}, headers=admin_headers)
        assert refused.status_code == 400
        assert "Missing required documents" in refused.json()["error"]

        for document_type in ("ReplySlipsPDF", "ChecksPDF"):
            uploaded = api.post(
                f"/api/batches/{batch['id']}/documents",
                files={"file": (f"{document_type}.pdf", b"%PDF-1.4", "application/pdf")},
                data={"type": document_type},
                headers=admin_headers,
            )
            assert uploaded.status_code == 201

        closed = api.patch(f"/api/batches/{batch['id']}/status", json={"status": "Closed"}, headers=admin_headers)
        assert closed.json()["status"] == "Closed"

        audit = api.get("/api/admin/audit", headers=admin_headers).json()
        assert "CreateBatch" in {row["action"] for row in audit["logs"]}


class TestAdminUsers:
    """User administration and the password setup link."""

    def test_create_user_and_setup_password(self, api, admin_headers):
        response = api.post(
            "/api/admin/users",
            json={"username": "newclerk", "role": "Clerk", "full_name": "New Clerk"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert "password_hash" not in data["user"]
        token = data["setup_token"]
        assert token

        setup = api.post("/api/auth/setup-password", json={"token": token, "password": "brand-new-pass"})
        assert setup.json()["success"] is True

        reused = api.post("/api/auth/setup-password", json={"token": token, "password": "brand-new-pass"})
        assert reused.status_code == 400

        headers = _login(api, "newclerk", "brand-new-pass")
        me = api.get("/api/auth/me", headers=headers).json()
        assert me["role"] == "Clerk"

    def test_admin_cannot_delete_self(self, api, admin_headers):
        me = api.get("/api/auth/me", headers=admin_headers).json()
        response = api.delete(f"/api/admin/users/{me['id']}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json() == {"error": "You cannot delete your own account."}

    def test_migration_status_and_sensitive_scan(self, api, admin_headers):
        status_rows = api.get("/api/admin/migrations", headers=admin_headers).json()
        assert all(row["applied"] for row in status_rows)

        dry_run = api.post("/api/admin/migrations", json={"dry_run": True}, headers=admin_headers).json()
        assert dry_run["status"] == "no-op"

        scan = api.get("/api/admin/sensitive-scan", headers=admin_headers).json()
        assert scan == {"count": 0, "findings": []}
