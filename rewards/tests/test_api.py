"""
Tests for the FastAPI adapter.

Tests cover:
1. OTP login and logout
2. Referral submission and status changes
3. Withdrawals and error mapping
4. Dashboard reads
"""

import pytest
from fastapi.testclient import TestClient

from rewards.api import STATUS_BY_ERROR_CODE, create_app
from rewards.exceptions import LedgerValidationError


PHONE = "9876543210"


@pytest.fixture
def client(settings) -> TestClient:
    return TestClient(create_app(settings=settings))


@pytest.fixture
def logged_in_client(client) -> TestClient:
    assert client.post("/session/otp", json={"phone": PHONE}).status_code == 200
    assert client.post("/session/verify", json={"phone": PHONE, "code": "123456"}).status_code == 201
    return client


class TestSessionEndpoints:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_login(self, client):
        """OTP request then verify opens a session."""
        otp = client.post("/session/otp", json={"phone": PHONE})
        assert otp.status_code == 200
        assert otp.json()["phone"] == PHONE

        verify = client.post("/session/verify", json={"phone": PHONE, "code": "123456"})
        assert verify.status_code == 201
        assert verify.json()["user_id"] == "1"

        profile = client.get("/profile").json()
        assert profile["phone"] == "+91 9876543210"
        assert profile["total_points"] == 1250

    def test_malformed_phone(self, client):
        response = client.post("/session/otp", json={"phone": "12345"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_validation_errors_map_to_422(self):
        assert STATUS_BY_ERROR_CODE[LedgerValidationError.code] == 422

    def test_double_login(self, logged_in_client):
        logged_in_client.post("/session/otp", json={"phone": PHONE})
        response = logged_in_client.post("/session/verify", json={"phone": PHONE, "code": "654321"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ALREADY_AUTHENTICATED"

    def test_logout(self, logged_in_client):
        assert logged_in_client.delete("/session").status_code == 204

        stats = logged_in_client.get("/stats").json()
        assert stats["referrals"]["all"] == 0
        assert logged_in_client.get("/profile").status_code == 401

    def test_profile_requires_session(self, client):
        response = client.get("/profile")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "NOT_AUTHENTICATED"


class TestReferralEndpoints:

    def test_add_and_complete(self, logged_in_client):
        """Submit a referral, complete it, and see the balance move."""
        created = logged_in_client.post("/referrals", json={
            "customer_name": "Priya Sharma",
            "customer_phone": "9876543299",
            "location": "Mumbai, Maharashtra",
        })
        assert created.status_code == 201
        referral = created.json()
        assert referral["status"] == "pending"
        assert referral["points"] == 100

        stats = logged_in_client.get("/stats").json()
        assert stats["referrals"]["all"] == 4
        assert stats["referrals"]["pending"] == 2

        advanced = logged_in_client.post(f"/referrals/{referral['id']}/status", json={"status": "completed"})
        assert advanced.status_code == 200

        stats = logged_in_client.get("/stats").json()
        assert stats["total_points"] == 1350
        assert stats["referrals"]["completed"] == 2

    def test_invalid_phone(self, logged_in_client):
        response = logged_in_client.post("/referrals", json={
            "customer_name": "Priya Sharma",
            "customer_phone": "98765",
            "location": "Pune",
        })

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_backward_transition(self, logged_in_client):
        response = logged_in_client.post("/referrals/1/status", json={"status": "pending"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INVALID_TRANSITION"

    def test_unknown_referral(self, logged_in_client):
        response = logged_in_client.post("/referrals/nope/status", json={"status": "completed"})
        assert response.status_code == 404

        assert logged_in_client.get("/referrals/nope").status_code == 404

    def test_list_and_filter(self, logged_in_client):
        assert len(logged_in_client.get("/referrals").json()) == 3

        pending = logged_in_client.get("/referrals", params={"status": "pending"}).json()
        assert [r["id"] for r in pending] == ["3"]

        found = logged_in_client.get("/referrals", params={"search": "delhi"}).json()
        assert [r["customer_name"] for r in found] == ["Amit Singh"]

        recent = logged_in_client.get("/referrals/recent", params={"limit": 1}).json()
        assert [r["id"] for r in recent] == ["1"]


class TestWithdrawalEndpoints:

    def test_withdrawal_created(self, logged_in_client):
        response = logged_in_client.post("/withdrawals", json={"amount": 500, "upi_id": "user@upi"})

        assert response.status_code == 201
        body = response.json()
        assert body["type"] == "withdrawal"
        assert body["status"] == "pending"
        assert body["upi_id"] == "user@upi"

        withdrawals = logged_in_client.get("/transactions", params={"type": "withdrawal"}).json()
        assert withdrawals[0]["id"] == body["id"]
        assert len(withdrawals) == 2

        stats = logged_in_client.get("/stats").json()
        assert stats["total_withdrawn"] == 500

    @pytest.mark.parametrize("payload, code", [
        ({"amount": 499, "upi_id": "user@upi"}, "BELOW_MINIMUM"),
        ({"amount": 1300, "upi_id": "user@upi"}, "INSUFFICIENT_BALANCE"),
    ])
    def test_withdrawal_bounds(self, logged_in_client, payload, code):
        response = logged_in_client.post("/withdrawals", json=payload)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == code

    def test_withdrawal_without_upi(self, logged_in_client):
        response = logged_in_client.post("/withdrawals", json={"amount": 500})
        assert response.status_code == 422

    def test_options(self, logged_in_client):
        options = logged_in_client.get("/withdrawals/options").json()

        assert options["max_withdrawal"] == 1200
        assert options["quick_amounts"] == [500, 1000]


class TestProfileEndpoints:

    def test_update_profile(self, logged_in_client):
        response = logged_in_client.patch("/profile", json={"name": "Rajesh K"})

        assert response.status_code == 200
        assert response.json()["name"] == "Rajesh K"

    def test_cannot_edit_points(self, logged_in_client):
        response = logged_in_client.patch("/profile", json={"total_points": 99999})

        assert response.status_code == 422
        assert logged_in_client.get("/profile").json()["total_points"] == 1250

    def test_clear_profile_picture(self, logged_in_client):
        response = logged_in_client.patch("/profile", json={"profile_picture": None})

        assert response.status_code == 200
        assert response.json()["profile_picture"] is None

    def test_malformed_profile_phone(self, logged_in_client):
        response = logged_in_client.patch("/profile", json={"phone": "abc"})

        assert response.status_code == 422
        assert logged_in_client.get("/profile").json()["phone"] == "+91 9876543210"

    def test_invite(self, logged_in_client):
        invite = logged_in_client.get("/invite").json()
        assert invite["url"].endswith("/URZA-RK-2024")


class TestServerlessEntry:

    def test_handler_wraps_app(self):
        from mangum import Mangum

        from api.index import app, handler

        assert isinstance(handler, Mangum)
        assert app.state.store is not None

    def test_module_import_builds_no_app(self):
        """Only create_app builds a ledger; importing the adapter does not."""
        import rewards.api

        assert not hasattr(rewards.api, "app")

    def test_each_app_owns_its_store(self, settings):
        first = create_app(settings=settings)
        second = create_app(settings=settings)

        assert first.state.store is not second.state.store
        assert first.state.gateway.store is first.state.store


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
