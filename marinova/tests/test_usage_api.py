"""HTTP contract for /api/usage, /api/plans and /api/users."""

import pytest

from marinova.core.config import settings
from marinova.models.plan import SubscriptionPlan

HOOK_KEY = "idp-hook-key-0123456789"


def headers(user_id="user-1"):
    return {"X-User-Id": user_id}


class TestFirstContact:
    def test_first_request_creates_free_ledger(self, client, store):
        resp = client.get("/api/usage/credits", headers=headers("newcomer"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["usageCredits"] == 5
        assert body["subscriptionStatus"] == "free"
        assert body["isEmailVerified"] is False
        assert body["monthlyCredits"] == {"weatherBrief": 0, "researchLab": 0, "chat": 0, "insights": 0}
        assert body["usageHistory"] == []
        assert store.get("newcomer") is not None

    def test_missing_identity_is_unauthorized(self, client):
        resp = client.get("/api/usage/credits")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"


class TestTrack:
    def test_unverified_user_gets_verification_error(self, client):
        resp = client.post("/api/usage/track", json={"feature": "weather"}, headers=headers("fresh"))
        assert resp.status_code == 403
        error = resp.json()["error"]
        assert error["code"] == "verification_required"
        assert error["requiresVerification"] is True

    def test_free_credits_exhausted(self, client, make_ledger):
        make_ledger(usage_credits=0)
        resp = client.post("/api/usage/track", json={"feature": "chat"}, headers=headers())
        assert resp.status_code == 403
        body = resp.json()
        assert body["detail"] == "You have used all your free credits. Please subscribe to continue."
        assert body["error"]["code"] == "insufficient_credits"
        assert body["error"]["requiresSubscription"] is True
        assert body["error"]["remainingCredits"] == 0

    def test_paid_feature_exhausted(self, client, make_ledger):
        make_ledger(plan=SubscriptionPlan.RETAIL_INDIA, monthly={"researchLab": 0})
        resp = client.post("/api/usage/track", json={"feature": "report"}, headers=headers())
        assert resp.status_code == 403
        error = resp.json()["error"]
        assert error["requiresUpgrade"] is True
        assert error["monthlyCredits"]["researchLab"] == 0

    def test_missing_feature(self, client, make_ledger):
        make_ledger()
        resp = client.post("/api/usage/track", json={}, headers=headers())
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Feature name is required"

    def test_invalid_feature(self, client, make_ledger):
        make_ledger()
        resp = client.post("/api/usage/track", json={"feature": "teleport"}, headers=headers())
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"
        assert resp.json()["detail"] == "Invalid feature name"


class TestEmailVerification:
    @pytest.fixture
    def hook_key(self, monkeypatch):
        monkeypatch.setattr(settings, "IDENTITY_HOOK_KEY", HOOK_KEY)
        return HOOK_KEY

    def test_user_cannot_verify_themselves(self, client, store, hook_key):
        assert client.post("/api/usage/track", json={"feature": "weather"}, headers=headers("mallory")).status_code == 403

        # Old self-service route is gone
        assert client.post("/api/users/verify-email", json={"verified": True}, headers=headers("mallory")).status_code == 404
        # End-user identity is not enough for the hook
        resp = client.put("/api/users/mallory/email-verification", json={"verified": True}, headers=headers("mallory"))
        assert resp.status_code == 401
        assert store.get("mallory").is_email_verified is False

        resp = client.post("/api/usage/track", json={"feature": "weather"}, headers=headers("mallory"))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "verification_required"

    def test_wrong_hook_key_rejected(self, client, hook_key):
        resp = client.put(
            "/api/users/mallory/email-verification",
            json={"verified": True},
            headers={"X-Identity-Key": "not-the-key"},
        )
        assert resp.status_code == 401

    def test_hook_closed_without_configured_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "IDENTITY_HOOK_KEY", None)
        resp = client.put("/api/users/fresh/email-verification", json={"verified": True}, headers={"X-Identity-Key": ""})
        assert resp.status_code == 401

    def test_identity_provider_verifies_then_track(self, client, hook_key):
        verify = client.put(
            "/api/users/fresh/email-verification",
            json={"verified": True},
            headers={"X-Identity-Key": hook_key},
        )
        assert verify.status_code == 200
        assert verify.json() == {"success": True, "userId": "fresh", "isEmailVerified": True}

        resp = client.post("/api/usage/track", json={"feature": "weather"}, headers=headers("fresh"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Usage tracked"
        assert body["usageCredits"] == 4
        assert body["remainingCredits"] == 4
        assert body["subscriptionStatus"] == "free"


class TestSubscribe:
    def test_upgrade_message_uses_display_name(self, client, make_ledger):
        make_ledger()
        resp = client.put("/api/usage/subscribe", json={"plan": "retail_india"}, headers=headers())
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Subscription updated to Retail India"
        assert body["subscriptionStatus"] == "retail_india"
        assert body["monthlyCredits"] == {"weatherBrief": 50, "researchLab": 10, "chat": 20, "insights": -1}

    def test_invalid_plan(self, client, make_ledger):
        make_ledger()
        resp = client.put("/api/usage/subscribe", json={"plan": "gold"}, headers=headers())
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_plan"
        assert resp.json()["detail"] == "Invalid subscription plan"

    def test_unlimited_feature_reported_as_minus_one_after_tracking(self, client, make_ledger):
        make_ledger()
        client.put("/api/usage/subscribe", json={"plan": "international"}, headers=headers())
        resp = client.post("/api/usage/track", json={"feature": "weatherBrief"}, headers=headers())
        assert resp.json()["remainingCredits"] == -1
        assert resp.json()["monthlyCredits"]["weatherBrief"] == -1


def test_plans_listing(client):
    resp = client.get("/api/plans")
    assert resp.status_code == 200
    plans = resp.json()["plans"]
    assert [p["name"] for p in plans] == ["free", "retail_india", "international", "enterprise"]
    assert plans[2]["displayName"] == "International"
    assert plans[2]["price"] == 30
