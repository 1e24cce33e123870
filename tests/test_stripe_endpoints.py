from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from microsaas.app import app
from microsaas.billing.guard import get_plan_catalog
from microsaas.billing.plans import build_default_catalog
from microsaas.config import get_settings
from microsaas.routers import stripe as stripe_router

USER_ID = "user-1"


@pytest.fixture(autouse=True)
def _static_catalog():
    app.dependency_overrides[get_plan_catalog] = lambda: build_default_catalog()
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def stored_subscription(monkeypatch):
    """Patch the storage read to return whatever the test assigns."""
    holder = {"value": None}

    async def fake_fetch_subscription(db, reference_id: str):
        assert reference_id == USER_ID
        return holder["value"]

    monkeypatch.setattr(stripe_router, "fetch_subscription", fake_fetch_subscription)
    return holder


def test_get_plans_lists_catalog_in_tier_order() -> None:
    client = TestClient(app)
    response = client.get("/api/stripe/get-plans")
    assert response.status_code == 200
    body = response.json()
    assert [p["id"] for p in body] == ["free", "starter", "pro"]
    assert body[1]["price_monthly"] == 19
    assert body[2]["price_yearly"] == 490
    assert body[0]["features"][0] == "Up to 3 projects"
    assert body[0]["display_price_monthly"] == "$0/month"
    assert body[1]["display_price_monthly"] == "$19/month"
    assert body[2]["display_price_yearly"] == "$490/year"


def test_get_plans_uses_billing_currency(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "billing_currency", "EUR")
    client = TestClient(app)
    body = client.get("/api/stripe/get-plans").json()
    assert body[1]["display_price_monthly"] == "€19/month"
    assert body[2]["display_price_yearly"] == "€490/year"


def test_has_active_subscription_without_record(stored_subscription) -> None:
    client = TestClient(app)
    response = client.get("/api/stripe/has-active-subscription", params={"user_id": USER_ID})
    assert response.status_code == 200
    assert response.json() == {
        "kind": "none",
        "has_subscription": False,
        "plan": "free",
        "status": None,
    }


def test_has_active_subscription_with_trial(stored_subscription, make_subscription, now) -> None:
    stored_subscription["value"] = make_subscription(
        status="trialing", plan_name="pro", period_end=now + timedelta(days=5)
    )
    client = TestClient(app)
    response = client.get("/api/stripe/has-active-subscription", params={"user_id": USER_ID})
    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "subscription"
    assert body["has_subscription"] is True
    assert body["plan"] == "pro"
    assert body["status"] == "trialing"
    assert body["subscription"]["reference_id"] == USER_ID


def test_has_active_subscription_reports_entitled_plan_not_stored_plan(
    stored_subscription, make_subscription
) -> None:
    stored_subscription["value"] = make_subscription(status="past_due", plan_name="pro")
    client = TestClient(app)
    body = client.get("/api/stripe/has-active-subscription", params={"user_id": USER_ID}).json()
    assert body["has_subscription"] is False
    assert body["plan"] == "free"
    assert body["status"] == "past_due"
    assert body["subscription"]["plan_name"] == "pro"


def test_get_subscription_returns_null_when_missing(stored_subscription) -> None:
    client = TestClient(app)
    response = client.get("/api/stripe/get-subscription", params={"user_id": USER_ID})
    assert response.status_code == 200
    assert response.json() is None


def test_get_subscription_details_404(stored_subscription) -> None:
    client = TestClient(app)
    response = client.get("/api/stripe/get-subscription-details", params={"user_id": USER_ID})
    assert response.status_code == 404
    assert response.json()["detail"] == "No subscription found"


def test_get_subscription_details_returns_record(stored_subscription, make_subscription) -> None:
    stored_subscription["value"] = make_subscription(status="active", plan_name="starter")
    client = TestClient(app)
    response = client.get("/api/stripe/get-subscription-details", params={"user_id": USER_ID})
    assert response.status_code == 200
    assert response.json()["stripe_subscription_id"] == "sub_123"


def test_user_id_is_required() -> None:
    client = TestClient(app)
    response = client.get("/api/stripe/has-active-subscription")
    assert response.status_code == 422


def test_access_check(stored_subscription, make_subscription) -> None:
    stored_subscription["value"] = make_subscription(status="active", plan_name="starter")
    client = TestClient(app)

    allowed = client.get("/api/stripe/access", params={"user_id": USER_ID, "required_plan": "starter"}).json()
    assert allowed == {"plan": "starter", "required_plan": "starter", "has_access": True}

    denied = client.get("/api/stripe/access", params={"user_id": USER_ID, "required_plan": "pro"}).json()
    assert denied["has_access"] is False


def test_access_check_unknown_plan(stored_subscription) -> None:
    client = TestClient(app)
    response = client.get("/api/stripe/access", params={"user_id": USER_ID, "required_plan": "platinum"})
    assert response.status_code == 400
    assert "platinum" in response.json()["detail"]
