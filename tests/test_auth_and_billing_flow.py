from types import SimpleNamespace

import pytest
import stripe
from fastapi.testclient import TestClient

from microsaas.app import app
from microsaas.constants import COOKIE_NAME
from microsaas.routers import auth as auth_router
from microsaas.services import subscription_service

PASSWORD = "correct-horse-battery"


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    async def fake_send_verification_email(to_email: str, token: str) -> bool:
        sent.append(("verify", to_email, token))
        return True

    async def fake_send_password_reset_email(to_email: str, token: str) -> bool:
        sent.append(("reset", to_email, token))
        return True

    monkeypatch.setattr(auth_router, "send_verification_email", fake_send_verification_email)
    monkeypatch.setattr(auth_router, "send_password_reset_email", fake_send_password_reset_email)
    return sent


def _sign_up(client: TestClient, email: str) -> dict:
    response = client.post("/api/auth/sign-up", json={"email": email, "password": PASSWORD, "name": "Ada"})
    assert response.status_code == 201
    assert COOKIE_NAME in response.cookies
    return response.json()["user"]


def _deliver_webhook(client: TestClient, monkeypatch, event_type: str, data: dict) -> None:
    monkeypatch.setattr(
        stripe.Webhook,
        "construct_event",
        lambda payload, sig, secret: {"type": event_type, "data": {"object": data}},
    )
    response = client.post("/webhooks/stripe", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})
    assert response.status_code == 200


def test_sign_up_sign_in_and_session(sent_emails) -> None:
    with TestClient(app) as client:
        user = _sign_up(client, "ada@example.com")
        assert user["email"] == "ada@example.com"
        assert user["email_verified"] is False
        assert sent_emails[0][0] == "verify"

        session = client.get("/api/auth/session").json()
        assert session["user"]["id"] == user["id"]

        client.post("/api/auth/sign-out")
        client.cookies.clear()
        assert client.get("/api/auth/session").json() == {"user": None}

        bad = client.post("/api/auth/sign-in", json={"email": "ada@example.com", "password": "wrong-password"})
        assert bad.status_code == 401

        good = client.post("/api/auth/sign-in", json={"email": "ADA@example.com", "password": PASSWORD})
        assert good.status_code == 200
        assert good.json()["user"]["id"] == user["id"]


def test_duplicate_sign_up_conflicts(sent_emails) -> None:
    with TestClient(app) as client:
        _sign_up(client, "dup@example.com")
        again = client.post("/api/auth/sign-up", json={"email": "dup@example.com", "password": PASSWORD})
        assert again.status_code == 409


def test_short_password_rejected() -> None:
    with TestClient(app) as client:
        response = client.post("/api/auth/sign-up", json={"email": "short@example.com", "password": "abc"})
        assert response.status_code == 422


def test_verify_email_and_reset_password(sent_emails) -> None:
    with TestClient(app) as client:
        user = _sign_up(client, "grace@example.com")
        verify_token = sent_emails[0][2]

        verified = client.post("/api/auth/verify-email", json={"token": verify_token})
        assert verified.status_code == 200
        assert verified.json()["email_verified"] is True

        # A verification token cannot be used to reset a password
        misuse = client.post("/api/auth/reset-password", json={"token": verify_token, "new_password": "another-pass"})
        assert misuse.status_code == 400

        forgot = client.post("/api/auth/forgot-password", json={"email": "grace@example.com"})
        assert forgot.json() == {"success": True}
        assert sent_emails[-1][0] == "reset"

        unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
        assert unknown.status_code == 200

        reset_token = sent_emails[-1][2]
        reset = client.post(
            "/api/auth/reset-password",
            json={"token": reset_token, "new_password": "brand-new-password"},
        )
        assert reset.status_code == 200
        sign_in = client.post(
            "/api/auth/sign-in", json={"email": "grace@example.com", "password": "brand-new-password"}
        )
        assert sign_in.status_code == 200
        assert sign_in.json()["user"]["id"] == user["id"]

        reused = client.post(
            "/api/auth/reset-password",
            json={"token": reset_token, "new_password": "third-password"},
        )
        assert reused.status_code == 400
        assert reused.json()["detail"] == "Reset link has already been used"


def test_billing_requires_session() -> None:
    with TestClient(app) as client:
        assert client.get("/api/billing/me").status_code == 401
        assert client.get("/api/features/analytics").status_code == 401


def test_free_user_is_gated_until_subscription_arrives(sent_emails, monkeypatch) -> None:
    with TestClient(app) as client:
        user = _sign_up(client, "linus@example.com")

        overview = client.get("/api/billing/me").json()
        assert overview["summary"] == {"kind": "none", "has_subscription": False, "plan": "free", "status": None}
        assert overview["is_active"] is False
        assert overview["days_remaining"] == 0
        assert overview["status_label"] is None
        assert overview["upgrade_options"] == ["starter", "pro"]
        assert overview["downgrade_options"] == []

        assert client.get("/api/features/analytics").status_code == 402

        _deliver_webhook(
            client,
            monkeypatch,
            "customer.subscription.created",
            {
                "id": "sub_live_1",
                "customer": "cus_live_1",
                "status": "trialing",
                "current_period_start": 1767225600,
                "current_period_end": 4102444800,  # 2100-01-01
                "cancel_at_period_end": True,
                "items": {"data": [{"price": {"id": "price_starter_month"}}]},
                "metadata": {"reference_id": user["id"]},
            },
        )

        overview = client.get("/api/billing/me").json()
        assert overview["summary"]["kind"] == "subscription"
        assert overview["summary"]["plan"] == "starter"
        assert overview["is_in_trial"] is True
        assert overview["will_cancel_at_period_end"] is True
        assert overview["status_label"] == "Trial"
        assert overview["status_color"] == "blue"
        assert overview["days_remaining"] > 0
        assert overview["upgrade_options"] == ["pro"]
        assert overview["downgrade_options"] == ["free"]

        assert client.get("/api/features/analytics").status_code == 200
        assert client.get("/api/features/api-access").status_code == 402

        _deliver_webhook(client, monkeypatch, "customer.subscription.deleted", {"id": "sub_live_1"})
        assert client.get("/api/features/analytics").status_code == 402
        assert client.get("/api/billing/me").json()["summary"]["plan"] == "free"


def test_checkout_redirects_to_stripe(sent_emails, monkeypatch) -> None:
    calls = {}

    def fake_customer_create(**kwargs):
        calls["customer"] = kwargs
        return SimpleNamespace(id="cus_new")

    def fake_session_create(**kwargs):
        calls["session"] = kwargs
        return SimpleNamespace(url="https://checkout.stripe.test/session")

    monkeypatch.setattr(subscription_service.stripe.Customer, "create", fake_customer_create)
    monkeypatch.setattr(subscription_service.stripe.checkout.Session, "create", fake_session_create)

    with TestClient(app) as client:
        user = _sign_up(client, "checkout@example.com")
        response = client.post(
            "/api/billing/checkout",
            json={"plan": "pro", "interval": "year"},
            follow_redirects=False,
        )
        assert response.status_code == 303
        assert response.headers["location"] == "https://checkout.stripe.test/session"

        assert calls["customer"]["email"] == "checkout@example.com"
        session = calls["session"]
        assert session["customer"] == "cus_new"
        assert session["line_items"] == [{"price": "price_pro_year", "quantity": 1}]
        assert session["subscription_data"]["trial_period_days"] == 14
        assert session["metadata"] == {"reference_id": user["id"], "plan": "pro"}

        free = client.post("/api/billing/checkout", json={"plan": "free"}, follow_redirects=False)
        assert free.status_code == 400
        unknown = client.post("/api/billing/checkout", json={"plan": "gold"}, follow_redirects=False)
        assert unknown.status_code == 400


def test_portal_requires_stripe_customer(sent_emails) -> None:
    with TestClient(app) as client:
        _sign_up(client, "portal@example.com")
        response = client.post("/api/billing/portal", follow_redirects=False)
        assert response.status_code == 400
