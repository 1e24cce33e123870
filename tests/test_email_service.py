import asyncio

from microsaas.config import get_settings
from microsaas.services import email_service


def test_send_email_skips_without_api_key(monkeypatch, caplog) -> None:
    monkeypatch.setattr(get_settings(), "resend_api_key", "")
    sent = []
    monkeypatch.setattr(email_service.resend.Emails, "send", lambda params: sent.append(params))

    assert asyncio.run(email_service.send_email("a@example.com", "Hi", "<p>x</p>")) is False
    assert sent == []
    assert "Email not sent" in caplog.text


def test_send_verification_email_uses_resend(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "resend_api_key", "re_test")
    sent = []
    monkeypatch.setattr(email_service.resend.Emails, "send", lambda params: sent.append(params))

    assert asyncio.run(email_service.send_verification_email("a@example.com", "tok123")) is True
    params = sent[0]
    assert params["to"] == ["a@example.com"]
    assert params["subject"] == "Verify your email address"
    assert "/verify-email?token=tok123" in params["html"]


def test_send_email_failure_returns_false(monkeypatch) -> None:
    monkeypatch.setattr(get_settings(), "resend_api_key", "re_test")

    def boom(params):
        raise RuntimeError("resend down")

    monkeypatch.setattr(email_service.resend.Emails, "send", boom)
    assert asyncio.run(email_service.send_password_reset_email("a@example.com", "tok")) is False
