"""Transactional email via Resend API."""

import asyncio
import logging

import resend

from microsaas.config import get_settings

logger = logging.getLogger(__name__)


async def send_email(to_email: str, subject: str, html_body: str) -> bool:
    """Send an email via Resend.

    Returns True on success, False when skipped or failed.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        logger.warning("Resend API key not configured. Email not sent: %s", subject)
        return False

    try:
        await asyncio.to_thread(
            resend.Emails.send,
            {
                "from": settings.email_from,
                "to": [to_email],
                "subject": subject,
                "html": html_body,
            },
        )
        logger.info("Email '%s' sent to %s", subject, to_email)
        return True
    except Exception as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False


async def send_verification_email(to_email: str, token: str) -> bool:
    settings = get_settings()
    url = f"{settings.app_url}/verify-email?token={token}"
    return await send_email(
        to_email,
        "Verify your email address",
        f"""
        <h2>Welcome to {settings.app_name}!</h2>
        <p>Please verify your email address by clicking the link below:</p>
        <a href="{url}">Verify Email</a>
        <p>If you didn't create an account, you can safely ignore this email.</p>
        """,
    )


async def send_password_reset_email(to_email: str, token: str) -> bool:
    settings = get_settings()
    url = f"{settings.app_url}/reset-password?token={token}"
    return await send_email(
        to_email,
        "Reset your password",
        f"""
        <h2>Password Reset Request</h2>
        <p>Click the link below to reset your password:</p>
        <a href="{url}">Reset Password</a>
        <p>If you didn't request a password reset, you can safely ignore this email.</p>
        <p>This link will expire in 1 hour.</p>
        """,
    )
