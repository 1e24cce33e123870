import asyncio
from datetime import timedelta

import jwt
import pytest

from microsaas.config import get_settings
from microsaas.db.session import build_engine, build_session_factory
from microsaas.models import Base
from microsaas.services import auth_service
from microsaas.services.auth_service import AuthError


def test_password_hash_round_trip() -> None:
    hashed = auth_service.hash_password("s3cret-password")
    assert hashed != "s3cret-password"
    assert auth_service.verify_password("s3cret-password", hashed) is True
    assert auth_service.verify_password("wrong-password", hashed) is False


@pytest.mark.parametrize("password", ["short", "x" * 129])
def test_password_length_limits(password) -> None:
    with pytest.raises(ValueError):
        auth_service.validate_password(password)


def test_session_token_carries_user_id() -> None:
    token = auth_service.create_jwt("user-42")
    assert auth_service.decode_token(token, "session") == "user-42"


def test_token_purpose_is_enforced() -> None:
    token = auth_service.create_verification_token("user-42")
    assert auth_service.decode_token(token, auth_service.VERIFY_EMAIL_PURPOSE) == "user-42"
    with pytest.raises(AuthError):
        auth_service.decode_token(token, auth_service.RESET_PASSWORD_PURPOSE)
    with pytest.raises(AuthError):
        auth_service.decode_token(token, "session")


def test_expired_token_rejected() -> None:
    token = auth_service.create_token("user-42", "session", timedelta(seconds=-1))
    with pytest.raises(AuthError):
        auth_service.decode_token(token, "session")


def test_token_signed_with_other_secret_rejected() -> None:
    settings = get_settings()
    forged = jwt.encode({"sub": "user-42", "purpose": "session", "exp": 4102444800}, "other-secret", algorithm=settings.jwt_algorithm)
    with pytest.raises(AuthError):
        auth_service.decode_token(forged, "session")


def test_normalize_email() -> None:
    assert auth_service.normalize_email("  Ada@Example.COM ") == "ada@example.com"


def test_reset_token_works_once() -> None:
    async def _main():
        engine = build_engine("sqlite:///:memory:")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        try:
            async with build_session_factory(engine)() as db:
                user = await auth_service.sign_up(db, "reset@example.com", "original-password")
                token = auth_service.create_reset_token(user)
                await auth_service.reset_password(db, token, "second-password")
                with pytest.raises(AuthError):
                    await auth_service.reset_password(db, token, "third-password")
                return await auth_service.authenticate(db, "reset@example.com", "second-password")
        finally:
            await engine.dispose()

    assert asyncio.run(_main()).email == "reset@example.com"
