"""Password hashing, JWT session management and the get_current_user dependency."""

import hashlib
import logging
from datetime import datetime, timedelta, UTC

import jwt
from fastapi import Depends, HTTPException, Request, Response
from pwdlib import PasswordHash
from pwdlib.hashers.bcrypt import BcryptHasher
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.config import get_settings
from microsaas.constants import (
    COOKIE_NAME,
    EMAIL_VERIFICATION_TTL,
    MAX_PASSWORD_LENGTH,
    MIN_PASSWORD_LENGTH,
    PASSWORD_RESET_TTL,
)
from microsaas.db.session import get_db
from microsaas.models.user import User

logger = logging.getLogger(__name__)

password_hasher = PasswordHash((BcryptHasher(),))

_SESSION_PURPOSE = "session"
VERIFY_EMAIL_PURPOSE = "verify_email"
RESET_PASSWORD_PURPOSE = "reset_password"


class AuthError(ValueError):
    """Invalid credentials or token."""


class EmailTakenError(ValueError):
    """Sign-up with an email that already has an account."""


def hash_password(password: str) -> str:
    return password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return password_hasher.verify(password, password_hash)


def validate_password(password: str) -> None:
    if not MIN_PASSWORD_LENGTH <= len(password) <= MAX_PASSWORD_LENGTH:
        raise ValueError(
            f"Password must be between {MIN_PASSWORD_LENGTH} and {MAX_PASSWORD_LENGTH} characters"
        )


# --- Tokens ---


def create_token(user_id: str, purpose: str, ttl: timedelta, **claims) -> str:
    """Create a signed JWT scoped to one purpose."""
    settings = get_settings()
    payload = {
        "sub": user_id,
        "purpose": purpose,
        "exp": datetime.now(UTC) + ttl,
        **claims,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_claims(token: str, purpose: str) -> dict:
    """Verify a token and return its claims, or raise AuthError."""
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.InvalidTokenError as e:
        raise AuthError("Invalid or expired token") from e
    if payload.get("purpose") != purpose:
        raise AuthError("Token used for the wrong purpose")
    return payload


def decode_token(token: str, purpose: str) -> str:
    """Return the user id from a token, or raise AuthError."""
    return decode_claims(token, purpose)["sub"]


def create_jwt(user_id: str) -> str:
    """Create a session JWT for the given user."""
    settings = get_settings()
    return create_token(user_id, _SESSION_PURPOSE, timedelta(days=settings.jwt_expire_days))


def create_verification_token(user_id: str) -> str:
    return create_token(user_id, VERIFY_EMAIL_PURPOSE, timedelta(seconds=EMAIL_VERIFICATION_TTL))


def _password_fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode()).hexdigest()[:16]


def create_reset_token(user: User) -> str:
    """Reset token bound to the current password, so it stops working once used."""
    return create_token(
        user.id,
        RESET_PASSWORD_PURPOSE,
        timedelta(seconds=PASSWORD_RESET_TTL),
        pwd=_password_fingerprint(user.password_hash),
    )


def set_session_cookie(response: Response, token: str) -> None:
    """Set the JWT as an HTTP-only cookie on the response."""
    settings = get_settings()
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        httponly=True,
        secure=not settings.debug,
        samesite="lax",
        max_age=settings.jwt_expire_days * 86400,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(key=COOKIE_NAME, path="/")


# --- Account operations ---


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id, User.is_active == True))
    return result.scalar_one_or_none()


async def sign_up(db: AsyncSession, email: str, password: str, name: str | None = None) -> User:
    validate_password(password)
    if await get_user_by_email(db, email):
        raise EmailTakenError("An account with this email already exists")

    user = User(email=normalize_email(email), name=name, password_hash=hash_password(password))
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("New account created: %s", user.id)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(db, email)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthError("Invalid email or password")
    return user


async def confirm_email(db: AsyncSession, token: str) -> User:
    user = await get_user_by_id(db, decode_token(token, VERIFY_EMAIL_PURPOSE))
    if not user:
        raise AuthError("User not found or deactivated")
    user.email_verified = True
    await db.commit()
    return user


async def reset_password(db: AsyncSession, token: str, new_password: str) -> User:
    validate_password(new_password)
    claims = decode_claims(token, RESET_PASSWORD_PURPOSE)
    user = await get_user_by_id(db, claims["sub"])
    if not user:
        raise AuthError("User not found or deactivated")
    if claims.get("pwd") != _password_fingerprint(user.password_hash):
        raise AuthError("Reset link has already been used")
    user.password_hash = hash_password(new_password)
    await db.commit()
    return user


# --- FastAPI dependencies ---


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: decode JWT cookie and return the User, or raise 401."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        user_id = decode_token(token, _SESSION_PURPOSE)
    except AuthError:
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user = await get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found or deactivated")
    return user


async def get_optional_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Like get_current_user but returns None instead of raising 401."""
    token = request.cookies.get(COOKIE_NAME)
    if not token:
        return None
    try:
        user_id = decode_token(token, _SESSION_PURPOSE)
    except AuthError:
        return None
    return await get_user_by_id(db, user_id)
