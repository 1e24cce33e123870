"""Auth routes — email/password sign-up, sign-in, sign-out, verification, reset."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from microsaas.db.session import get_db
from microsaas.models.user import User
from microsaas.schemas.auth import (
    ForgotPasswordRequest,
    ResetPasswordRequest,
    SessionInfo,
    SignInRequest,
    SignUpRequest,
    TokenRequest,
    UserInfo,
)
from microsaas.services.auth_service import (
    AuthError,
    EmailTakenError,
    authenticate,
    clear_session_cookie,
    confirm_email,
    create_jwt,
    create_reset_token,
    create_verification_token,
    get_optional_user,
    get_user_by_email,
    reset_password,
    set_session_cookie,
    sign_up,
)
from microsaas.services.email_service import send_password_reset_email, send_verification_email

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/auth", tags=["auth"])


def _session_response(user: User, status_code: int = 200) -> JSONResponse:
    response = JSONResponse(
        {"user": UserInfo.model_validate(user).model_dump()},
        status_code=status_code,
    )
    set_session_cookie(response, create_jwt(user.id))
    return response


@router.post("/sign-up")
async def sign_up_route(body: SignUpRequest, db: AsyncSession = Depends(get_db)):
    """Create an account, send a verification email, and sign the user in."""
    try:
        user = await sign_up(db, body.email, body.password, body.name)
    except EmailTakenError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await send_verification_email(user.email, create_verification_token(user.id))
    return _session_response(user, status_code=201)


@router.post("/sign-in")
async def sign_in_route(body: SignInRequest, db: AsyncSession = Depends(get_db)):
    try:
        user = await authenticate(db, body.email, body.password)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return _session_response(user)


@router.post("/sign-out")
async def sign_out_route():
    response = JSONResponse({"success": True})
    clear_session_cookie(response)
    return response


@router.get("/session", response_model=SessionInfo)
async def session_route(user: User | None = Depends(get_optional_user)):
    return SessionInfo(user=UserInfo.model_validate(user) if user else None)


@router.post("/verify-email", response_model=UserInfo)
async def verify_email_route(body: TokenRequest, db: AsyncSession = Depends(get_db)):
    try:
        user = await confirm_email(db, body.token)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return user


@router.post("/forgot-password")
async def forgot_password_route(body: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    """Always succeeds so the endpoint does not reveal which emails exist."""
    user = await get_user_by_email(db, body.email)
    if user and user.is_active:
        await send_password_reset_email(user.email, create_reset_token(user))
    else:
        logger.info("Password reset requested for unknown email")
    return {"success": True}


@router.post("/reset-password")
async def reset_password_route(body: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    try:
        await reset_password(db, body.token, body.new_password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"success": True}
