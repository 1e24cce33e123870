"""Auth-related Pydantic schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from microsaas.constants import MAX_PASSWORD_LENGTH, MIN_PASSWORD_LENGTH


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)
    name: str | None = Field(None, max_length=128)


class SignInRequest(BaseModel):
    email: EmailStr
    password: str


class TokenRequest(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH)


class UserInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    name: str | None = None
    email_verified: bool = False
    is_active: bool = True


class SessionInfo(BaseModel):
    user: UserInfo | None = None
