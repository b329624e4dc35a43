"""Request/response schemas for auth endpoints."""

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator

from gatehouse.core.security import (
    EMAIL_MAX_LEN,
    NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)
from gatehouse.schemas.user import UserOut, confirm_password, require_name


class RegisterRequest(BaseModel):
    """New account details."""

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN, description="Display name")
    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN, description="Unique email")
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    password_confirmation: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return require_name(v)

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        return confirm_password(v, info)


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN, description="Email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")


class ForgotPasswordRequest(BaseModel):
    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN)


class ResetPasswordRequest(BaseModel):
    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    password_confirmation: str
    token: str = Field(..., min_length=1, description="Token from the reset link")

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, v: str, info: ValidationInfo) -> str:
        return confirm_password(v, info)


class OAuthTokenRequest(BaseModel):
    """Provider access token obtained by a client-side OAuth flow."""

    access_token: str = Field(..., min_length=1)


class IssuedToken(BaseModel):
    """A freshly issued bearer token. access_token is shown once and never stored."""

    access_token: str = Field(..., description="Opaque bearer token '<id>|<secret>'")
    token_type: str = Field(default="Bearer", description="Token type")
    expires_at: str = Field(..., description="Expiry as ISO-8601")


class AuthPayload(BaseModel):
    """User plus token fields, returned by register, login, refresh and OAuth."""

    user: UserOut
    access_token: str
    token_type: str = "Bearer"
    expires_at: str

    @classmethod
    def build(cls, user: UserOut, token: IssuedToken) -> "AuthPayload":
        return cls(
            user=user,
            access_token=token.access_token,
            token_type=token.token_type,
            expires_at=token.expires_at,
        )


class RedirectPayload(BaseModel):
    redirect_url: str
