"""Request/response schemas for users and profiles."""

from typing import Any

from pydantic import (
    BaseModel,
    EmailStr,
    Field,
    ValidationInfo,
    field_validator,
    model_serializer,
    model_validator,
)

from gatehouse.core.security import (
    EMAIL_MAX_LEN,
    NAME_MAX_LEN,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
)
from gatehouse.models.user import User
from gatehouse.schemas.common import to_iso8601
from gatehouse.services.authorization import user_permission_names

PASSWORD_MISMATCH = "The password field confirmation does not match."
NAME_REQUIRED = "The name field is required."


def confirm_password(value: str | None, info: ValidationInfo) -> str | None:
    """field_validator body for password_confirmation: must equal password when given."""
    password = info.data.get("password")
    if password is not None and value != password:
        raise ValueError(PASSWORD_MISMATCH)
    return value


def require_name(value: str | None) -> str | None:
    """field_validator body for name: stripped, and blank counts as missing."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError(NAME_REQUIRED)
    return value


class UserOut(BaseModel):
    """Base user shape; roles and permissions are empty lists when not requested."""

    id: int
    name: str
    email: str
    email_verified_at: str | None = None
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)

    @classmethod
    def from_user(cls, user: User, include_permissions: bool = True) -> "UserOut":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            email_verified_at=to_iso8601(user.email_verified_at),
            roles=user.role_names() if include_permissions else [],
            permissions=user_permission_names(user) if include_permissions else [],
        )


class ProfileDetails(BaseModel):
    """Profile-only fields added on top of UserOut."""

    phone: str | None = None
    address: str | None = None
    profile_picture: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "ProfileDetails":
        return cls(
            phone=user.phone,
            address=user.address,
            profile_picture=user.profile_picture,
            created_at=to_iso8601(user.created_at),
            updated_at=to_iso8601(user.updated_at),
        )


class UserProfileOut(BaseModel):
    """UserOut and ProfileDetails composed; serialized as one flat object."""

    base: UserOut
    details: ProfileDetails

    @classmethod
    def from_user(cls, user: User, include_permissions: bool = True) -> "UserProfileOut":
        return cls(
            base=UserOut.from_user(user, include_permissions),
            details=ProfileDetails.from_user(user),
        )

    @model_validator(mode="before")
    @classmethod
    def split_flat(cls, data: Any) -> Any:
        """Accept the flat wire shape as well as {base, details}."""
        if isinstance(data, dict) and "base" not in data:
            return {"base": data, "details": data}
        return data

    @model_serializer(mode="wrap")
    def flatten(self, handler: Any) -> dict[str, Any]:
        out = handler(self)
        return {**out["base"], **out["details"]}


class UpdateProfileRequest(BaseModel):
    """Partial profile update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LEN)
    email: EmailStr | None = Field(default=None, max_length=EMAIL_MAX_LEN)
    phone: str | None = Field(default=None, max_length=32)
    address: str | None = Field(default=None, max_length=1024)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        return require_name(v)


class UpdatePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    password_confirmation: str

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, v: str | None, info: ValidationInfo) -> str | None:
        return confirm_password(v, info)


class AdminUserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN)
    email: EmailStr = Field(..., max_length=EMAIL_MAX_LEN)
    password: str = Field(..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN)
    password_confirmation: str
    roles: list[str] | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        return require_name(v)

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, v: str | None, info: ValidationInfo) -> str | None:
        return confirm_password(v, info)


class AdminUserUpdate(BaseModel):
    """
    Partial update of a user by an admin. roles, when given, replaces the
    user's role set; None leaves roles unchanged.
    """

    name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LEN)
    email: EmailStr | None = Field(default=None, max_length=EMAIL_MAX_LEN)
    password: str | None = Field(
        default=None, min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN
    )
    password_confirmation: str | None = Field(default=None, validate_default=True)
    roles: list[str] | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str | None) -> str | None:
        return require_name(v)

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, v: str | None, info: ValidationInfo) -> str | None:
        return confirm_password(v, info)

    @field_validator("roles")
    @classmethod
    def dedupe_roles(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return None
        return list(dict.fromkeys(name.strip() for name in v if name.strip()))
