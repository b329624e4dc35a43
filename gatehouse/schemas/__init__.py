"""Pydantic request/response schemas."""

from gatehouse.schemas.auth import (
    AuthPayload,
    ForgotPasswordRequest,
    IssuedToken,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from gatehouse.schemas.common import ApiResponse, PageMeta, error_body, success
from gatehouse.schemas.health import HealthResponse, RootStatus
from gatehouse.schemas.role import PermissionOut, RoleCreate, RoleOut, RoleUpdate
from gatehouse.schemas.user import (
    AdminUserCreate,
    AdminUserUpdate,
    UserOut,
    UserProfileOut,
)

__all__ = [
    "AdminUserCreate",
    "AdminUserUpdate",
    "ApiResponse",
    "AuthPayload",
    "ForgotPasswordRequest",
    "HealthResponse",
    "IssuedToken",
    "LoginRequest",
    "PageMeta",
    "PermissionOut",
    "RegisterRequest",
    "ResetPasswordRequest",
    "RoleCreate",
    "RoleOut",
    "RoleUpdate",
    "RootStatus",
    "UserOut",
    "UserProfileOut",
    "error_body",
    "success",
]
