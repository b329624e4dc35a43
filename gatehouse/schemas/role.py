"""Request/response schemas for roles and permissions."""

from pydantic import BaseModel, Field, field_validator

from gatehouse.models.role import Permission, Role
from gatehouse.schemas.common import to_iso8601


def _normalize_names(values: list[str] | None) -> list[str] | None:
    """Strip names and drop duplicates, keeping first-seen order."""
    if values is None:
        return None
    seen: list[str] = []
    for value in values:
        name = value.strip()
        if not name:
            raise ValueError("names must be non-empty strings")
        if name not in seen:
            seen.append(name)
    return seen


class PermissionOut(BaseModel):
    id: int
    name: str
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_permission(cls, permission: Permission) -> "PermissionOut":
        return cls(
            id=permission.id,
            name=permission.name,
            created_at=to_iso8601(permission.created_at),
            updated_at=to_iso8601(permission.updated_at),
        )


class RoleOut(BaseModel):
    """Wire shape of a role; permissions are names, empty when not requested."""

    id: int
    name: str
    permissions: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_role(cls, role: Role, include_permissions: bool = True) -> "RoleOut":
        return cls(
            id=role.id,
            name=role.name,
            permissions=role.permission_names() if include_permissions else [],
            created_at=to_iso8601(role.created_at),
            updated_at=to_iso8601(role.updated_at),
        )


class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    permissions: list[str] | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("The name field is required.")
        return v

    @field_validator("permissions")
    @classmethod
    def normalize_permissions(cls, v: list[str] | None) -> list[str] | None:
        return _normalize_names(v)


class RoleUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    permissions: list[str] | None = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("The name field is required.")
        return v

    @field_validator("permissions")
    @classmethod
    def normalize_permissions(cls, v: list[str] | None) -> list[str] | None:
        return _normalize_names(v)
