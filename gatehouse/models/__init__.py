"""SQLAlchemy ORM models."""

from gatehouse.models.base import Base
from gatehouse.models.role import Permission, Role, role_has_permissions, user_has_roles
from gatehouse.models.token import PersonalAccessToken
from gatehouse.models.user import User

__all__ = [
    "Base",
    "Permission",
    "PersonalAccessToken",
    "Role",
    "User",
    "role_has_permissions",
    "user_has_roles",
]
