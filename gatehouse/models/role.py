"""ORM models for roles, permissions and their assignment tables."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from gatehouse.models.base import Base, utcnow

# Every role and permission belongs to this guard; team scoping is not used.
DEFAULT_GUARD = "api"

role_has_permissions = Table(
    "role_has_permissions",
    Base.metadata,
    Column(
        "permission_id",
        Integer,
        ForeignKey("permissions.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "role_id",
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)

user_has_roles = Table(
    "user_has_roles",
    Base.metadata,
    Column(
        "role_id",
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "user_id",
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class Permission(Base):
    """Named capability; attached to roles, never directly to users."""

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("name", "guard_name", name="uq_permissions_name_guard"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    guard_name = Column(String(64), nullable=False, default=DEFAULT_GUARD)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    roles = relationship(
        "Role", secondary=role_has_permissions, back_populates="permissions"
    )

    def __repr__(self) -> str:
        return f"<Permission id={self.id} name={self.name!r}>"


class Role(Base):
    """
    Named group of permissions assignable to users.

    Deleting a role removes its assignment rows only; users and permissions stay.
    """

    __tablename__ = "roles"
    __table_args__ = (UniqueConstraint("name", "guard_name", name="uq_roles_name_guard"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    guard_name = Column(String(64), nullable=False, default=DEFAULT_GUARD)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    permissions = relationship(
        "Permission",
        secondary=role_has_permissions,
        back_populates="roles",
        order_by="Permission.id",
    )
    users = relationship("User", secondary=user_has_roles, back_populates="roles")

    def permission_names(self) -> list[str]:
        return [permission.name for permission in self.permissions]

    def __repr__(self) -> str:
        return f"<Role id={self.id} name={self.name!r}>"
