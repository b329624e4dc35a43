"""ORM model for application users (auth, profile and RBAC)."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from gatehouse.models.base import Base, utcnow
from gatehouse.models.role import user_has_roles


class User(Base):
    """
    User account authenticated with personal access tokens.

    provider/provider_id are set for accounts linked to an OAuth provider.
    Roles are assigned through user_has_roles; tokens are owned and deleted with the user.
    """

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("provider", "provider_id", name="uq_users_provider_provider_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    provider = Column(String(32), nullable=True)
    provider_id = Column(String(255), nullable=True)
    profile_picture = Column(String(1024), nullable=True)
    phone = Column(String(32), nullable=True)
    address = Column(String(1024), nullable=True)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    roles = relationship(
        "Role",
        secondary=user_has_roles,
        back_populates="users",
        order_by="Role.id",
    )
    tokens = relationship(
        "PersonalAccessToken",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def role_names(self) -> list[str]:
        return [role.name for role in self.roles]

    def has_role(self, name: str) -> bool:
        return any(role.name == name for role in self.roles)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"
