"""ORM model for personal access tokens (opaque bearer credentials)."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from gatehouse.models.base import Base, as_utc, utcnow

ALL_ABILITIES = "*"


class PersonalAccessToken(Base):
    """
    Bearer token owned by a user.

    Only the SHA-256 digest of the secret is stored. The name records the issuing
    flow and device (e.g. 'login_<user agent>', 'oauth_github').
    """

    __tablename__ = "personal_access_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(255), nullable=False)
    token = Column(String(64), nullable=False, unique=True)
    abilities = Column(JSON, nullable=False, default=lambda: [ALL_ABILITIES])
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    user = relationship("User", back_populates="tokens")

    def can(self, ability: str) -> bool:
        """True if the token grants the ability ('*' grants everything)."""
        abilities = self.abilities or []
        return ALL_ABILITIES in abilities or ability in abilities

    def is_expired(self, now: datetime) -> bool:
        expires_at = as_utc(self.expires_at)
        return expires_at is not None and expires_at <= as_utc(now)

    def __repr__(self) -> str:
        return f"<PersonalAccessToken id={self.id} user_id={self.user_id} name={self.name!r}>"
