"""User account operations shared by the auth, OAuth, profile and admin routers."""

import logging
import secrets

from sqlalchemy import func
from sqlalchemy.orm import Session

from gatehouse.core.security import hash_password, verify_password
from gatehouse.models import Role, User
from gatehouse.models.role import DEFAULT_GUARD
from gatehouse.services.authorization import USER_ROLE

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def find_by_email(db: Session, email: str) -> User | None:
    return (
        db.query(User)
        .filter(func.lower(User.email) == normalize_email(email))
        .first()
    )


def email_taken(db: Session, email: str, exclude_user_id: int | None = None) -> bool:
    query = db.query(User.id).filter(func.lower(User.email) == normalize_email(email))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def default_role(db: Session) -> Role | None:
    return (
        db.query(Role)
        .filter(Role.name == USER_ROLE, Role.guard_name == DEFAULT_GUARD)
        .first()
    )


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    roles: list[Role] | None = None,
    **profile: str | None,
) -> User:
    user = User(
        name=name.strip(),
        email=normalize_email(email),
        password_hash=hash_password(password),
        **profile,
    )
    if roles:
        user.roles = list(roles)
    db.add(user)
    db.flush()
    return user


def register_user(db: Session, name: str, email: str, password: str) -> User:
    """Create a self-registered user with the default 'user' role when it exists."""
    role = default_role(db)
    user = create_user(db, name, email, password, roles=[role] if role else None)
    logger.info("User registered", extra={"user_id": user.id})
    return user


def authenticate(db: Session, email: str, password: str) -> User | None:
    """Return the user for valid credentials, None otherwise."""
    user = find_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def sync_roles(user: User, roles: list[Role]) -> None:
    """Replace the user's roles with exactly the given set."""
    user.roles = list(roles)


def find_or_create_oauth_user(
    db: Session,
    provider: str,
    provider_id: str,
    email: str,
    name: str | None,
    avatar: str | None,
) -> User:
    """
    Resolve the local account for a provider identity:
    1. an account already linked to (provider, provider_id);
    2. else an account with the same email, which gets linked;
    3. else a new account with a random password and the default role.
    """
    user = (
        db.query(User)
        .filter(User.provider == provider, User.provider_id == provider_id)
        .first()
    )
    if user is not None:
        return user

    user = find_by_email(db, email)
    if user is not None:
        user.provider = provider
        user.provider_id = provider_id
        db.flush()
        logger.info(
            "Linked existing account to provider",
            extra={"user_id": user.id, "provider": provider},
        )
        return user

    role = default_role(db)
    user = create_user(
        db,
        name=name or email.split("@")[0],
        email=email,
        password=secrets.token_urlsafe(16),
        roles=[role] if role else None,
        provider=provider,
        provider_id=provider_id,
        profile_picture=avatar,
    )
    logger.info(
        "Created account from provider",
        extra={"user_id": user.id, "provider": provider},
    )
    return user
