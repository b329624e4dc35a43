"""
Personal access tokens: issue, resolve, revoke and prune.

This module is the only place that computes token expiry. Functions flush but do not
commit; the calling router commits so each request is one transaction.
"""

import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from gatehouse.core.security import (
    format_plain_text_token,
    generate_token_secret,
    hash_token_secret,
    parse_plain_text_token,
    token_secret_matches,
)
from gatehouse.models import PersonalAccessToken, User
from gatehouse.models.token import ALL_ABILITIES
from gatehouse.schemas.auth import IssuedToken
from gatehouse.schemas.common import to_iso8601

if TYPE_CHECKING:
    from gatehouse.core.config import Settings

logger = logging.getLogger(__name__)

TOKEN_NAME_MAX_LEN = 255
TOKEN_TYPE = "Bearer"
REFRESHED_SUFFIX = "_refreshed"


@dataclass(frozen=True)
class AuthContext:
    """Authenticated principal and the credential that authenticated this request."""

    user: User
    token: PersonalAccessToken | None


def token_name(device: str | None) -> str:
    """Token name from a device label, or 'token_<unix time>' when there is none."""
    name = device if device else f"token_{int(time.time())}"
    return name[:TOKEN_NAME_MAX_LEN]


def token_expiration(settings: "Settings", now: datetime | None = None) -> datetime:
    now = now or datetime.now(UTC)
    return now + timedelta(minutes=settings.TOKEN_EXPIRATION_MINUTES)


def create_user_token(
    db: Session,
    user: User,
    settings: "Settings",
    device: str | None = None,
    abilities: list[str] | None = None,
) -> IssuedToken:
    """
    Persist a new token for user and return its plain-text form (shown once).
    abilities defaults to full access.
    """
    expires_at = token_expiration(settings)
    secret = generate_token_secret()
    row = PersonalAccessToken(
        user_id=user.id,
        name=token_name(device),
        token=hash_token_secret(secret),
        abilities=list(abilities) if abilities else [ALL_ABILITIES],
        expires_at=expires_at,
    )
    db.add(row)
    db.flush()
    logger.info(
        "Token issued",
        extra={"user_id": user.id, "token_id": row.id, "token_name": row.name},
    )
    return IssuedToken(
        access_token=format_plain_text_token(row.id, secret),
        token_type=TOKEN_TYPE,
        expires_at=to_iso8601(expires_at),
    )


def find_valid_token(
    db: Session, plain_text: str, now: datetime | None = None
) -> PersonalAccessToken | None:
    """
    Resolve a presented bearer token. Returns None when it is malformed, unknown,
    revoked (row deleted), does not match, or has expired.
    """
    parsed = parse_plain_text_token(plain_text)
    if parsed is None:
        return None
    token_id, secret = parsed
    row = db.get(PersonalAccessToken, token_id)
    if row is None or not token_secret_matches(secret, row.token):
        return None
    if row.is_expired(now or datetime.now(UTC)):
        return None
    return row


def revoke_current_token(db: Session, context: AuthContext) -> int:
    """Delete the token that authenticated this request. No-op without one."""
    if context.token is None:
        return 0
    deleted = (
        db.query(PersonalAccessToken)
        .filter(
            PersonalAccessToken.id == context.token.id,
            PersonalAccessToken.user_id == context.user.id,
        )
        .delete()
    )
    logger.info(
        "Token revoked",
        extra={"user_id": context.user.id, "token_id": context.token.id, "deleted": deleted},
    )
    return deleted


def revoke_all_tokens(db: Session, user: User) -> int:
    """Delete every token owned by user."""
    deleted = (
        db.query(PersonalAccessToken)
        .filter(PersonalAccessToken.user_id == user.id)
        .delete()
    )
    logger.info("All tokens revoked", extra={"user_id": user.id, "deleted": deleted})
    return deleted


def revoke_tokens_by_device(db: Session, user: User, device: str) -> int:
    """
    Delete tokens of user whose name contains device. The match is a plain substring
    match, so 'ios' also revokes 'login_ios_tablet'.
    """
    if not device:
        return 0
    deleted = (
        db.query(PersonalAccessToken)
        .filter(
            PersonalAccessToken.user_id == user.id,
            PersonalAccessToken.name.contains(device, autoescape=True),
        )
        .delete(synchronize_session="fetch")
    )
    logger.info(
        "Device tokens revoked",
        extra={"user_id": user.id, "device": device, "deleted": deleted},
    )
    return deleted


def refreshed_token_name(current_name: str) -> str:
    return (current_name + REFRESHED_SUFFIX)[:TOKEN_NAME_MAX_LEN]


def prune_expired_tokens(session: Session, settings: "Settings") -> int:
    """
    Delete tokens that expired more than TOKEN_PRUNE_HOURS ago.
    Idempotent: safe to run repeatedly.
    """
    cutoff = datetime.now(UTC) - timedelta(hours=settings.TOKEN_PRUNE_HOURS)
    deleted_count = (
        session.query(PersonalAccessToken)
        .filter(PersonalAccessToken.expires_at < cutoff)
        .delete(synchronize_session=False)
    )
    session.commit()

    if deleted_count > 0:
        logger.info(
            "Token prune run: cutoff=%s, tokens_deleted=%s",
            cutoff.isoformat(),
            deleted_count,
        )
    return deleted_count
