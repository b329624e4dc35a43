"""
Password reset broker: send a signed reset link, then reset the password with it.

Results are status strings, translated to HTTP by the router:
RESET_LINK_SENT / PASSWORD_RESET on success, anything else is a 400.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal
from urllib.parse import urlencode

import jwt
from sqlalchemy.orm import Session

from gatehouse.core.security import (
    create_password_reset_token,
    decode_password_reset_token,
    hash_password,
    password_fingerprint,
)
from gatehouse.services import accounts
from gatehouse.services.rate_limit import RateLimiter
from gatehouse.services.tokens import revoke_all_tokens

if TYPE_CHECKING:
    from gatehouse.core.config import Settings
    from gatehouse.services.mail import Mailer

logger = logging.getLogger(__name__)

ResetStatus = Literal[
    "RESET_LINK_SENT",
    "PASSWORD_RESET",
    "INVALID_USER",
    "INVALID_TOKEN",
    "RESET_THROTTLED",
]

RESET_LINK_SENT: ResetStatus = "RESET_LINK_SENT"
PASSWORD_RESET: ResetStatus = "PASSWORD_RESET"
INVALID_USER: ResetStatus = "INVALID_USER"
INVALID_TOKEN: ResetStatus = "INVALID_TOKEN"
RESET_THROTTLED: ResetStatus = "RESET_THROTTLED"

STATUS_MESSAGES: dict[str, str] = {
    RESET_LINK_SENT: "We have emailed your password reset link.",
    PASSWORD_RESET: "Your password has been reset.",
    INVALID_USER: "We can't find a user with that email address.",
    INVALID_TOKEN: "This password reset token is invalid.",
    RESET_THROTTLED: "Please wait before retrying.",
}

RESET_SUBJECT = "Reset Password Notification"


def reset_url(settings: Settings, token: str, email: str) -> str:
    return f"{settings.FRONTEND_URL}/reset-password?{urlencode({'token': token, 'email': email})}"


def send_reset_link(
    db: Session,
    email: str,
    settings: Settings,
    mailer: Mailer,
    limiter: RateLimiter,
) -> ResetStatus:
    """Mail a reset link to the account with this email, at most once per throttle window."""
    user = accounts.find_by_email(db, email)
    if user is None:
        return INVALID_USER

    throttle_key = f"password-reset:{user.id}"
    if settings.PASSWORD_RESET_THROTTLE_SECONDS and limiter.too_many_attempts(throttle_key, 1):
        return RESET_THROTTLED

    token = create_password_reset_token(user.id, user.email, user.password_hash)
    body = (
        "You are receiving this email because we received a password reset request "
        "for your account.\n\n"
        f"Reset Password: {reset_url(settings, token, user.email)}\n\n"
        f"This password reset link will expire in "
        f"{settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.\n\n"
        "If you did not request a password reset, no further action is required."
    )
    mailer.send(user.email, RESET_SUBJECT, body)
    if settings.PASSWORD_RESET_THROTTLE_SECONDS:
        limiter.hit(throttle_key, settings.PASSWORD_RESET_THROTTLE_SECONDS)
    logger.info("Password reset link sent", extra={"user_id": user.id})
    return RESET_LINK_SENT


def reset_password(
    db: Session, email: str, password: str, token: str
) -> ResetStatus:
    """
    Set a new password when the token is valid for this email and the current
    password. Every bearer token of the user is revoked. Does not commit.
    """
    user = accounts.find_by_email(db, email)
    if user is None:
        return INVALID_USER
    try:
        payload = decode_password_reset_token(token)
    except jwt.PyJWTError:
        return INVALID_TOKEN
    if (
        payload.get("sub") != str(user.id)
        or payload.get("email") != user.email.lower()
        or payload.get("pwd") != password_fingerprint(user.password_hash)
    ):
        return INVALID_TOKEN

    user.password_hash = hash_password(password)
    revoke_all_tokens(db, user)
    db.flush()
    logger.info("Password reset", extra={"user_id": user.id})
    return PASSWORD_RESET
