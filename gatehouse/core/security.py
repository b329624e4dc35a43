"""Password hashing, bearer token secrets and signed password-reset tokens."""

import hashlib
import hmac
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from gatehouse.core.config import settings

# Bcrypt cost (rounds); 12 is a good default for security vs speed.
BCRYPT_ROUNDS = 12

NAME_MAX_LEN = 255
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

# Length of the random part of a plain-text bearer token.
TOKEN_SECRET_LENGTH = 40

PASSWORD_RESET_PURPOSE = "password_reset"


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def generate_token_secret() -> str:
    """Random alphanumeric secret for a new bearer token."""
    alphabet = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    return "".join(secrets.choice(alphabet) for _ in range(TOKEN_SECRET_LENGTH))


def hash_token_secret(secret: str) -> str:
    """SHA-256 hex digest stored in place of the token secret."""
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def token_secret_matches(secret: str, stored_hash: str) -> bool:
    return hmac.compare_digest(hash_token_secret(secret), stored_hash)


def format_plain_text_token(token_id: int, secret: str) -> str:
    """Plain-text bearer token: '<id>|<secret>'. Only ever returned once."""
    return f"{token_id}|{secret}"


def parse_plain_text_token(plain: str) -> tuple[int, str] | None:
    """Split '<id>|<secret>' into its parts. Returns None for malformed tokens."""
    if not plain or "|" not in plain:
        return None
    raw_id, secret = plain.split("|", 1)
    try:
        token_id = int(raw_id)
    except ValueError:
        return None
    if token_id < 1 or not secret:
        return None
    return token_id, secret


def password_fingerprint(password_hash: str) -> str:
    """Short digest of the stored hash; changes whenever the password changes."""
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:16]


def create_password_reset_token(user_id: int, email: str, password_hash: str) -> str:
    """
    Create a signed reset token bound to the user and their current password hash.
    Once the password changes the fingerprint no longer matches, so a token works once.
    """
    now = datetime.now(UTC)
    expire = now + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "email": email.lower(),
        "purpose": PASSWORD_RESET_PURPOSE,
        "pwd": password_fingerprint(password_hash),
        "exp": expire,
        "iat": now,
    }
    return jwt.encode(
        payload,
        settings.PASSWORD_RESET_SECRET.get_secret_value(),
        algorithm=settings.PASSWORD_RESET_ALGORITHM,
    )


def decode_password_reset_token(token: str) -> dict[str, Any]:
    """
    Decode and validate a reset token; return its payload.
    Raises jwt.PyJWTError on invalid or expired token.
    """
    payload = jwt.decode(
        token,
        settings.PASSWORD_RESET_SECRET.get_secret_value(),
        algorithms=[settings.PASSWORD_RESET_ALGORITHM],
    )
    if payload.get("purpose") != PASSWORD_RESET_PURPOSE:
        raise jwt.InvalidTokenError("Token was not issued for password reset")
    return payload
