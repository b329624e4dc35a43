"""Shared route dependencies: bearer authentication, admin role check and rate limiting."""

from datetime import UTC, datetime
from typing import Annotated, Literal

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from gatehouse.core.config import Settings, get_settings
from gatehouse.core.database import get_db
from gatehouse.core.errors import AuthenticationError, AuthorizationError, RateLimitError
from gatehouse.services.authorization import ADMIN_ROLE, check_has_role
from gatehouse.services.mail import Mailer
from gatehouse.services.rate_limit import RateLimiter, limiter
from gatehouse.services.tokens import AuthContext, find_valid_token

security = HTTPBearer(auto_error=False)

RateTier = Literal["default", "authenticated", "admin"]


def get_limiter() -> RateLimiter:
    return limiter


def get_mailer(settings: Annotated[Settings, Depends(get_settings)]) -> Mailer:
    return Mailer(settings)


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(
    response: Response,
    key: str,
    max_attempts: int,
    settings: Settings,
    rate_limiter: RateLimiter,
) -> None:
    """Count one request against key; raise RateLimitError once the window is full."""
    if rate_limiter.too_many_attempts(key, max_attempts):
        retry_after = rate_limiter.available_in(key)
        raise RateLimitError(
            retry_after=retry_after,
            headers={
                "X-RateLimit-Limit": str(max_attempts),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": str(retry_after),
            },
        )
    rate_limiter.hit(key, settings.RATE_LIMIT_DECAY_SECONDS)
    response.headers["X-RateLimit-Limit"] = str(max_attempts)
    response.headers["X-RateLimit-Remaining"] = str(rate_limiter.remaining(key, max_attempts))
    response.headers["X-RateLimit-Reset"] = str(rate_limiter.available_in(key))


def _tier_limit(settings: Settings, tier: RateTier) -> int:
    if tier == "admin":
        return settings.RATE_LIMIT_ADMIN
    if tier == "authenticated":
        return settings.RATE_LIMIT_AUTHENTICATED
    return settings.RATE_LIMIT_DEFAULT


def rate_limit_by_ip(
    request: Request,
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
    rate_limiter: Annotated[RateLimiter, Depends(get_limiter)],
) -> None:
    """Default tier for unauthenticated routes, keyed by client IP."""
    enforce_rate_limit(
        response,
        f"api:default:{client_ip(request)}",
        _tier_limit(settings, "default"),
        settings,
        rate_limiter,
    )


def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> AuthContext:
    """
    Dependency: resolve the bearer token to its user. Raises 401 if the token is
    missing, malformed, revoked or expired. Records the token's last use.
    """
    if credentials is None:
        raise AuthenticationError()
    token = find_valid_token(db, credentials.credentials)
    if token is None:
        raise AuthenticationError()
    token.last_used_at = datetime.now(UTC)
    db.commit()
    return AuthContext(user=token.user, token=token)


def get_current_context(
    context: Annotated[AuthContext, Depends(get_auth_context)],
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
    rate_limiter: Annotated[RateLimiter, Depends(get_limiter)],
) -> AuthContext:
    """Authenticated tier: bearer auth plus the per-user rate limit."""
    enforce_rate_limit(
        response,
        f"api:authenticated:{context.user.id}",
        _tier_limit(settings, "authenticated"),
        settings,
        rate_limiter,
    )
    return context


def require_admin(
    context: Annotated[AuthContext, Depends(get_auth_context)],
    response: Response,
    settings: Annotated[Settings, Depends(get_settings)],
    rate_limiter: Annotated[RateLimiter, Depends(get_limiter)],
) -> AuthContext:
    """Dependency: require the admin role. Raises 403 for everyone else."""
    result = check_has_role(context.user, ADMIN_ROLE)
    if not result.allowed:
        raise AuthorizationError(result.message)
    enforce_rate_limit(
        response,
        f"api:admin:{context.user.id}",
        _tier_limit(settings, "admin"),
        settings,
        rate_limiter,
    )
    return context
