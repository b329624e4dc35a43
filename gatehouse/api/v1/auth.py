"""Register, login, logout and token refresh."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gatehouse.api.v1.deps import (
    client_ip,
    get_current_context,
    get_limiter,
    rate_limit_by_ip,
)
from gatehouse.core.config import Settings, get_settings
from gatehouse.core.database import get_db
from gatehouse.core.errors import (
    AuthenticationError,
    RateLimitError,
    UnexpectedError,
    ValidationError,
)
from gatehouse.schemas.auth import AuthPayload, LoginRequest, RegisterRequest
from gatehouse.schemas.common import ApiResponse, EmptyData, success
from gatehouse.schemas.user import UserOut
from gatehouse.services import accounts
from gatehouse.services.rate_limit import RateLimiter
from gatehouse.services.tokens import (
    AuthContext,
    create_user_token,
    refreshed_token_name,
    revoke_current_token,
)

logger = logging.getLogger(__name__)

router = APIRouter()

DEVICE_MAX_LEN = 255


def _device(request: Request) -> str:
    return (request.headers.get("user-agent") or "unknown")[:DEVICE_MAX_LEN]


@router.post(
    "/register",
    response_model=ApiResponse[AuthPayload],
    dependencies=[Depends(rate_limit_by_ip)],
)
def register(
    body: RegisterRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse:
    """Create an account with the default role and return it with a new bearer token."""
    if accounts.email_taken(db, body.email):
        raise ValidationError.for_field("email", "The email has already been taken.")

    user = accounts.register_user(db, body.name, body.email, body.password)
    token = create_user_token(db, user, settings, f"register_{_device(request)}")
    db.commit()
    db.refresh(user)
    return success(
        AuthPayload.build(UserOut.from_user(user), token),
        "User registered successfully.",
    )


@router.post(
    "/login",
    response_model=ApiResponse[AuthPayload],
    dependencies=[Depends(rate_limit_by_ip)],
)
def login(
    body: LoginRequest,
    request: Request,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    rate_limiter: Annotated[RateLimiter, Depends(get_limiter)],
) -> ApiResponse:
    """
    Authenticate with email and password; returns the user and a new bearer token.
    Include the token in the Authorization header as: Bearer <access_token>
    """
    throttle_key = f"login:{accounts.normalize_email(body.email)}|{client_ip(request)}"
    if rate_limiter.too_many_attempts(throttle_key, settings.LOGIN_MAX_ATTEMPTS):
        seconds = rate_limiter.available_in(throttle_key)
        raise RateLimitError(
            f"Too many login attempts. Please try again in {seconds} seconds.",
            retry_after=seconds,
        )

    user = accounts.authenticate(db, body.email, body.password)
    if user is None:
        rate_limiter.hit(throttle_key, settings.RATE_LIMIT_DECAY_SECONDS)
        logger.info("Login failed", extra={"ip": client_ip(request)})
        raise AuthenticationError(
            "Invalid login credentials.",
            errors={"email": ["These credentials do not match our records."]},
        )

    rate_limiter.clear(throttle_key)
    token = create_user_token(db, user, settings, f"login_{_device(request)}")
    db.commit()
    db.refresh(user)
    return success(
        AuthPayload.build(UserOut.from_user(user), token),
        "User logged in successfully.",
    )


@router.post("/logout", response_model=ApiResponse[EmptyData])
def logout(
    context: Annotated[AuthContext, Depends(get_current_context)],
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    """Revoke the token used for this request. Other sessions stay signed in."""
    try:
        revoke_current_token(db, context)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Logout failed", extra={"user_id": context.user.id})
        raise UnexpectedError(f"Logout failed. {e}") from e
    return success(message="User logged out successfully.")


@router.post("/refresh", response_model=ApiResponse[AuthPayload])
def refresh(
    context: Annotated[AuthContext, Depends(get_current_context)],
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse:
    """
    Swap the current token for a new one named '<old name>_refreshed'.

    Revoke and issue commit together, so a failure leaves the old token valid.
    If a concurrent request already revoked the token, this one gets a 401.
    """
    if context.token is None:
        raise AuthenticationError()
    user = context.user
    current_name = context.token.name
    try:
        if revoke_current_token(db, context) == 0:
            db.rollback()
            raise AuthenticationError()
        token = create_user_token(db, user, settings, refreshed_token_name(current_name))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Token refresh failed", extra={"user_id": user.id})
        raise UnexpectedError(f"Token refresh failed. {e}") from e
    db.refresh(user)
    return success(
        AuthPayload.build(UserOut.from_user(user), token),
        "Token refreshed successfully.",
    )
