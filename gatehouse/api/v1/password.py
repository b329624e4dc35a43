"""Forgot-password and reset-password endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gatehouse.api.v1.deps import get_limiter, get_mailer, rate_limit_by_ip
from gatehouse.core.config import Settings, get_settings
from gatehouse.core.database import get_db
from gatehouse.core.errors import DomainError, UnexpectedError
from gatehouse.schemas.auth import ForgotPasswordRequest, ResetPasswordRequest
from gatehouse.schemas.common import ApiResponse, EmptyData, success
from gatehouse.services import password_reset
from gatehouse.services.mail import MailDeliveryError, Mailer
from gatehouse.services.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(rate_limit_by_ip)])


@router.post("/forgot-password", response_model=ApiResponse[EmptyData])
def forgot_password(
    body: ForgotPasswordRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    mailer: Annotated[Mailer, Depends(get_mailer)],
    rate_limiter: Annotated[RateLimiter, Depends(get_limiter)],
) -> ApiResponse:
    """Mail a single-use reset link to the account with this email."""
    try:
        status = password_reset.send_reset_link(db, body.email, settings, mailer, rate_limiter)
    except MailDeliveryError as e:
        raise UnexpectedError(
            "Unable to send the password reset link.", errors={"error": e.message}
        ) from e
    message = password_reset.STATUS_MESSAGES[status]
    if status != password_reset.RESET_LINK_SENT:
        raise DomainError(message)
    return success(message=message)


@router.post("/reset-password", response_model=ApiResponse[EmptyData])
def reset_password(
    body: ResetPasswordRequest,
    db: Annotated[Session, Depends(get_db)],
) -> ApiResponse:
    """Set a new password with a token from the reset link; signs out every session."""
    status = password_reset.reset_password(db, body.email, body.password, body.token)
    message = password_reset.STATUS_MESSAGES[status]
    if status != password_reset.PASSWORD_RESET:
        db.rollback()
        raise DomainError(message)
    db.commit()
    return success(message=message)
