"""OAuth social login: provider redirect URL, callback and client-side token exchange."""

import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from gatehouse.api.v1.deps import rate_limit_by_ip
from gatehouse.core.config import Settings, get_settings
from gatehouse.core.database import get_db
from gatehouse.core.errors import DomainError, UnexpectedError, ValidationError
from gatehouse.schemas.auth import AuthPayload, OAuthTokenRequest, RedirectPayload
from gatehouse.schemas.common import ApiResponse, success
from gatehouse.schemas.user import UserOut
from gatehouse.services import accounts, oauth
from gatehouse.services.oauth import (
    OAuthNotConfiguredError,
    OAuthProfile,
    OAuthProviderError,
)
from gatehouse.services.tokens import create_user_token

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(rate_limit_by_ip)])

OAUTH_FAILED = "OAuth authentication failed."


def _require_provider(provider: str) -> None:
    if not oauth.is_supported_provider(provider):
        raise DomainError("Invalid provider.")


def _oauth_failure(provider: str, e: Exception) -> UnexpectedError:
    message = getattr(e, "message", None) or str(e) or type(e).__name__
    logger.warning("OAuth authentication failed", extra={"provider": provider, "reason": message[:200]})
    return UnexpectedError(OAUTH_FAILED, errors={"error": message})


def _sign_in(
    db: Session, settings: Settings, provider: str, profile: OAuthProfile, device: str
) -> ApiResponse:
    user = accounts.find_or_create_oauth_user(
        db,
        provider=provider,
        provider_id=profile.id,
        email=profile.email,
        name=profile.name,
        avatar=profile.avatar,
    )
    token = create_user_token(db, user, settings, device)
    db.commit()
    db.refresh(user)
    return success(
        AuthPayload.build(UserOut.from_user(user), token),
        "User authenticated successfully.",
    )


@router.get("/{provider}/redirect", response_model=ApiResponse[RedirectPayload])
def redirect_to_provider(
    provider: str,
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse:
    """Return the provider's authorization URL. The flow is stateless."""
    _require_provider(provider)
    try:
        url = oauth.build_redirect_url(provider, settings)
    except OAuthNotConfiguredError as e:
        raise _oauth_failure(provider, e) from e
    return success(RedirectPayload(redirect_url=url), "Redirect URL generated successfully.")


@router.get("/{provider}/callback", response_model=ApiResponse[AuthPayload])
async def handle_provider_callback(
    provider: str,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    code: Annotated[str | None, Query()] = None,
    error: Annotated[str | None, Query()] = None,
    error_description: Annotated[str | None, Query()] = None,
) -> ApiResponse:
    """
    Finish the redirect flow: exchange the authorization code, load the provider
    profile, then find, link or create the local account and issue a token.
    """
    _require_provider(provider)
    if error:
        raise DomainError(error_description or error, errors={"error": error})
    if not code:
        raise ValidationError.for_field("code", "The code field is required.")

    try:
        profile = await oauth.user_from_code(provider, code, settings)
    except (OAuthNotConfiguredError, OAuthProviderError, httpx.HTTPError) as e:
        raise _oauth_failure(provider, e) from e
    return _sign_in(db, settings, provider, profile, f"oauth_{provider}")


@router.post("/{provider}/token", response_model=ApiResponse[AuthPayload])
async def handle_provider_token(
    provider: str,
    body: OAuthTokenRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> ApiResponse:
    """Sign in with a provider access token obtained by a client-side OAuth flow."""
    _require_provider(provider)
    try:
        profile = await oauth.user_from_token(provider, body.access_token, settings)
    except (OAuthNotConfiguredError, OAuthProviderError, httpx.HTTPError) as e:
        raise _oauth_failure(provider, e) from e
    return _sign_in(db, settings, provider, profile, f"oauth_{provider}_token")
