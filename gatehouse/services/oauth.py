"""Stateless OAuth2 login against Google, Facebook and GitHub: redirect URL, code exchange, profile fetch."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

if TYPE_CHECKING:
    from gatehouse.core.config import Settings


class ProviderEndpoints(BaseModel):
    authorize_url: str
    token_url: str
    user_url: str
    scopes: tuple[str, ...]
    scope_separator: str = " "


PROVIDERS: dict[str, ProviderEndpoints] = {
    "google": ProviderEndpoints(
        authorize_url="https://accounts.google.com/o/oauth2/auth",
        token_url="https://www.googleapis.com/oauth2/v4/token",
        user_url="https://www.googleapis.com/oauth2/v3/userinfo",
        scopes=("openid", "profile", "email"),
    ),
    "facebook": ProviderEndpoints(
        authorize_url="https://www.facebook.com/v18.0/dialog/oauth",
        token_url="https://graph.facebook.com/v18.0/oauth/access_token",
        user_url="https://graph.facebook.com/v18.0/me",
        scopes=("email",),
        scope_separator=",",
    ),
    "github": ProviderEndpoints(
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        user_url="https://api.github.com/user",
        scopes=("user:email",),
    ),
}

GITHUB_EMAILS_URL = "https://api.github.com/user/emails"


class OAuthProfile(BaseModel):
    """Identity returned by a provider."""

    id: str
    email: str | None = None
    name: str | None = None
    avatar: str | None = None


class OAuthNotConfiguredError(Exception):
    """Raised when a provider is used but its client credentials are missing."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class OAuthProviderError(Exception):
    """Raised when the provider rejects a request or returns an unusable response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def is_supported_provider(provider: str) -> bool:
    return provider in PROVIDERS


def _credentials(provider: str, settings: Settings) -> tuple[str, str, str]:
    creds = settings.oauth_credentials(provider)
    if creds is None:
        raise OAuthNotConfiguredError(
            f"OAuth provider '{provider}' is not configured."
        )
    return creds


def build_redirect_url(provider: str, settings: Settings) -> str:
    """Authorization URL the client should open. No state is kept server-side."""
    endpoints = PROVIDERS[provider]
    client_id, _, redirect_uri = _credentials(provider, settings)
    query = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": endpoints.scope_separator.join(endpoints.scopes),
        "response_type": "code",
    }
    return f"{endpoints.authorize_url}?{urlencode(query)}"


def _raise_for_status(resp: httpx.Response, what: str) -> None:
    if resp.status_code == 401:
        raise OAuthProviderError(f"Provider rejected the {what} (unauthorized).", 401)
    if resp.status_code >= 400:
        raise OAuthProviderError(
            f"Provider returned status {resp.status_code} for the {what}.",
            resp.status_code,
        )


async def exchange_code(
    provider: str,
    code: str,
    settings: Settings,
    client: httpx.AsyncClient,
) -> str:
    """Trade an authorization code for a provider access token."""
    endpoints = PROVIDERS[provider]
    client_id, client_secret, redirect_uri = _credentials(provider, settings)
    resp = await client.post(
        endpoints.token_url,
        data={
            "client_id": client_id,
            "client_secret": client_secret,
            "code": code,
            "redirect_uri": redirect_uri,
            "grant_type": "authorization_code",
        },
        headers={"Accept": "application/json"},
        timeout=settings.OAUTH_REQUEST_TIMEOUT_SEC,
    )
    _raise_for_status(resp, "authorization code")
    try:
        body = resp.json()
    except ValueError as e:
        raise OAuthProviderError("Provider returned invalid JSON for the token request.") from e
    access_token = body.get("access_token")
    if not access_token:
        detail = body.get("error_description") or body.get("error") or "no access_token"
        raise OAuthProviderError(f"Code exchange failed: {detail}")
    return access_token


def _profile_from_payload(provider: str, payload: dict[str, Any]) -> OAuthProfile:
    if provider == "google":
        return OAuthProfile(
            id=str(payload.get("sub") or payload.get("id") or ""),
            email=payload.get("email"),
            name=payload.get("name"),
            avatar=payload.get("picture"),
        )
    if provider == "facebook":
        picture = ((payload.get("picture") or {}).get("data") or {}).get("url")
        return OAuthProfile(
            id=str(payload.get("id") or ""),
            email=payload.get("email"),
            name=payload.get("name"),
            avatar=picture,
        )
    return OAuthProfile(
        id=str(payload.get("id") or ""),
        email=payload.get("email"),
        name=payload.get("name") or payload.get("login"),
        avatar=payload.get("avatar_url"),
    )


async def _github_primary_email(
    client: httpx.AsyncClient, headers: dict[str, str], timeout: float
) -> str | None:
    resp = await client.get(GITHUB_EMAILS_URL, headers=headers, timeout=timeout)
    if resp.status_code >= 400:
        return None
    try:
        emails = resp.json()
    except ValueError as e:
        raise OAuthProviderError("Provider returned invalid JSON for the email list.") from e
    if not isinstance(emails, list):
        raise OAuthProviderError("Provider returned an unexpected email list.")
    for entry in emails:
        if isinstance(entry, dict) and entry.get("primary") and entry.get("verified"):
            return entry.get("email")
    return None


async def fetch_profile(
    provider: str,
    access_token: str,
    settings: Settings,
    client: httpx.AsyncClient,
) -> OAuthProfile:
    """Load the user's identity with a provider access token."""
    endpoints = PROVIDERS[provider]
    headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}
    params: dict[str, str] = {}
    if provider == "facebook":
        params["fields"] = "id,name,email,picture.type(large)"
    resp = await client.get(
        endpoints.user_url,
        headers=headers,
        params=params,
        timeout=settings.OAUTH_REQUEST_TIMEOUT_SEC,
    )
    _raise_for_status(resp, "access token")
    try:
        payload = resp.json()
    except ValueError as e:
        raise OAuthProviderError("Provider returned invalid JSON for the profile.") from e
    profile = _profile_from_payload(provider, payload)
    if provider == "github" and not profile.email:
        profile.email = await _github_primary_email(
            client, headers, settings.OAUTH_REQUEST_TIMEOUT_SEC
        )
    if not profile.id:
        raise OAuthProviderError("Provider profile has no user id.")
    if not profile.email:
        raise OAuthProviderError("Provider did not return an email address.")
    return profile


async def user_from_code(provider: str, code: str, settings: Settings) -> OAuthProfile:
    """Callback flow: code -> provider token -> profile."""
    async with httpx.AsyncClient() as client:
        access_token = await exchange_code(provider, code, settings, client)
        return await fetch_profile(provider, access_token, settings, client)


async def user_from_token(
    provider: str, access_token: str, settings: Settings
) -> OAuthProfile:
    """Token flow: a client already holds a provider access token."""
    async with httpx.AsyncClient() as client:
        return await fetch_profile(provider, access_token, settings, client)
