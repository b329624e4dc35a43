"""
API version negotiation for routes under a version prefix.

Every versioned response carries an API-Version header. A client asking for a
newer version than the latest one (Accept-Version: v2 while v1 is latest) gets
a 400. Routes of a version other than the latest, or of a version listed in
API_DEPRECATED_VERSIONS, get a Warning header.
"""

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from gatehouse.core.config import Settings
from gatehouse.schemas.common import error_body

logger = logging.getLogger(__name__)

ACCEPT_VERSION_HEADER = "Accept-Version"
API_VERSION_HEADER = "API-Version"


def parse_version(value: str | None) -> tuple[int, ...] | None:
    """'v1', '1' and '1.2' parse to (1,), (1,) and (1, 2). Anything else is None."""
    if not value:
        return None
    raw = value.strip().lstrip("vV")
    try:
        return tuple(int(part) for part in raw.split("."))
    except ValueError:
        return None


def deprecation_warning(latest: str) -> str:
    return (
        '299 - "Deprecated API Version: This version of the API will be deprecated soon. '
        f'Please migrate to the latest version {latest}."'
    )


class ApiVersionMiddleware(BaseHTTPMiddleware):
    """Applies version negotiation to paths under prefix, served as version."""

    def __init__(self, app: ASGIApp, prefix: str, version: str, settings: Settings) -> None:
        super().__init__(app)
        self.prefix = prefix
        self.version = version
        self.settings = settings

    def _in_scope(self, path: str) -> bool:
        return path == self.prefix or path.startswith(self.prefix + "/")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._in_scope(request.url.path):
            return await call_next(request)

        latest = self.settings.API_LATEST_VERSION
        requested = parse_version(request.headers.get(ACCEPT_VERSION_HEADER))
        latest_parsed = parse_version(latest)
        if requested is not None and latest_parsed is not None and requested > latest_parsed:
            logger.info(
                "Unsupported API version requested",
                extra={"requested": request.headers.get(ACCEPT_VERSION_HEADER)},
            )
            response: Response = JSONResponse(
                status_code=400,
                content=error_body(
                    f"This version is not yet supported. Please use version {latest} or earlier."
                ),
            )
        else:
            response = await call_next(request)

        response.headers[API_VERSION_HEADER] = self.version
        if self.version != latest or self.version in self.settings.API_DEPRECATED_VERSIONS:
            response.headers["Warning"] = deprecation_warning(latest)
        return response
