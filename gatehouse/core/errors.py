"""Error taxonomy translated to the JSON error envelope at the HTTP boundary."""

from typing import Any


class ApiError(Exception):
    """Base error with an HTTP status, a message and optional field-level errors."""

    status_code = 500
    default_message = "Operation failed."

    def __init__(
        self,
        message: str | None = None,
        errors: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors or {}
        self.headers = headers
        super().__init__(self.message)


class ValidationError(ApiError):
    """Malformed or missing input, or a reference to an entity that does not exist."""

    status_code = 422
    default_message = "Validation Error."

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(errors={field: [message]})


class AuthenticationError(ApiError):
    """Bad credentials, or a missing, revoked or expired bearer token."""

    status_code = 401
    default_message = "Unauthenticated."

    def __init__(
        self,
        message: str | None = None,
        errors: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message, errors, headers or {"WWW-Authenticate": "Bearer"})


class AuthorizationError(ApiError):
    """Policy violation: protected role, last admin, self-delete, missing role."""

    status_code = 403
    default_message = "This action is unauthorized."


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found."


class DomainError(ApiError):
    """Expected business failure (invalid OAuth provider, invalid reset token)."""

    status_code = 400
    default_message = "Request could not be completed."


class RateLimitError(ApiError):
    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(
        self,
        message: str | None = None,
        retry_after: int = 0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.retry_after = retry_after
        merged = {"Retry-After": str(retry_after)}
        merged.update(headers or {})
        super().__init__(message, None, merged)


class UnexpectedError(ApiError):
    """Collaborator failure caught at a router boundary."""

    status_code = 500
    default_message = "Server Error."
