"""Domain exceptions raised by services and mapped to HTTP responses in main."""

from typing import Any

from fastapi import status


class CivicAdminError(Exception):
    """Base class for errors the API layer knows how to render."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "An unexpected error occurred"

    def __init__(
        self, message: str | None = None, errors: dict[str, Any] | None = None
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(CivicAdminError):
    """Missing or malformed input. Always raised before anything is written."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class AuthenticationError(CivicAdminError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class ForbiddenError(CivicAdminError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(CivicAdminError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"

    def __init__(self, resource: str = "Resource", message: str | None = None) -> None:
        self.resource = resource
        super().__init__(message or f"{resource} not found")


class ConflictError(CivicAdminError):
    """A unique-key invariant would be broken by the write."""

    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class RateLimitedError(CivicAdminError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests"

    def __init__(self, message: str | None = None, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)
