"""HTTP-aware application errors.

Services raise these directly; FastAPI turns them into responses with the
matching status code and a ``{"detail": ...}`` body.
"""

from typing import Any

from fastapi import HTTPException, status


class AppError(HTTPException):
    """Base class for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Internal server error"

    def __init__(self, detail: Any = None, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail if detail is not None else self.default_detail,
            headers=headers,
        )


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Not authenticated"

    def __init__(self, detail: Any = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Not enough permissions"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Resource not found"


class ServiceUnavailableError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service unavailable"


# --- Domain errors ---


class TenantNotFoundError(NotFoundError):
    """Unknown site, or a site id / API key pair that does not match.

    Both cases share one message so callers cannot probe for valid ids.
    """

    default_detail = "Site not found or invalid API key"


class TenantNotConfiguredError(BadRequestError):
    default_detail = "Site database not configured"


class EventValidationError(BadRequestError):
    default_detail = "Malformed analytics event"


class InvalidPeriodError(BadRequestError):
    default_detail = "Invalid period"


class StoreError(AppError):
    """The tenant's own data store failed or answered with garbage."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Analytics store error"


class StoreReadError(StoreError):
    default_detail = "Unable to read analytics data"


class StoreWriteError(StoreError):
    default_detail = "Unable to store analytics event"
