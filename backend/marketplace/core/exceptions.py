"""Domain errors raised by the service layer.

Routes translate these into HTTP responses via ``to_http_exception``; each
error carries the status code it maps to.
"""

from fastapi import HTTPException, status


class MarketplaceError(Exception):
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStockError(MarketplaceError):
    """Requested quantity exceeds the stock currently available."""

    def __init__(self, message: str, available: int | None = None, requested: int | None = None):
        super().__init__(message)
        self.available = available
        self.requested = requested


class InvalidStateError(MarketplaceError):
    """Operation is not allowed from the entity's current state."""


class PermissionDeniedError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(MarketplaceError):
    status_code = status.HTTP_409_CONFLICT


def to_http_exception(exc: MarketplaceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
