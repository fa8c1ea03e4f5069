"""
Custom Exceptions
Domain error taxonomy mapped to HTTP responses by type
Source: https://fastapi.tiangolo.com/tutorial/handling-errors/#install-custom-exception-handlers
"""

from fastapi import status


class ClaimsServiceError(Exception):
    """
    Base class for all service errors.

    Each subclass carries the HTTP status and a stable title used as the
    ``error`` field of the response body. ``message`` is the human-readable
    detail; ``public_message`` is what may be shown to API callers.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Internal server error"

    def __init__(self, message: str, *, title: str | None = None):
        super().__init__(message)
        self.message = message
        if title is not None:
            self.title = title

    @property
    def public_message(self) -> str | None:
        return self.message


class ValidationError(ClaimsServiceError):
    """Raised when a claim field fails format validation"""

    status_code = status.HTTP_400_BAD_REQUEST
    title = "Validation failed"

    def __init__(self, message: str, field: str | None = None, *, title: str | None = None):
        super().__init__(message, title=title)
        self.field = field


class NotFoundError(ClaimsServiceError):
    """Raised when a referenced pharmacy or claim does not exist"""

    status_code = status.HTTP_404_NOT_FOUND
    title = "Resource not found"

    def __init__(self, message: str, resource: str | None = None):
        super().__init__(message, title=f"{resource} not found" if resource else None)
        self.resource = resource


class ConflictError(ClaimsServiceError):
    """Raised when a claim already has a reversal"""

    status_code = status.HTTP_409_CONFLICT
    title = "Claim already reversed"


class StorageError(ClaimsServiceError):
    """Raised when the database rejects or fails an operation"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    title = "Internal server error"

    @property
    def public_message(self) -> str | None:
        # The cause is logged server side and never returned to callers
        return None


class LoaderError(ClaimsServiceError):
    """Raised when bulk loading cannot produce any pharmacies"""

    title = "Data load failed"
