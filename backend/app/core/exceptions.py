"""
Domain exceptions for the import pipeline and its collaborators.

Each exception carries the HTTP status it maps to; the application-level
handler in app.main renders them as {"detail": message}.
"""
from fastapi import status


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidFileType(AppError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
    default_message = "Unsupported file type"


class FileTooLarge(AppError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_message = "File too large"


class StorageError(AppError):
    """Raised when a file cannot be written to or read from storage."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Storage operation failed"


class ExternalServiceError(AppError):
    """Raised when the LLM API is unreachable, times out or returns an error."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "External service request failed"


class ExtractionParseError(AppError):
    """Raised when a model response does not contain usable JSON."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to parse extraction response"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class ValidationError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Validation failed"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class RateLimitExceeded(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests, please try again later"

    def __init__(self, message: str | None = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after
