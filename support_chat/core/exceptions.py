"""Custom exceptions for the application.

Every exception carries an ``error_code`` that is exposed to clients as the
``error_kind`` of the error envelope.
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)

    def to_envelope(self) -> dict[str, Any]:
        """Render the failure envelope returned to API clients."""
        return {
            "success": False,
            "error_kind": self.error_code,
            "message": self.message,
            "details": self.details,
        }


# Authentication Exceptions
class AuthenticationError(AppException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Authentication failed", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTHENTICATION_ERROR",
            details=details,
        )


class InvalidCredentialsError(AuthenticationError):
    """Raised when credentials are invalid."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message=message)
        self.error_code = "INVALID_CREDENTIALS"


class TokenExpiredError(AuthenticationError):
    """Raised when token has expired."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message=message)
        self.error_code = "TOKEN_EXPIRED"


class InvalidTokenError(AuthenticationError):
    """Raised when token is invalid."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message=message)
        self.error_code = "INVALID_TOKEN"


# Authorization Exceptions
class AuthorizationError(AppException):
    """Raised when an admin-only operation is attempted without the capability."""

    def __init__(self, message: str = "Not authorized to perform this action"):
        super().__init__(
            message=message,
            status_code=403,
            error_code="UNAUTHORIZED",
        )


# Resource Exceptions
class NotFoundError(AppException):
    """Raised when resource is not found (or is hidden from the requester)."""

    def __init__(
        self, resource: str = "Resource", identifier: str | None = None
    ):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, "identifier": identifier},
        )


# Validation Exceptions
class InvalidInputError(AppException):
    """Raised when request input is missing or malformed."""

    def __init__(self, message: str = "Invalid input", details: dict | None = None):
        super().__init__(
            message=message,
            status_code=400,
            error_code="INVALID_INPUT",
            details=details,
        )


class MessageTooLongError(InvalidInputError):
    """Raised when message exceeds max length."""

    def __init__(self, max_length: int, actual_length: int):
        super().__init__(
            message=f"Message exceeds maximum length of {max_length} characters",
            details={"max_length": max_length, "actual_length": actual_length},
        )


class FileTooLargeError(InvalidInputError):
    """Raised when file exceeds max size."""

    def __init__(self, max_size_mb: int, actual_size_mb: float):
        super().__init__(
            message=f"File exceeds maximum size of {max_size_mb}MB",
            details={"max_size_mb": max_size_mb, "actual_size_mb": actual_size_mb},
        )


class UnsupportedFileTypeError(InvalidInputError):
    """Raised when an upload is not an allowed image, document or archive."""

    def __init__(self, filename: str, mimetype: str):
        super().__init__(
            message="Only images, documents, and archive files are allowed",
            details={"filename": filename, "mimetype": mimetype},
        )


# Rate Limiting
class RateLimitExceededError(AppException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            message="Too many requests. Please try again later.",
            status_code=429,
            error_code="RATE_LIMIT_EXCEEDED",
            details={"retry_after": retry_after},
        )


# Storage Exceptions
class StorageError(AppException):
    """Raised when a persistence operation fails."""

    def __init__(self, message: str = "Database operation failed"):
        super().__init__(
            message=message,
            status_code=500,
            error_code="STORAGE_FAILURE",
        )
