"""
Application error taxonomy.

Every expected failure is raised as an AppError subclass carrying its HTTP
status. The handlers registered in app.main turn them into the uniform
{"error": ..., "status": ...} response body.
"""

from typing import Any, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500
    error_type: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self, debug: bool = False) -> dict:
        body = {"error": self.message, "status": self.status_code}
        if debug:
            body["type"] = self.error_type
            if self.details is not None:
                body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400
    error_type = "VALIDATION_ERROR"
    default_message = "Invalid data"


class InvalidTokenError(ValidationError):
    """Magic link token did not match, was already used, or has expired."""
    default_message = "Magic link invalid or expired"


class AuthenticationError(AppError):
    status_code = 401
    error_type = "AUTHENTICATION_ERROR"
    default_message = "Access token required"


class AuthorizationError(AppError):
    status_code = 403
    error_type = "AUTHORIZATION_ERROR"
    default_message = "Invalid token"


class NotFoundError(AppError):
    status_code = 404
    error_type = "NOT_FOUND_ERROR"
    default_message = "User not found"


class ConflictError(AppError):
    status_code = 409
    error_type = "CONFLICT_ERROR"
    default_message = "Resource conflict"


class RateLimitError(AppError):
    status_code = 429
    error_type = "RATE_LIMIT_ERROR"
    default_message = "Too many requests, try again later"

    def __init__(self, message: Optional[str] = None, retry_after: int = 900):
        super().__init__(message)
        self.retry_after = retry_after


class ExternalServiceError(AppError):
    status_code = 502
    error_type = "EXTERNAL_API_ERROR"
    default_message = "External service failure"

    def __init__(self, message: Optional[str] = None, service: str = "external API"):
        super().__init__(f"{service}: {message or self.default_message}")
        self.service = service


class InternalError(AppError):
    status_code = 500
    error_type = "INTERNAL_ERROR"
    default_message = "Internal server error"
