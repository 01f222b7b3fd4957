"""
Application Exceptions

Domain-specific exceptions surfaced to the HTTP layer.
Each exception carries the status code and error code it maps to.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """Base exception for errors that become structured JSON responses."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        if error_code:
            self.error_code = error_code
        if status_code:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class StoreConnectionError(AppException, ConnectionError):
    """Raised when a backing store stays unreachable after the retry ceiling."""

    status_code = 503
    error_code = "STORE_CONNECTION_ERROR"

    def __init__(
        self,
        message: str = "Store connection failed",
        store: Optional[str] = None,
        attempts: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        details: Dict[str, Any] = {}
        if store:
            details["store"] = store
        if attempts is not None:
            details["attempts"] = attempts
        if original_error:
            details["original_error"] = str(original_error)
            details["original_error_type"] = type(original_error).__name__

        super().__init__(message=message, details=details)
        if original_error:
            self.__cause__ = original_error


class ValidationError(AppException):
    """Raised when a request is missing required fields."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class RateLimitExceeded(AppException):
    """Raised when a client exceeds the ceiling of a limiter scope."""

    status_code = 429
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str,
        scope: str,
        client_id: str,
        retry_after: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.scope = scope
        self.client_id = client_id
        self.retry_after = retry_after
        self.headers = dict(headers or {})
        super().__init__(
            message=message,
            details={"scope": scope, "retry_after": retry_after},
        )


class InternalError(AppException):
    """Raised for handler faults that should surface as a plain 500."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
