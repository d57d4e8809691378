"""
Shared error handling for the data-access layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error payload handed to consumers and reporters."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class DataAccessException(Exception):
    """Base exception for the data-access layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class RetryExhaustedError(DataAccessException):
    """Raised when every attempt of a retried operation has failed."""

    def __init__(self, message: str, last_exception: BaseException, attempts: int,
                 details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("attempts", attempts)
        details.setdefault("last_error", str(last_exception))
        details.setdefault("last_error_type", type(last_exception).__name__)
        super().__init__("RETRY_EXHAUSTED", message, details)
        self.last_exception = last_exception
        self.attempts = attempts


class ConfigurationError(DataAccessException):
    """Invalid options passed to a component."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class ReportingError(DataAccessException):
    """Error reporter transport failures."""

    def __init__(self, message: str = "Error reporting failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("REPORTING_ERROR", message, details)


def error_message(exc: BaseException, default: str = "An error occurred") -> str:
    """Human readable message for an exception, unwrapping retry exhaustion."""
    if isinstance(exc, RetryExhaustedError):
        exc = exc.last_exception
    if isinstance(exc, DataAccessException):
        return exc.message or default
    return str(exc) or default
