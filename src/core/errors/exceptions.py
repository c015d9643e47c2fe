"""
Unified exception hierarchy for the gadget container runtime.

Provides typed exceptions with an error category so callers can tell
a rejected credential from a flaky network without string matching.
"""

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class ContainerError(Exception):
    """
    Base exception for all container runtime errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for handling decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class TransientError(ContainerError):
    """Base class for transient errors (timeouts, connection failures, 5xx)."""

    category = ErrorCategory.TRANSIENT


class PermanentError(ContainerError):
    """Base class for errors that will not change on retry."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid or missing configuration."""

    pass


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def is_client_error(status_code: int) -> bool:
    """True for 4xx responses; 5xx and transport failures never qualify."""
    return 400 <= status_code < 500


__all__ = [
    "ErrorCategory",
    "ContainerError",
    "TransientError",
    "PermanentError",
    "ConfigurationError",
    "classify_http_status",
    "is_client_error",
]
