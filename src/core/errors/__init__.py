"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- ContainerError hierarchy for typed exceptions
- HTTP status classification
"""

from core.errors.exceptions import (
    ConfigurationError,
    # Base classes
    ContainerError,
    # Enums
    ErrorCategory,
    PermanentError,
    TransientError,
    # Classification utilities
    classify_http_status,
    is_client_error,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "ContainerError",
    "TransientError",
    "PermanentError",
    "ConfigurationError",
    # Classification utilities
    "classify_http_status",
    "is_client_error",
]
