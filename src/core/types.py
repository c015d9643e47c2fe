"""
Core types shared across modules.

Keeps the error classification enum in one canonical place so that
comparisons between categories raised from different packages hold.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Categories:
        TRANSIENT: Temporary failures such as transport timeouts or 5xx
                   responses. Tokens are kept; the caller may try again.
        AUTH: Credential rejected by the remote side (401, invalid_grant).
              Held tokens must not be reused.
        PERMANENT: Failures that will not change on retry (4xx other than
                   401, malformed configuration, missing registrations).
        UNKNOWN: Unclassified errors.
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
