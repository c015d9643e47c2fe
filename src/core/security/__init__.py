"""
Security helpers.

Provides:
    - is_uri_allowed(): per-client domain allowlist check before sending credentials
    - sanitize_url() / sanitize_headers() / sanitize_body(): redaction for logs and traces
    - sanitize_error_message(): redaction and truncation of exception text
"""

from core.security.sanitize import (
    REDACTED,
    sanitize_body,
    sanitize_error_message,
    sanitize_headers,
    sanitize_url,
)
from core.security.url_validation import (
    ALLOWED_SCHEMES,
    BLOCKED_HOSTS,
    get_host,
    is_uri_allowed,
)

__all__ = [
    # URL validation
    "is_uri_allowed",
    "get_host",
    "ALLOWED_SCHEMES",
    "BLOCKED_HOSTS",
    # Redaction
    "REDACTED",
    "sanitize_url",
    "sanitize_headers",
    "sanitize_body",
    "sanitize_error_message",
]
