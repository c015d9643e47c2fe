"""
Core library: reusable, infrastructure-agnostic components.

Modules:
    errors      - Error classification and exception hierarchy
    http        - HTTP request/response types, fetcher protocol, aiohttp fetcher
    logging     - Structured JSON logging with request correlation
    security    - Domain allowlists and credential redaction
    utils       - JSON serialization helpers

Design Principles:
    - No knowledge of gadgets or OAuth2
    - All modules are independently testable
    - Async-first where applicable
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
