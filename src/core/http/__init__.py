"""
HTTP transport abstraction.

Provides:
- HttpRequest / HttpResponse value types
- HttpFetcher protocol
- AiohttpFetcher default implementation
- TransportError for requests that produced no response
"""

from core.http.client import AiohttpFetcher, create_session
from core.http.exceptions import TransportError
from core.http.models import (
    FORM_CONTENT_TYPE,
    HttpFetcher,
    HttpRequest,
    HttpResponse,
    build_url,
)

__all__ = [
    "AiohttpFetcher",
    "create_session",
    "TransportError",
    "FORM_CONTENT_TYPE",
    "build_url",
    "HttpFetcher",
    "HttpRequest",
    "HttpResponse",
]
