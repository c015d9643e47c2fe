"""
HTTP request/response value types and the fetcher protocol.

These are the only HTTP shapes the OAuth2 runtime sees, so any transport
(aiohttp, a container's own fetcher, a test double) can be plugged in.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

DEFAULT_CONTENT_TYPE = "application/octet-stream"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"


def _find_header(headers: dict[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


@dataclass
class HttpRequest:
    """
    Outbound HTTP request.

    security_context and oauth2_arguments are attached by the container
    for requests that are signed on behalf of a gadget; gadget_uri names
    the gadget the request is made for.
    """

    uri: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    follow_redirects: bool = True
    timeout: float | None = None
    gadget_uri: str | None = None
    security_context: Any = None
    oauth2_arguments: Any = None

    def get_header(self, name: str) -> str | None:
        return _find_header(self.headers, name)

    def set_header(self, name: str, value: str) -> None:
        for key in list(self.headers):
            if key.lower() == name.lower():
                del self.headers[key]
        self.headers[name] = value

    def add_header(self, name: str, value: str) -> None:
        existing = self.get_header(name)
        self.set_header(name, f"{existing}, {value}" if existing else value)

    def add_query_params(self, params: dict[str, str]) -> None:
        """Append params to the query string, keeping existing ones."""
        if not params:
            return
        self.uri = build_url(self.uri, params)

    def set_form_body(self, params: dict[str, str]) -> None:
        self.set_header("Content-Type", FORM_CONTENT_TYPE)
        self.body = urlencode({k: v for k, v in params.items() if v is not None}).encode("utf-8")

    def add_form_params(self, params: dict[str, str]) -> None:
        """Merge params into a form-encoded body."""
        pairs = parse_qsl(self.body_text, keep_blank_values=True) if self.body else []
        pairs.extend((k, v) for k, v in params.items() if v is not None)
        self.set_header("Content-Type", FORM_CONTENT_TYPE)
        self.body = urlencode(pairs).encode("utf-8")

    @property
    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        return self.get_header("Content-Type") or DEFAULT_CONTENT_TYPE


@dataclass
class HttpResponse:
    """
    HTTP response returned by a fetcher and handed back to the container.

    metadata carries side-band values (e.g. an authorization URL) that the
    container renders alongside or instead of the body. strict_no_cache
    marks responses that must never be cached by any layer.
    """

    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    metadata: dict[str, str] = field(default_factory=dict)
    strict_no_cache: bool = False

    SC_OK = 200
    SC_BAD_REQUEST = 400
    SC_UNAUTHORIZED = 401
    SC_FORBIDDEN = 403
    SC_NOT_FOUND = 404
    SC_INTERNAL_SERVER_ERROR = 500

    @classmethod
    def error(cls, status: int = 500) -> "HttpResponse":
        return cls(status=status, strict_no_cache=True)

    def get_header(self, name: str) -> str | None:
        return _find_header(self.headers, name)

    def set_header(self, name: str, value: str) -> None:
        for key in list(self.headers):
            if key.lower() == name.lower():
                del self.headers[key]
        self.headers[name] = value

    def set_metadata(self, key: str, value: str) -> None:
        self.metadata[key] = value

    def set_strict_no_cache(self) -> None:
        self.strict_no_cache = True
        self.set_header("Cache-Control", "no-cache, no-store")
        self.set_header("Pragma", "no-cache")

    @property
    def body_text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def content_type(self) -> str:
        """Media type without parameters, lower-cased ("" when absent)."""
        value = self.get_header("Content-Type") or ""
        return value.split(";", 1)[0].strip().lower()

    @property
    def is_error(self) -> bool:
        return self.status >= 400


def build_url(base: str, params: dict[str, str] | None) -> str:
    """
    Append params to base, keeping its existing query and fragment.

    >>> build_url("https://p.example/auth?x=1", {"state": "s"})
    'https://p.example/auth?x=1&state=s'
    """
    parsed = urlparse(base)
    pairs = parse_qsl(parsed.query, keep_blank_values=True)
    if params:
        pairs.extend((k, v) for k, v in params.items() if v is not None)
    return urlunparse(parsed._replace(query=urlencode(pairs)))


class HttpFetcher(Protocol):
    """
    Transport used for every outbound call.

    Implementations must raise core.http.TransportError when no response
    was received (including timeouts) and return any response that was,
    whatever its status.
    """

    async def fetch(self, request: HttpRequest) -> HttpResponse:
        ...


__all__ = [
    "FORM_CONTENT_TYPE",
    "build_url",
    "HttpRequest",
    "HttpResponse",
    "HttpFetcher",
]
