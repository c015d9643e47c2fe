"""
aiohttp implementation of the HttpFetcher protocol.

Handles timeouts, connection pooling and SSL verification. Never retries:
the OAuth2 runtime decides what a failure means for held tokens.
"""

import logging
import time

import aiohttp

from core.http.exceptions import TransportError
from core.http.models import HttpRequest, HttpResponse
from core.security.sanitize import sanitize_url

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


def _flatten_headers(headers) -> dict[str, str]:
    """Single-valued header map; repeated headers are joined with ", "."""
    flat: dict[str, str] = {}
    for name, value in headers.items():
        flat[name] = f"{flat[name]}, {value}" if name in flat else value
    return flat


def create_session(
    max_connections: int = 100,
    max_connections_per_host: int = 10,
    enable_ssl: bool = True,
    timeout_total: float = DEFAULT_TIMEOUT_SECONDS,
    timeout_connect: float = 10,
) -> aiohttp.ClientSession:
    """
    Create aiohttp ClientSession with connection pooling and timeouts.

    Args:
        max_connections: Total connection pool size (default: 100)
        max_connections_per_host: Per-host connection limit (default: 10)
        enable_ssl: Enable SSL verification (default: True)
        timeout_total: Total timeout in seconds (default: 30)
        timeout_connect: Connection timeout in seconds (default: 10)

    Returns:
        Configured aiohttp.ClientSession

    Note:
        Caller is responsible for session lifecycle management.
    """
    connector = aiohttp.TCPConnector(
        limit=max_connections,
        limit_per_host=max_connections_per_host,
        ssl=enable_ssl,
        ttl_dns_cache=300,
    )

    timeout = aiohttp.ClientTimeout(total=timeout_total, connect=timeout_connect)

    return aiohttp.ClientSession(connector=connector, timeout=timeout)


class AiohttpFetcher:
    """
    HttpFetcher backed by a shared aiohttp.ClientSession.

    Usage:
        async with AiohttpFetcher(timeout=20) as fetcher:
            response = await fetcher.fetch(HttpRequest(uri="https://api.example.com/"))
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_connections: int = 100,
    ):
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._max_connections = max_connections

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = create_session(
                max_connections=self._max_connections, timeout_total=self._timeout
            )
            self._owns_session = True
        return self._session

    async def fetch(self, request: HttpRequest) -> HttpResponse:
        session = self._get_session()
        timeout = request.timeout or self._timeout
        start = time.perf_counter()

        try:
            async with session.request(
                request.method,
                request.uri,
                headers=request.headers,
                data=request.body or None,
                allow_redirects=request.follow_redirects,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                body = await response.read()
                result = HttpResponse(
                    status=response.status,
                    headers=_flatten_headers(response.headers),
                    body=body,
                )
        except TimeoutError as e:
            raise TransportError(
                f"Request timed out after {timeout}s",
                cause=e,
                context={"http_url": sanitize_url(request.uri)},
            ) from e
        except aiohttp.ClientError as e:
            raise TransportError(
                f"Connection error: {e}",
                cause=e,
                context={"http_url": sanitize_url(request.uri)},
            ) from e

        logger.debug(
            f"{request.method} {sanitize_url(request.uri)} -> {result.status}",
            extra={
                "http_method": request.method,
                "http_url": request.uri,
                "http_status": result.status,
                "duration_ms": (time.perf_counter() - start) * 1000,
            },
        )
        return result

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = [
    "AiohttpFetcher",
    "create_session",
]
