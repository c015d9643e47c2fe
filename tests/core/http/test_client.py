"""
Tests for core.http.client module.

Tests cover:
- Request mapping onto the aiohttp session
- Error statuses returned, not raised
- Timeouts and connection errors as TransportError
- Session ownership
"""

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from core.errors.exceptions import ErrorCategory
from core.http.client import AiohttpFetcher, create_session
from core.http.exceptions import TransportError
from core.http.models import HttpRequest


def _mock_session(status=200, body=b"", headers=None):
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.headers = headers or {}
    mock_response.read = AsyncMock(return_value=body)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    mock_session.closed = False
    mock_session.request = MagicMock(return_value=mock_response)
    return mock_session


class TestAiohttpFetcher:
    """Tests for AiohttpFetcher.fetch."""

    @pytest.mark.asyncio
    async def test_successful_fetch(self):
        """Test a request is sent with its method, headers and body."""
        session = _mock_session(
            body=b'{"access_token": "A"}', headers={"Content-Type": "application/json"}
        )
        fetcher = AiohttpFetcher(session=session, timeout=10)
        request = HttpRequest(uri="https://provider.example/token", method="POST")
        request.set_form_body({"grant_type": "client_credentials"})

        response = await fetcher.fetch(request)

        assert response.status == 200
        assert response.body == b'{"access_token": "A"}'
        assert response.content_type == "application/json"

        args, kwargs = session.request.call_args
        assert args == ("POST", "https://provider.example/token")
        assert kwargs["data"] == b"grant_type=client_credentials"
        assert kwargs["headers"]["Content-Type"].startswith("application/x-www-form-urlencoded")
        assert kwargs["allow_redirects"] is True
        assert kwargs["timeout"].total == 10

    @pytest.mark.asyncio
    async def test_repeated_headers_joined(self):
        """Test repeated response headers are kept, joined with commas."""
        headers = MagicMock()
        headers.items.return_value = [
            ("Set-Cookie", "a=1"),
            ("Content-Type", "text/plain"),
            ("Set-Cookie", "b=2"),
        ]
        session = _mock_session(headers=headers)

        fetcher = AiohttpFetcher(session=session)
        response = await fetcher.fetch(HttpRequest(uri="https://api.example/"))

        assert response.headers == {"Set-Cookie": "a=1, b=2", "Content-Type": "text/plain"}

    @pytest.mark.asyncio
    async def test_empty_body_sent_as_none(self):
        session = _mock_session()
        await AiohttpFetcher(session=session).fetch(HttpRequest(uri="https://api.example/"))
        assert session.request.call_args.kwargs["data"] is None

    @pytest.mark.asyncio
    async def test_request_timeout_overrides_default(self):
        session = _mock_session()
        await AiohttpFetcher(session=session, timeout=30).fetch(
            HttpRequest(uri="https://api.example/", timeout=2, follow_redirects=False)
        )
        kwargs = session.request.call_args.kwargs
        assert kwargs["timeout"].total == 2
        assert kwargs["allow_redirects"] is False

    @pytest.mark.asyncio
    async def test_error_status_returned(self):
        """Test 4xx/5xx responses are returned for the caller to interpret."""
        session = _mock_session(status=401, body=b"unauthorized")
        response = await AiohttpFetcher(session=session).fetch(HttpRequest(uri="https://api.example/"))

        assert response.status == 401
        assert response.is_error

    @pytest.mark.asyncio
    async def test_timeout(self):
        """Test a timeout is raised as a transient TransportError."""
        session = _mock_session()
        session.request = MagicMock(side_effect=TimeoutError())

        with pytest.raises(TransportError) as exc_info:
            await AiohttpFetcher(session=session, timeout=5).fetch(
                HttpRequest(uri="https://api.example/p?access_token=secret")
            )

        assert "timed out after 5" in str(exc_info.value)
        assert exc_info.value.category == ErrorCategory.TRANSIENT
        assert "secret" not in exc_info.value.context["http_url"]

    @pytest.mark.asyncio
    async def test_connection_error(self):
        session = _mock_session()
        session.request = MagicMock(side_effect=aiohttp.ClientConnectionError("Connection refused"))

        with pytest.raises(TransportError, match="Connection error"):
            await AiohttpFetcher(session=session).fetch(HttpRequest(uri="https://api.example/"))

    @pytest.mark.asyncio
    async def test_supplied_session_not_closed(self):
        session = _mock_session()
        fetcher = AiohttpFetcher(session=session)

        await fetcher.close()

        session.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_owned_session_closed(self):
        """Test the fetcher closes the session it created."""
        async with AiohttpFetcher(timeout=5) as fetcher:
            session = fetcher._get_session()
            assert isinstance(session, aiohttp.ClientSession)
        assert session.closed
        assert fetcher._session is None


class TestCreateSession:

    @pytest.mark.asyncio
    async def test_configured_limits(self):
        session = create_session(max_connections=20, max_connections_per_host=5, timeout_total=12)
        try:
            assert session.connector.limit == 20
            assert session.connector.limit_per_host == 5
            assert session.timeout.total == 12
        finally:
            await session.close()
