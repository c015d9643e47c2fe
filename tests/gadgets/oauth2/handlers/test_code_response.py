"""Tests for authorization code callback handling."""

import json
from urllib.parse import parse_qs

import pytest

from core.http.models import HttpResponse
from gadgets.oauth2.errors import OAuth2Error
from gadgets.oauth2.handlers import (
    CodeAuthorizationResponseHandler,
    TokenAuthorizationResponseHandler,
)
from gadgets.oauth2.models import TokenType

GADGET_URI = "https://g.example/gadget.xml"


def json_response(payload, status=200):
    return HttpResponse(
        status=status,
        headers={"Content-Type": "application/json"},
        body=json.dumps(payload).encode("utf-8"),
    )


@pytest.fixture
def redirecting(accessor):
    accessor.redirecting = True
    return accessor


@pytest.fixture
def handler(fetcher, client_auth, store):
    return CodeAuthorizationResponseHandler(
        fetcher, client_auth, [TokenAuthorizationResponseHandler(store)]
    )


class TestHandlesRequest:
    """Tests for handles_request."""

    def test_redirecting_code_accessor(self, handler, redirecting):
        """Should handle callbacks for a code accessor waiting on a redirect."""
        assert handler.handles_request(redirecting, {"code": "abc"})

    def test_not_redirecting(self, handler, accessor):
        """Should ignore accessors that never started a redirect."""
        assert not handler.handles_request(accessor, {"code": "abc"})

    def test_other_grant(self, handler, redirecting):
        """Should ignore other grant types."""
        redirecting.grant_type = "client_credentials"
        assert not handler.handles_request(redirecting, {"code": "abc"})

    def test_never_handles_backend_responses(self, handler, redirecting):
        """Should leave backend responses to other handlers."""
        assert not handler.handles_response(redirecting, json_response({}))


class TestHandleRequest:
    """Tests for the code exchange."""

    @pytest.mark.asyncio
    async def test_exchange(self, handler, redirecting, fetcher, store):
        """Should exchange the code and store the token."""
        redirecting.additional_request_params = {"resource": "photos"}
        fetcher.add(json_response({"access_token": "A"}))

        assert await handler.handle_request(redirecting, {"code": "abc"}) is None

        sent = fetcher.requests[0]
        assert parse_qs(sent.body_text)["resource"] == ["photos"]
        assert parse_qs(sent.body_text)["code"] == ["abc"]
        assert store.get_token(GADGET_URI, "photos", "u1", "", TokenType.ACCESS).secret == b"A"

    @pytest.mark.asyncio
    async def test_standard_client_auth(self, handler, redirecting, fetcher):
        """Should send client credentials in the body for STANDARD clients."""
        redirecting.client_authentication_type = "standard"
        fetcher.add(json_response({"access_token": "A"}))

        await handler.handle_request(redirecting, {"code": "abc"})

        sent = fetcher.requests[0]
        assert sent.get_header("Authorization") is None
        assert parse_qs(sent.body_text)["client_secret"] == ["csecret"]

    @pytest.mark.asyncio
    async def test_provider_error(self, handler, redirecting, fetcher):
        """Should return the provider's error without calling the token endpoint."""
        error = await handler.handle_request(
            redirecting, {"error": "access_denied", "error_uri": "https://provider.example/why"}
        )

        assert error.error is OAuth2Error.ACCESS_DENIED
        assert error.uri == "https://provider.example/why"
        assert fetcher.requests == []

    @pytest.mark.asyncio
    async def test_missing_code(self, handler, redirecting):
        """Should report a callback without a code."""
        error = await handler.handle_request(redirecting, {"state": "s"})
        assert error.error is OAuth2Error.AUTHORIZATION_CODE_PROBLEM
        assert error.context_message == "authorization code is missing"

    @pytest.mark.asyncio
    async def test_domain_not_allowed(self, handler, redirecting, fetcher):
        """Should not send the code outside allowed_domains."""
        redirecting.allowed_domains = ["elsewhere.example"]

        error = await handler.handle_request(redirecting, {"code": "abc"})

        assert "domain not allowed" in error.context_message
        assert fetcher.requests == []

    @pytest.mark.asyncio
    async def test_token_endpoint_json_error(self, handler, redirecting, fetcher):
        """Should map an error body on a non-200 response."""
        fetcher.add(json_response({"error": "invalid_grant"}, status=400))

        error = await handler.handle_request(redirecting, {"code": "abc"})

        assert error.error is OAuth2Error.INVALID_GRANT

    @pytest.mark.asyncio
    async def test_token_endpoint_plain_error(self, handler, redirecting, fetcher):
        """Should fall through to the token handler for non-JSON errors."""
        fetcher.add(HttpResponse(status=502, body=b"bad gateway"))

        error = await handler.handle_request(redirecting, {"code": "abc"})

        assert error.error is OAuth2Error.TOKEN_RESPONSE_PROBLEM

    @pytest.mark.asyncio
    async def test_transport_error(self, handler, redirecting, fetcher, transport_error):
        """Should report a failed exchange."""
        fetcher.add(transport_error)

        error = await handler.handle_request(redirecting, {"code": "abc"})

        assert error.error is OAuth2Error.AUTHORIZATION_CODE_PROBLEM
        assert isinstance(error.cause, type(transport_error))

    @pytest.mark.asyncio
    async def test_backend_response_rejected(self, handler, redirecting):
        """Should refuse to handle a backend response."""
        error = await handler.handle_response(redirecting, json_response({}))
        assert error.error is OAuth2Error.AUTHORIZATION_CODE_PROBLEM
