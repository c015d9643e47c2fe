"""Tests for token endpoint response handling."""

import json

import pytest

from core.http.models import HttpResponse
from gadgets.oauth2.cache import InMemoryCache
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.exceptions import OAuth2PersistenceError
from gadgets.oauth2.handlers import TokenAuthorizationResponseHandler
from gadgets.oauth2.handlers.token_response import parse_token_response
from gadgets.oauth2.models import TokenType
from gadgets.oauth2.persistence import InMemoryPersister
from gadgets.oauth2.store import OAuth2Store

GADGET_URI = "https://g.example/gadget.xml"


def json_response(payload, status=200):
    return HttpResponse(
        status=status,
        headers={"Content-Type": "application/json; charset=UTF-8"},
        body=json.dumps(payload).encode("utf-8"),
    )


@pytest.fixture
def handler(store):
    return TokenAuthorizationResponseHandler(store, clock=lambda: 5000)


class TestParseTokenResponse:
    """Tests for parse_token_response."""

    def test_json(self):
        """Should parse a JSON body."""
        message = parse_token_response(json_response({"access_token": "A", "expires_in": 30}))
        assert message.access_token == "A"
        assert message.expires_in == 30

    def test_text_plain(self):
        """Should parse a form encoded text/plain body."""
        response = HttpResponse(
            headers={"Content-Type": "text/plain"}, body=b"access_token=A&token_type=bearer"
        )
        message = parse_token_response(response)
        assert message.access_token == "A"
        assert message.token_type == "bearer"

    def test_text_plain_with_url_values(self):
        """Should keep the token when other values are URLs."""
        response = HttpResponse(
            headers={"Content-Type": "text/plain"},
            body=b"access_token=abc&token_type=Bearer&profile=https://p.example/me",
        )
        message = parse_token_response(response)
        assert message.access_token == "abc"
        assert message.get("profile") == "https://p.example/me"

    def test_unhandled_content_type(self):
        """Should return None for other content types."""
        response = HttpResponse(headers={"Content-Type": "text/html"}, body=b"<html/>")
        assert parse_token_response(response) is None


class TestTokenAuthorizationResponseHandler:
    """Tests for TokenAuthorizationResponseHandler."""

    def test_stores_access_and_refresh_tokens(self, handler, accessor, store):
        """Should store both tokens and attach them to the accessor."""
        response = json_response(
            {"access_token": "A", "refresh_token": "R", "expires_in": 60, "foo": "bar"}
        )

        assert handler.handle_response(accessor, response) is None

        access = store.get_token(GADGET_URI, "photos", "u1", "", TokenType.ACCESS)
        assert access.secret == b"A"
        assert access.token_type == "Bearer"
        assert access.issued_at == 5000
        assert access.expires_at == 5060
        assert access.properties == {"foo": "bar"}
        assert accessor.access_token is access
        assert store.get_token(GADGET_URI, "photos", "u1", "", TokenType.REFRESH).secret == b"R"
        assert accessor.refresh_token.secret == b"R"

    def test_no_expiry(self, handler, accessor, store):
        """Should store a non-expiring token when expires_in is absent."""
        handler.handle_response(accessor, json_response({"access_token": "A"}))

        access = store.get_token(GADGET_URI, "photos", "u1", "", TokenType.ACCESS)
        assert access.expires_at == 0
        assert store.get_token(GADGET_URI, "photos", "u1", "", TokenType.REFRESH) is None

    def test_infinite_expiry_ignored(self, handler, accessor, store):
        """Should store a non-expiring token when expires_in is infinite."""
        response = json_response({"access_token": "A", "expires_in": float("inf")})

        assert handler.handle_response(accessor, response) is None

        access = store.get_token(GADGET_URI, "photos", "u1", "", TokenType.ACCESS)
        assert access.secret == b"A"
        assert access.expires_at == 0

    def test_mac_token(self, handler, accessor):
        """Should keep MAC parameters from the response."""
        response = json_response(
            {"access_token": "id", "token_type": "mac", "mac_key": "k", "mac_algorithm": "hmac-sha-1"}
        )
        handler.handle_response(accessor, response)

        assert accessor.access_token.token_type == "mac"
        assert accessor.access_token.mac_secret == b"k"
        assert accessor.access_token.mac_algorithm == "hmac-sha-1"

    def test_shared_token_user(self, handler, accessor, store):
        """Should store shared tokens under the empty user."""
        accessor.shared_token = True
        handler.handle_response(accessor, json_response({"access_token": "A"}))

        assert store.get_token(GADGET_URI, "photos", "", "", TokenType.ACCESS).secret == b"A"
        assert store.get_token(GADGET_URI, "photos", "u1", "", TokenType.ACCESS) is None

    def test_non_200(self, handler, accessor):
        """Should refuse error status codes."""
        error = handler.handle_response(accessor, json_response({"access_token": "A"}, status=500))
        assert error.error is OAuth2Error.TOKEN_RESPONSE_PROBLEM
        assert error.context_message == "can't handle error response code 500"

    def test_provider_error(self, handler, accessor):
        """Should map a provider error carried in a 200 body."""
        error = handler.handle_response(
            accessor,
            json_response({"error": "invalid_client", "error_description": "bad secret"}),
        )
        assert error.error is OAuth2Error.INVALID_CLIENT
        assert error.description == "bad secret"

    def test_unparsable_json(self, handler, accessor):
        """Should report unknown_problem for a body that is not JSON."""
        response = HttpResponse(headers={"Content-Type": "application/json"}, body=b"{nope")
        assert handler.handle_response(accessor, response).error is OAuth2Error.UNKNOWN_PROBLEM

    def test_unhandled_content_type(self, handler, accessor):
        """Should report the content type it can not parse."""
        response = HttpResponse(headers={"Content-Type": "text/html"}, body=b"<html/>")
        error = handler.handle_response(accessor, response)
        assert error.context_message == "Unhandled Content-Type text/html"

    def test_missing_access_token(self, handler, accessor):
        """Should report a response without access_token."""
        error = handler.handle_response(accessor, json_response({"token_type": "Bearer"}))
        assert error.context_message == "no access_token in response"

    def test_invalid_accessor(self, handler, accessor):
        """Should not handle responses for an accessor in error."""
        accessor.set_error_response(OAuth2HandlerError(OAuth2Error.ACCESS_DENIED, "denied"))
        response = json_response({"access_token": "A"})
        assert not handler.handles_response(accessor, response)
        assert handler.handle_response(accessor, response).context_message == "accessor is invalid"

    def test_store_failure(self, code_client, authority, state_crypter, gadget_uri):
        """Should report a token response problem when the token can not be stored."""

        class ReadOnlyPersister(InMemoryPersister):
            def insert_token(self, token):
                raise OAuth2PersistenceError("read only")

        store = OAuth2Store(
            InMemoryCache(),
            ReadOnlyPersister(clients=[code_client]),
            authority=authority,
            state_crypter=state_crypter,
        )
        store.init()
        accessor = store.get_oauth2_accessor(gadget_uri, "photos", "u1", "").copy()

        error = TokenAuthorizationResponseHandler(store).handle_response(
            accessor, json_response({"access_token": "A"})
        )

        assert error.error is OAuth2Error.TOKEN_RESPONSE_PROBLEM
        assert error.context_message == "exception thrown handling authorization response"
        assert accessor.access_token is None
