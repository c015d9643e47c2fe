"""Tests for client authentication handlers."""

import base64
from urllib.parse import parse_qs, urlparse

import pytest

from core.http.models import HttpRequest
from gadgets.oauth2.errors import OAuth2Error
from gadgets.oauth2.handlers import (
    BasicAuthenticationHandler,
    StandardAuthenticationHandler,
    apply_client_authentication,
)

TOKEN_URL = "https://provider.example/token"


@pytest.fixture
def post():
    request = HttpRequest(uri=TOKEN_URL, method="POST")
    request.set_form_body({"grant_type": "client_credentials"})
    return request


class TestBasicAuthentication:
    """Tests for BasicAuthenticationHandler."""

    def test_header(self, accessor, post):
        """Should send base64(client_id:client_secret) and leave the body alone."""
        assert BasicAuthenticationHandler().add_oauth2_authentication(post, accessor) is None

        expected = base64.b64encode(b"cid:csecret").decode("ascii")
        assert post.get_header("Authorization") == f"Basic {expected}"
        assert parse_qs(post.body_text) == {"grant_type": ["client_credentials"]}

    def test_empty_secret(self, accessor, post):
        """Should refuse to authenticate without a secret."""
        accessor.client_secret = b""
        error = BasicAuthenticationHandler().add_oauth2_authentication(post, accessor)
        assert error.error is OAuth2Error.AUTHENTICATION_PROBLEM
        assert post.get_header("Authorization") is None

    def test_invalid_accessor(self, accessor, post):
        """Should refuse an invalidated accessor."""
        accessor.invalidate()
        error = BasicAuthenticationHandler().add_oauth2_authentication(post, accessor)
        assert error.context_message == "accessor is invalid"

    def test_null_request(self, accessor):
        """Should report a missing request."""
        error = BasicAuthenticationHandler().add_oauth2_authentication(None, accessor)
        assert error.context_message == "request is null"


class TestStandardAuthentication:
    """Tests for StandardAuthenticationHandler."""

    def test_form_params(self, accessor, post):
        """Should add the credentials to a POST body."""
        StandardAuthenticationHandler().add_oauth2_authentication(post, accessor)

        assert parse_qs(post.body_text) == {
            "grant_type": ["client_credentials"],
            "client_id": ["cid"],
            "client_secret": ["csecret"],
        }
        assert post.get_header("Authorization") is None

    def test_query_params_on_get(self, accessor):
        """Should add the credentials to the query of a GET."""
        request = HttpRequest(uri=f"{TOKEN_URL}?a=1")
        StandardAuthenticationHandler().add_oauth2_authentication(request, accessor)

        query = parse_qs(urlparse(request.uri).query)
        assert query == {"a": ["1"], "client_id": ["cid"], "client_secret": ["csecret"]}


class TestApplyClientAuthentication:
    """Tests for apply_client_authentication."""

    def test_dispatch_case_insensitive(self, accessor, post, client_auth):
        """Should find the handler whatever the configured case."""
        accessor.client_authentication_type = "basic"
        assert apply_client_authentication(post, accessor, client_auth) is None
        assert post.get_header("Authorization").startswith("Basic ")

    def test_none_sends_client_id_only(self, accessor, post, client_auth):
        """Should only identify the client when authentication is NONE."""
        accessor.client_authentication_type = "NONE"
        assert apply_client_authentication(post, accessor, client_auth) is None
        assert parse_qs(post.body_text)["client_id"] == ["cid"]
        assert "client_secret" not in parse_qs(post.body_text)
        assert post.get_header("Authorization") is None

    def test_unknown_type(self, accessor, post, client_auth):
        """Should report the given error kind for an unknown type."""
        accessor.client_authentication_type = "jwt"
        error = apply_client_authentication(
            post, accessor, client_auth, OAuth2Error.REFRESH_TOKEN_PROBLEM
        )
        assert error.error is OAuth2Error.REFRESH_TOKEN_PROBLEM
        assert error.context_message == "no clientAuthenticationHandler found for jwt"
