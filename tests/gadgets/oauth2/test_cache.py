"""Tests for InMemoryCache."""

from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.cache import InMemoryCache
from gadgets.oauth2.models import ClientKey, TokenType


class TestInMemoryCache:
    """Tests for InMemoryCache."""

    def test_clients(self, code_client):
        """Should store, find and remove clients by key."""
        cache = InMemoryCache()
        cache.store_clients([code_client])

        assert cache.get_client(ClientKey(code_client.gadget_uri, "photos")) is code_client
        assert cache.remove_client(code_client.key) is code_client
        assert cache.remove_client(code_client.key) is None

    def test_tokens_by_type(self, make_token):
        """Should keep access and refresh tokens apart."""
        cache = InMemoryCache()
        access = make_token()
        refresh = make_token(kind=TokenType.REFRESH, secret=b"r")
        cache.store_tokens([access, refresh])

        assert cache.get_token(access.key) is access
        assert cache.get_token(refresh.key) is refresh

    def test_accessors(self, code_client):
        """Should replace an accessor stored under the same key."""
        cache = InMemoryCache()
        first = OAuth2Accessor.from_client(code_client, "u1", "")
        second = OAuth2Accessor.from_client(code_client, "u1", "")
        cache.store_accessor(first)
        cache.store_accessor(second)

        assert cache.get_accessor(first.key) is second
        assert cache.size()["accessors"] == 1

    def test_clear(self, code_client, make_token):
        """Should clear each entity type independently."""
        cache = InMemoryCache()
        cache.store_client(code_client)
        cache.store_token(make_token())
        cache.clear_tokens()

        assert cache.size() == {"clients": 1, "tokens": 0, "accessors": 0}
