"""Tests for runtime composition."""

import json
from urllib.parse import parse_qs, urlparse

import pytest
from cryptography.fernet import Fernet

from config.config import AuthorityConfig, OAuth2Config
from core.http.client import AiohttpFetcher
from core.http.models import HttpResponse
from gadgets.oauth2.callback_state import OAuth2CallbackState
from gadgets.oauth2.encryption import FernetBlobCrypter
from gadgets.oauth2.exceptions import OAuth2StoreError
from gadgets.oauth2.factory import authority_from_config, create_persister, create_runtime
from gadgets.oauth2.models import TokenType
from gadgets.oauth2.persistence import InMemoryPersister, JsonOAuth2Persister
from gadgets.oauth2.response_params import APPROVAL_URL
from gadgets.oauth2.token_store import OAuth2SpecInfo, StaticSpecLookup

JSON_GADGET = "https://container.example/gadgets/photos.xml"


def _document():
    return {
        "providers": {
            "photosApi": {
                "client_authentication": "STANDARD",
                "endpoints": {"tokenUrl": "https://provider.example/token"},
            }
        },
        "clients": {
            "photos_service": {
                "providerName": "photosApi",
                "client_id": "cid",
                "client_secret": "csecret",
                "grant_type": "client_credentials",
            }
        },
        "gadgetBindings": {
            "%origin%%contextRoot%/photos.xml": {"photos": {"clientName": "photos_service"}}
        },
    }


@pytest.fixture
def clients_file(tmp_path):
    path = tmp_path / "oauth2.json"
    path.write_text(json.dumps(_document()))
    return path


@pytest.fixture
def json_config(clients_file):
    return OAuth2Config(
        clients_file=str(clients_file),
        authority=AuthorityConfig(scheme="https", host="container.example", context_root="/gadgets"),
    )


@pytest.fixture
def json_spec_lookup():
    return StaticSpecLookup({(JSON_GADGET, "photos"): OAuth2SpecInfo()})


class TestCreatePersister:
    """Tests for create_persister."""

    def test_in_memory_without_clients_file(self):
        """Should fall back to an empty in-memory persister."""
        config = OAuth2Config()
        persister = create_persister(config, authority_from_config(config))
        assert isinstance(persister, InMemoryPersister)
        assert persister.load_clients() == []

    def test_json_document(self, json_config):
        """Should load clients with the authority substituted."""
        persister = create_persister(json_config, authority_from_config(json_config))

        assert isinstance(persister, JsonOAuth2Persister)
        (client,) = persister.load_clients()
        assert client.gadget_uri == JSON_GADGET
        assert client.client_authentication_type == "STANDARD"


class TestCreateRuntime:
    """Tests for create_runtime."""

    @pytest.mark.asyncio
    async def test_client_credentials_end_to_end(
        self, json_config, json_spec_lookup, fetcher, make_request, make_json_response
    ):
        """Should obtain a token and sign the fetch through the composed runtime."""
        fetcher.add(
            make_json_response({"access_token": "A", "expires_in": 60}),
            HttpResponse(status=200, body=b"photos"),
        )
        runtime = create_runtime(json_config, json_spec_lookup, fetcher=fetcher)

        request = make_request()
        request.gadget_uri = JSON_GADGET
        response = await runtime.fetch(request)

        assert response.status == 200
        assert response.body == b"photos"
        token_request, resource_request = fetcher.requests
        assert parse_qs(token_request.body_text)["client_secret"] == ["csecret"]
        assert resource_request.get_header("Authorization") == "Bearer A"
        assert runtime.store.get_token(JSON_GADGET, "photos", "u1", "", TokenType.ACCESS) is not None

        await runtime.close()

    @pytest.mark.asyncio
    async def test_supplied_persister(self, code_client, spec_lookup, fetcher, make_request):
        """Should use a supplied persister and send the user to the provider."""
        runtime = create_runtime(
            OAuth2Config(), spec_lookup, fetcher=fetcher, persister=InMemoryPersister([code_client])
        )

        response = await runtime.fetch(make_request())

        approval = parse_qs(urlparse(response.metadata[APPROVAL_URL]).query)
        assert approval["redirect_uri"] == ["http://localhost:8080/oauth2callback"]
        assert fetcher.requests == []
        assert not runtime.owns_fetcher

    def test_state_key_used(self, code_client, spec_lookup, fetcher):
        """Should seal callback state with the configured key."""
        key = Fernet.generate_key().decode()
        runtime = create_runtime(
            OAuth2Config(state_key=key),
            spec_lookup,
            fetcher=fetcher,
            persister=InMemoryPersister([code_client]),
        )
        accessor = runtime.store.get_oauth2_accessor(code_client.gadget_uri, "photos", "u1", "")

        state = OAuth2CallbackState.decode(FernetBlobCrypter(key), accessor.encrypted_state())

        assert state.accessor_key == accessor.key

    def test_import_from_config(self, json_config, json_spec_lookup, fetcher):
        """Should seed a supplied persister from the clients document."""
        json_config.import_from_config = True
        target = InMemoryPersister()

        runtime = create_runtime(json_config, json_spec_lookup, fetcher=fetcher, persister=target)

        assert len(target.load_clients()) == 1
        assert runtime.store.get_client(JSON_GADGET, "photos") is not None

    def test_bad_clients_file(self, tmp_path, spec_lookup, fetcher):
        """Should fail to start when the clients document is invalid."""
        path = tmp_path / "oauth2.json"
        path.write_text(json.dumps({"clients": {"c": {"providerName": "missing"}}}))

        with pytest.raises(OAuth2StoreError):
            create_runtime(OAuth2Config(clients_file=str(path)), spec_lookup, fetcher=fetcher)

    @pytest.mark.asyncio
    async def test_owns_default_fetcher(self, spec_lookup):
        """Should create and close its own aiohttp fetcher."""
        runtime = create_runtime(OAuth2Config(http_timeout_seconds=5), spec_lookup)

        assert isinstance(runtime.fetcher, AiohttpFetcher)
        assert runtime.owns_fetcher
        await runtime.close()
