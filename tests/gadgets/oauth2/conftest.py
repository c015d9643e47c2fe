"""Shared fixtures for the OAuth2 runtime tests."""

import pytest

from core.http.models import HttpRequest
from gadgets.oauth2.cache import InMemoryCache
from gadgets.oauth2.context import Authority, OAuth2Arguments, SecurityContext
from gadgets.oauth2.encryption import FernetBlobCrypter
from gadgets.oauth2.factory import create_handlers
from gadgets.oauth2.models import OAuth2Client, OAuth2Token, TokenType
from gadgets.oauth2.persistence import InMemoryPersister
from gadgets.oauth2.request import OAuth2FetcherConfig, OAuth2RequestFactory
from gadgets.oauth2.store import OAuth2Store
from gadgets.oauth2.token_store import GadgetOAuth2TokenStore, OAuth2SpecInfo, StaticSpecLookup

GADGET_URI = "https://g.example/gadget.xml"
SERVICE = "photos"
AUTHORIZATION_URL = "https://provider.example/authorize"
TOKEN_URL = "https://provider.example/token"
RESOURCE_URL = "https://api.example/photos"


@pytest.fixture
def gadget_uri():
    return GADGET_URI


@pytest.fixture
def authority():
    return Authority(scheme="https", host="container.example", context_root="/gadgets")


@pytest.fixture
def code_client():
    """Authorization code client using HTTP Basic client authentication."""
    return OAuth2Client(
        gadget_uri=GADGET_URI,
        service_name=SERVICE,
        client_id="cid",
        client_secret=b"csecret",
        authorization_url=AUTHORIZATION_URL,
        token_url=TOKEN_URL,
        client_authentication_type="Basic",
        grant_type="code",
        redirect_uri="%origin%%contextRoot%/oauth2callback",
    )


@pytest.fixture
def state_crypter():
    return FernetBlobCrypter()


@pytest.fixture
def persister(code_client):
    return InMemoryPersister(clients=[code_client])


@pytest.fixture
def store(persister, authority, state_crypter):
    store = OAuth2Store(
        InMemoryCache(),
        persister,
        global_redirect_uri="/gadgets/oauth2callback",
        authority=authority,
        state_crypter=state_crypter,
    )
    store.init()
    return store


@pytest.fixture
def spec_lookup():
    return StaticSpecLookup(
        {(GADGET_URI, SERVICE): OAuth2SpecInfo(authorization_url=None, token_url=None, scope="")}
    )


@pytest.fixture
def token_store(store, spec_lookup):
    return GadgetOAuth2TokenStore(store, spec_lookup)


@pytest.fixture
def handlers(store, fetcher):
    return create_handlers(store, fetcher)


@pytest.fixture
def fetcher_config(token_store):
    return OAuth2FetcherConfig(token_store=token_store)


@pytest.fixture
def request_factory(fetcher_config, fetcher, handlers):
    return OAuth2RequestFactory(fetcher_config, fetcher, handlers)


@pytest.fixture
def security_context():
    return SecurityContext(owner_id="u1", viewer_id="u1")


@pytest.fixture
def make_request(security_context):
    """Signed-fetch request for the photos service."""

    def _make(uri=RESOURCE_URL, service_name=SERVICE, scope=None, context=security_context, **kwargs):
        return HttpRequest(
            uri=uri,
            gadget_uri=GADGET_URI,
            security_context=context,
            oauth2_arguments=OAuth2Arguments(service_name=service_name, scope=scope),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_token():
    """Token for the photos service of user u1."""

    def _make(kind=TokenType.ACCESS, secret=b"tok", user="u1", **kwargs):
        return OAuth2Token(
            gadget_uri=GADGET_URI,
            service_name=SERVICE,
            user=user,
            scope="",
            type=kind,
            secret=secret,
            **kwargs,
        )

    return _make
