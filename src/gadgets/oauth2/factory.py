"""
Composition of the OAuth2 runtime from configuration.

Usage:
    config = load_config()
    runtime = create_runtime(config, spec_lookup)
    try:
        response = await runtime.fetch(request)
    finally:
        await runtime.close()
"""

import logging
from dataclasses import dataclass

from config.config import OAuth2Config
from core.http.client import AiohttpFetcher
from core.http.models import HttpFetcher, HttpRequest, HttpResponse
from gadgets.oauth2.cache import InMemoryCache, OAuth2Cache
from gadgets.oauth2.callback import OAuth2CallbackHandler
from gadgets.oauth2.context import Authority
from gadgets.oauth2.encryption import FernetBlobCrypter, create_encrypter
from gadgets.oauth2.handlers import (
    BasicAuthenticationHandler,
    BearerTokenHandler,
    ClientCredentialsGrantTypeHandler,
    CodeAuthorizationResponseHandler,
    CodeGrantTypeHandler,
    MacTokenHandler,
    StandardAuthenticationHandler,
    TokenAuthorizationResponseHandler,
    client_auth_registry,
    grant_registry,
    resource_registry,
)
from gadgets.oauth2.persistence import InMemoryPersister, JsonOAuth2Persister, OAuth2Persister
from gadgets.oauth2.request import OAuth2FetcherConfig, OAuth2Handlers, OAuth2RequestFactory
from gadgets.oauth2.store import OAuth2Store
from gadgets.oauth2.token_store import GadgetOAuth2TokenStore, SpecLookup

logger = logging.getLogger(__name__)


@dataclass
class OAuth2Runtime:
    """Everything the container needs to serve OAuth2 fetches and callbacks."""

    config: OAuth2Config
    store: OAuth2Store
    token_store: GadgetOAuth2TokenStore
    requests: OAuth2RequestFactory
    callback: OAuth2CallbackHandler
    fetcher: HttpFetcher
    owns_fetcher: bool = False

    async def fetch(self, request: HttpRequest) -> HttpResponse:
        return await self.requests.fetch(request)

    async def close(self) -> None:
        if self.owns_fetcher and hasattr(self.fetcher, "close"):
            await self.fetcher.close()


def authority_from_config(config: OAuth2Config) -> Authority:
    return Authority(
        scheme=config.authority.scheme,
        host=config.authority.host,
        context_root=config.authority.context_root,
        origin=config.authority.origin,
    )


def create_persister(config: OAuth2Config, authority: Authority) -> OAuth2Persister:
    """JSON persister when a clients file is configured, in-memory otherwise."""
    if not config.clients_file:
        logger.warning("No clients_file configured, using an empty in-memory persister")
        return InMemoryPersister()
    return JsonOAuth2Persister(
        config_path=config.clients_file,
        authority=authority,
        encrypter=create_encrypter(config.encryption_key),
        tokens_path=config.tokens_file,
    )


def create_handlers(store: OAuth2Store, fetcher: HttpFetcher) -> OAuth2Handlers:
    """Default handler set."""
    client_auth = client_auth_registry(
        [BasicAuthenticationHandler(), StandardAuthenticationHandler()]
    )
    token_endpoint = [TokenAuthorizationResponseHandler(store)]
    return OAuth2Handlers(
        grants=grant_registry(
            [CodeGrantTypeHandler(), ClientCredentialsGrantTypeHandler(client_auth)]
        ),
        client_auth=client_auth,
        resources=resource_registry([BearerTokenHandler(), MacTokenHandler()]),
        authorization_endpoint=[
            CodeAuthorizationResponseHandler(fetcher, client_auth, token_endpoint)
        ],
        token_endpoint=token_endpoint,
    )


def create_runtime(
    config: OAuth2Config,
    spec_lookup: SpecLookup,
    fetcher: HttpFetcher | None = None,
    persister: OAuth2Persister | None = None,
    cache: OAuth2Cache | None = None,
) -> OAuth2Runtime:
    """
    Build the OAuth2 runtime.

    Args:
        config: Validated runtime configuration
        spec_lookup: Source of gadget spec service metadata
        fetcher: HTTP transport (default: AiohttpFetcher owned by the runtime)
        persister: Override the configured persister
        cache: Override the in-memory cache

    Raises:
        OAuth2StoreError: If the persister can not be loaded
    """
    authority = authority_from_config(config)
    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = AiohttpFetcher(timeout=config.http_timeout_seconds)

    state_crypter = FernetBlobCrypter(config.state_key or None)
    if not config.state_key:
        logger.warning("No state_key configured, callback state will not survive a restart")

    supplied_persister = persister is not None
    if persister is None:
        persister = create_persister(config, authority)
    store = OAuth2Store(
        cache or InMemoryCache(),
        persister,
        global_redirect_uri=config.global_redirect_uri,
        authority=authority,
        state_crypter=state_crypter,
        state_max_age=config.state_max_age_seconds,
    )

    if config.import_from_config and supplied_persister:
        # Seed the supplied persister from the configured document
        source = create_persister(config, authority)
        OAuth2Store.run_import(source, persister, clean=config.import_clean)

    store.init()

    handlers = create_handlers(store, fetcher)
    token_store = GadgetOAuth2TokenStore(store, spec_lookup)
    requests = OAuth2RequestFactory(
        OAuth2FetcherConfig(
            token_store=token_store,
            send_trace_to_client=config.send_trace_to_client,
            viewer_access_tokens_enabled=config.viewer_access_tokens_enabled,
            max_attempts=config.max_attempts,
        ),
        fetcher,
        handlers,
    )
    callback = OAuth2CallbackHandler(
        store,
        state_crypter,
        handlers.authorization_endpoint,
        state_max_age=config.state_max_age_seconds,
        send_trace_to_client=config.send_trace_to_client,
    )

    logger.info(
        "OAuth2 runtime ready",
        extra={
            "persister": type(persister).__name__,
            "clients_loaded": len(persister.load_clients()),
        },
    )
    return OAuth2Runtime(
        config=config,
        store=store,
        token_store=token_store,
        requests=requests,
        callback=callback,
        fetcher=fetcher,
        owns_fetcher=owns_fetcher,
    )


__all__ = [
    "OAuth2Runtime",
    "authority_from_config",
    "create_persister",
    "create_handlers",
    "create_runtime",
]
