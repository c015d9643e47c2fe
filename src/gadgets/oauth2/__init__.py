"""
OAuth2 client runtime for gadget fetches.

Obtains, caches, refreshes and persists OAuth2 tokens per
(gadget, service, user, scope) and signs outbound resource requests with
them, redirecting the user through the provider's authorization page when
no usable token exists.

Entry points:
    create_runtime()            - compose the runtime from OAuth2Config
    OAuth2Request.fetch()       - one signed fetch (via OAuth2RequestFactory)
    OAuth2CallbackHandler       - completes redirect grants
"""

from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.cache import InMemoryCache, OAuth2Cache
from gadgets.oauth2.callback import CallbackResult, OAuth2CallbackHandler
from gadgets.oauth2.callback_state import OAuth2CallbackState
from gadgets.oauth2.context import Authority, OAuth2Arguments, SecurityContext
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.exceptions import (
    CallbackStateError,
    HandlerNotFoundError,
    OAuth2EncryptionError,
    OAuth2PersistenceError,
    OAuth2RequestError,
    OAuth2StoreError,
    SpecLookupError,
)
from gadgets.oauth2.factory import OAuth2Runtime, create_runtime
from gadgets.oauth2.message import OAuth2Message
from gadgets.oauth2.models import (
    AccessorKey,
    ClientKey,
    ClientType,
    OAuth2Client,
    OAuth2Token,
    TokenKey,
    TokenType,
)
from gadgets.oauth2.persistence import InMemoryPersister, JsonOAuth2Persister, OAuth2Persister
from gadgets.oauth2.request import (
    OAuth2FetcherConfig,
    OAuth2Handlers,
    OAuth2Request,
    OAuth2RequestFactory,
)
from gadgets.oauth2.response_params import OAuth2ResponseParams
from gadgets.oauth2.store import OAuth2Store
from gadgets.oauth2.token_store import (
    GadgetOAuth2TokenStore,
    OAuth2SpecInfo,
    SpecLookup,
    StaticSpecLookup,
)

__all__ = [
    # Model
    "OAuth2Client",
    "OAuth2Token",
    "OAuth2Accessor",
    "TokenType",
    "ClientType",
    "ClientKey",
    "TokenKey",
    "AccessorKey",
    "SecurityContext",
    "OAuth2Arguments",
    "Authority",
    # Errors
    "OAuth2Error",
    "OAuth2HandlerError",
    "OAuth2RequestError",
    "OAuth2StoreError",
    "OAuth2PersistenceError",
    "OAuth2EncryptionError",
    "CallbackStateError",
    "SpecLookupError",
    "HandlerNotFoundError",
    # Storage
    "OAuth2Cache",
    "InMemoryCache",
    "OAuth2Persister",
    "InMemoryPersister",
    "JsonOAuth2Persister",
    "OAuth2Store",
    "GadgetOAuth2TokenStore",
    "OAuth2SpecInfo",
    "SpecLookup",
    "StaticSpecLookup",
    # Flow
    "OAuth2Message",
    "OAuth2CallbackState",
    "OAuth2ResponseParams",
    "OAuth2FetcherConfig",
    "OAuth2Handlers",
    "OAuth2Request",
    "OAuth2RequestFactory",
    "OAuth2CallbackHandler",
    "CallbackResult",
    # Composition
    "OAuth2Runtime",
    "create_runtime",
]
