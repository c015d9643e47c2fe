"""
OAuth2 store: cache + persister composition.

Lookups go to the cache first and fall through to the persister, filling
the cache on the way back. Writes go to the persister first so a failed
write never leaves a cache entry the persister does not have.

Cache errors are logged and treated as a miss; only persister errors
abort the caller.
"""

import logging
from collections.abc import Callable
from typing import Any

from core.logging.utilities import log_exception
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.cache import OAuth2Cache
from gadgets.oauth2.callback_state import DEFAULT_STATE_MAX_AGE_SECONDS, OAuth2CallbackState
from gadgets.oauth2.context import Authority
from gadgets.oauth2.encryption import BlobCrypter
from gadgets.oauth2.exceptions import OAuth2CacheError, OAuth2PersistenceError, OAuth2StoreError
from gadgets.oauth2.models import (
    AccessorKey,
    ClientKey,
    OAuth2Client,
    OAuth2Token,
    TokenKey,
    TokenType,
)
from gadgets.oauth2.persistence import OAuth2Persister

logger = logging.getLogger(__name__)


class OAuth2Store:
    """
    Indexed lookup, insert and removal of clients, tokens and accessors.

    Usage:
        store = OAuth2Store(InMemoryCache(), JsonOAuth2Persister("config/oauth2.json"))
        store.init()
        accessor = store.get_oauth2_accessor(gadget_uri, "photos", "john", "")
    """

    def __init__(
        self,
        cache: OAuth2Cache,
        persister: OAuth2Persister,
        global_redirect_uri: str | None = None,
        authority: Authority | None = None,
        state_crypter: BlobCrypter | None = None,
        state_max_age: int = DEFAULT_STATE_MAX_AGE_SECONDS,
    ):
        self.cache = cache
        self.persister = persister
        self.global_redirect_uri = global_redirect_uri
        self.authority = authority
        self.state_crypter = state_crypter
        self.state_max_age = state_max_age

    def _cached(self, operation: Callable[[], Any], default: Any = None, **context: Any) -> Any:
        """Run a cache operation, logging a cache error and returning default."""
        try:
            return operation()
        except OAuth2CacheError as e:
            log_exception(
                logger,
                e,
                "OAuth2 cache operation failed, falling back to persister",
                level=logging.WARNING,
                include_traceback=False,
                **context,
            )
            return default

    def init(self) -> bool:
        """
        Clear every cache and reload all clients and tokens from the persister.

        Raises:
            OAuth2StoreError: If the persister can not be read
        """
        self.clear_cache()
        try:
            clients = self.persister.load_clients()
            tokens = self.persister.load_tokens()
        except OAuth2PersistenceError as e:
            raise OAuth2StoreError("Error loading OAuth2 data", cause=e) from e

        self._cached(lambda: self.cache.store_clients(clients))
        self._cached(lambda: self.cache.store_tokens(tokens))
        logger.info(
            "OAuth2 store initialized",
            extra={"clients_loaded": len(clients), "tokens_loaded": len(tokens)},
        )
        return True

    def clear_cache(self) -> None:
        self.clear_client_cache()
        self.clear_token_cache()
        self.clear_accessor_cache()

    def clear_client_cache(self) -> None:
        self._cached(self.cache.clear_clients)

    def clear_token_cache(self) -> None:
        self._cached(self.cache.clear_tokens)

    def clear_accessor_cache(self) -> None:
        self._cached(self.cache.clear_accessors)

    def create_token(self, **fields) -> OAuth2Token:
        return self.persister.create_token(**fields)

    # -- clients -------------------------------------------------------------

    def get_client(self, gadget_uri: str, service_name: str) -> OAuth2Client | None:
        key = ClientKey(gadget_uri, service_name)
        client = self._cached(lambda: self.cache.get_client(key), gadget_uri=gadget_uri)
        if client is not None:
            return client

        try:
            client = self.persister.find_client(key)
        except OAuth2PersistenceError as e:
            raise OAuth2StoreError(
                f"Error loading OAuth2 client {service_name} for {gadget_uri}", cause=e
            ) from e

        if client is not None:
            self._cached(lambda: self.cache.store_client(client), gadget_uri=gadget_uri)
        return client

    def invalidate_client(self, client: OAuth2Client) -> OAuth2Client | None:
        """Evict a client from the cache only."""
        return self._cached(
            lambda: self.cache.remove_client(client.key), gadget_uri=client.gadget_uri
        )

    # -- accessors -----------------------------------------------------------

    def get_oauth2_accessor(
        self, gadget_uri: str, service_name: str, user: str, scope: str
    ) -> OAuth2Accessor:
        """
        Cached accessor for the key, or a new one built from the client and
        persisted tokens.

        When no client is registered the returned accessor is invalid (no
        grant type); callers report that as an authorization problem.
        """
        key = AccessorKey(gadget_uri, service_name, user, scope)
        accessor = self._cached(lambda: self.cache.get_accessor(key), gadget_uri=gadget_uri)
        if accessor is not None and accessor.is_valid():
            return accessor

        client = self.get_client(gadget_uri, service_name)
        extras = {
            "global_redirect_uri": self.global_redirect_uri,
            "authority": self.authority,
            "state_crypter": self.state_crypter,
            "state_max_age": self.state_max_age,
        }
        if client is None:
            logger.debug(
                "No OAuth2 client registered",
                extra={"gadget_uri": gadget_uri, "service_name": service_name},
            )
            accessor = OAuth2Accessor(
                gadget_uri=gadget_uri, service_name=service_name, user=user, scope=scope, **extras
            )
        else:
            accessor = OAuth2Accessor.from_client(client, user, scope, **extras)
            token_user = accessor.token_user
            accessor.access_token = self.get_token(
                gadget_uri, service_name, token_user, scope, TokenType.ACCESS
            )
            accessor.refresh_token = self.get_token(
                gadget_uri, service_name, token_user, scope, TokenType.REFRESH
            )

        self.store_oauth2_accessor(accessor)
        return accessor

    def get_oauth2_accessor_for_state(self, state: OAuth2CallbackState) -> OAuth2Accessor:
        return self.get_oauth2_accessor(
            state.gadget_uri, state.service_name, state.user, state.scope
        )

    def store_oauth2_accessor(self, accessor: OAuth2Accessor) -> None:
        self._cached(lambda: self.cache.store_accessor(accessor), gadget_uri=accessor.gadget_uri)

    def remove_oauth2_accessor(self, accessor: OAuth2Accessor) -> OAuth2Accessor | None:
        """
        Evict the accessor cached under the same key.

        The store is not the authority for in-flight accessor state, so
        this never touches the persister.
        """
        return self._cached(
            lambda: self.cache.remove_accessor(accessor.key), gadget_uri=accessor.gadget_uri
        )

    # -- tokens --------------------------------------------------------------

    def get_token(
        self,
        gadget_uri: str,
        service_name: str,
        user: str,
        scope: str,
        token_type: TokenType,
    ) -> OAuth2Token | None:
        key = TokenKey(gadget_uri, service_name, user, scope, token_type)
        token = self._cached(lambda: self.cache.get_token(key), gadget_uri=gadget_uri)
        if token is not None:
            return token

        try:
            token = self.persister.find_token(key)
        except OAuth2PersistenceError as e:
            raise OAuth2StoreError(f"Error loading OAuth2 {token_type.value} token", cause=e) from e

        if token is not None:
            self._cached(lambda: self.cache.store_token(token), gadget_uri=gadget_uri)
        return token

    def set_token(self, token: OAuth2Token) -> None:
        """
        Insert a new token or update the existing one for the same key.

        Raises:
            OAuth2StoreError: If the persister write fails (the cache is
                left without an entry for the key)
        """
        key = token.key
        try:
            existing = self.get_token(*key)
            if existing is None:
                self.persister.insert_token(token)
            else:
                self._evict_token(key)
                self.persister.update_token(token)
        except OAuth2PersistenceError as e:
            self._evict_token(key)
            log_exception(
                logger,
                e,
                "Error storing OAuth2 token",
                include_traceback=False,
                gadget_uri=token.gadget_uri,
                service_name=token.service_name,
            )
            raise OAuth2StoreError("Error storing OAuth2 token", cause=e) from e

        self._cached(lambda: self.cache.store_token(token), gadget_uri=token.gadget_uri)

    def _evict_token(self, key: TokenKey) -> OAuth2Token | None:
        return self._cached(lambda: self.cache.remove_token(key), gadget_uri=key.gadget_uri)

    def remove_token(self, token: OAuth2Token) -> OAuth2Token | None:
        return self.remove_token_by_key(token.key)

    def remove_token_by_key(self, key: TokenKey) -> OAuth2Token | None:
        """
        Delete a token from cache and persister.

        Idempotent: removing an absent token returns None.
        """
        cached = self._evict_token(key)
        try:
            removed = self.persister.remove_token(key)
        except OAuth2PersistenceError as e:
            raise OAuth2StoreError("Error removing OAuth2 token", cause=e) from e
        if cached is not None:
            return cached
        if removed:
            return self.create_token(
                gadget_uri=key.gadget_uri,
                service_name=key.service_name,
                user=key.user,
                scope=key.scope,
                type=key.token_type,
            )
        return None

    def invalidate_token(self, token: OAuth2Token) -> OAuth2Token | None:
        """Evict a token from the cache only."""
        return self._evict_token(token.key)

    # -- import --------------------------------------------------------------

    @staticmethod
    def run_import(source: OAuth2Persister, target: OAuth2Persister, clean: bool = False) -> bool:
        """
        Copy clients and tokens from source into target.

        Args:
            source: Persister to read from
            target: Persister to write to
            clean: Remove everything from target first

        Returns:
            True when the import completed
        """
        try:
            if clean:
                removed_clients = target.remove_all_clients()
                removed_tokens = target.remove_all_tokens()
                logger.info(
                    f"Cleaned import target: {removed_clients} clients, {removed_tokens} tokens"
                )

            clients = source.load_clients()
            for client in clients:
                target.insert_client(client)

            tokens = source.load_tokens()
            for token in tokens:
                if target.find_token(token.key) is None:
                    target.insert_token(token)
                else:
                    target.update_token(token)
        except OAuth2PersistenceError as e:
            raise OAuth2StoreError("Error importing OAuth2 data", cause=e) from e

        logger.info(
            "OAuth2 import complete",
            extra={"clients_loaded": len(clients), "tokens_loaded": len(tokens)},
        )
        return True


__all__ = ["OAuth2Store"]
