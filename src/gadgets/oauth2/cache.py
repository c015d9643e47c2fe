"""
Volatile index of clients, tokens and accessors.

The cache is an optimization over the persister: every entry can be
evicted at any time and a miss falls through to the persister.

Thread Safety:
    InMemoryCache guards every operation with one lock so it can be shared
    by concurrent fetches on different threads or event loops.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable

from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.models import AccessorKey, ClientKey, OAuth2Client, OAuth2Token, TokenKey


class OAuth2Cache(ABC):
    """Cache contract; keys are the same composite keys the persister uses."""

    @abstractmethod
    def get_client(self, key: ClientKey) -> OAuth2Client | None: ...

    @abstractmethod
    def store_client(self, client: OAuth2Client) -> None: ...

    @abstractmethod
    def remove_client(self, key: ClientKey) -> OAuth2Client | None: ...

    @abstractmethod
    def clear_clients(self) -> None: ...

    @abstractmethod
    def get_token(self, key: TokenKey) -> OAuth2Token | None: ...

    @abstractmethod
    def store_token(self, token: OAuth2Token) -> None: ...

    @abstractmethod
    def remove_token(self, key: TokenKey) -> OAuth2Token | None: ...

    @abstractmethod
    def clear_tokens(self) -> None: ...

    @abstractmethod
    def get_accessor(self, key: AccessorKey) -> OAuth2Accessor | None: ...

    @abstractmethod
    def store_accessor(self, accessor: OAuth2Accessor) -> None: ...

    @abstractmethod
    def remove_accessor(self, key: AccessorKey) -> OAuth2Accessor | None: ...

    @abstractmethod
    def clear_accessors(self) -> None: ...

    def store_clients(self, clients: Iterable[OAuth2Client]) -> None:
        for client in clients:
            self.store_client(client)

    def store_tokens(self, tokens: Iterable[OAuth2Token]) -> None:
        for token in tokens:
            self.store_token(token)


class InMemoryCache(OAuth2Cache):
    """
    Thread-safe dictionary-backed cache.

    Example:
        >>> cache = InMemoryCache()
        >>> cache.store_token(token)
        >>> cache.get_token(token.key) is token
        True
    """

    def __init__(self):
        self._clients: dict[ClientKey, OAuth2Client] = {}
        self._tokens: dict[TokenKey, OAuth2Token] = {}
        self._accessors: dict[AccessorKey, OAuth2Accessor] = {}
        self._lock = threading.Lock()

    def get_client(self, key: ClientKey) -> OAuth2Client | None:
        with self._lock:
            return self._clients.get(key)

    def store_client(self, client: OAuth2Client) -> None:
        with self._lock:
            self._clients[client.key] = client

    def remove_client(self, key: ClientKey) -> OAuth2Client | None:
        with self._lock:
            return self._clients.pop(key, None)

    def clear_clients(self) -> None:
        with self._lock:
            self._clients.clear()

    def get_token(self, key: TokenKey) -> OAuth2Token | None:
        with self._lock:
            return self._tokens.get(key)

    def store_token(self, token: OAuth2Token) -> None:
        with self._lock:
            self._tokens[token.key] = token

    def remove_token(self, key: TokenKey) -> OAuth2Token | None:
        with self._lock:
            return self._tokens.pop(key, None)

    def clear_tokens(self) -> None:
        with self._lock:
            self._tokens.clear()

    def get_accessor(self, key: AccessorKey) -> OAuth2Accessor | None:
        with self._lock:
            return self._accessors.get(key)

    def store_accessor(self, accessor: OAuth2Accessor) -> None:
        with self._lock:
            self._accessors[accessor.key] = accessor

    def remove_accessor(self, key: AccessorKey) -> OAuth2Accessor | None:
        with self._lock:
            return self._accessors.pop(key, None)

    def clear_accessors(self) -> None:
        with self._lock:
            self._accessors.clear()

    def size(self) -> dict[str, int]:
        """Entry counts per entity type."""
        with self._lock:
            return {
                "clients": len(self._clients),
                "tokens": len(self._tokens),
                "accessors": len(self._accessors),
            }


__all__ = [
    "OAuth2Cache",
    "InMemoryCache",
]
