"""
Discriminator-keyed handler registries.

Built once when the runtime is composed; lookups are case-insensitive
and a lookup with no registered handler is an error.
"""

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Generic, TypeVar

from gadgets.oauth2.exceptions import HandlerNotFoundError

logger = logging.getLogger(__name__)

H = TypeVar("H")


class HandlerRegistry(Generic[H]):
    """
    Map of lower-cased discriminator -> handler.

    When two handlers claim the same discriminator the first one wins.

    Example:
        >>> grants = HandlerRegistry("grantRequestHandler", [CodeGrantTypeHandler()],
        ...                          key=lambda h: h.grant_type)
        >>> grants.resolve("CODE").grant_type
        'code'
    """

    def __init__(self, kind: str, handlers: Iterable[H], key: Callable[[H], str]):
        self.kind = kind
        self._handlers: dict[str, H] = {}
        for handler in handlers:
            discriminator = key(handler).lower()
            if discriminator in self._handlers:
                logger.warning(
                    f"Ignoring duplicate {kind} for '{discriminator}': {type(handler).__name__}"
                )
                continue
            self._handlers[discriminator] = handler

    def get(self, discriminator: str | None) -> H | None:
        if not discriminator:
            return None
        return self._handlers.get(discriminator.lower())

    def resolve(self, discriminator: str | None) -> H:
        """
        Handler for discriminator.

        Raises:
            HandlerNotFoundError: If none is registered
        """
        handler = self.get(discriminator)
        if handler is None:
            raise HandlerNotFoundError(self.kind, discriminator)
        return handler

    def __contains__(self, discriminator: str) -> bool:
        return self.get(discriminator) is not None

    def __iter__(self) -> Iterator[H]:
        return iter(self._handlers.values())

    def __len__(self) -> int:
        return len(self._handlers)


def grant_registry(handlers: Iterable) -> HandlerRegistry:
    return HandlerRegistry("grantRequestHandler", handlers, key=lambda h: h.grant_type)


def client_auth_registry(handlers: Iterable) -> HandlerRegistry:
    return HandlerRegistry(
        "clientAuthenticationHandler", handlers, key=lambda h: h.client_authentication_type
    )


def resource_registry(handlers: Iterable) -> HandlerRegistry:
    return HandlerRegistry("resourceRequestHandler", handlers, key=lambda h: h.token_type)


__all__ = [
    "HandlerRegistry",
    "grant_registry",
    "client_auth_registry",
    "resource_registry",
]
