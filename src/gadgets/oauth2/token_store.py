"""
Gadget-aware accessor lookup.

Combines the OAuth2 service declared in a gadget spec with the client
registration and tokens held by the OAuth2Store.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.context import OAuth2Arguments, SecurityContext
from gadgets.oauth2.errors import OAuth2Error
from gadgets.oauth2.exceptions import OAuth2RequestError, OAuth2StoreError, SpecLookupError
from gadgets.oauth2.store import OAuth2Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OAuth2SpecInfo:
    """OAuth2 service endpoints and scope declared by a gadget spec."""

    authorization_url: str | None = None
    token_url: str | None = None
    scope: str | None = None


class SpecLookup(Protocol):
    """
    Source of gadget spec OAuth2 metadata.

    get_service_info returns None when the spec has no such service and
    raises SpecLookupError when the spec itself can not be loaded.
    """

    async def get_service_info(
        self,
        security_context: SecurityContext,
        arguments: OAuth2Arguments,
        gadget_uri: str,
    ) -> OAuth2SpecInfo | None:
        ...


class StaticSpecLookup:
    """
    SpecLookup over a fixed mapping of (gadget_uri, service_name) -> info.

    Gadgets missing from the mapping are reported as unloadable specs.
    """

    def __init__(self, services: dict[tuple[str, str], OAuth2SpecInfo] | None = None):
        self._services = dict(services or {})

    def register(self, gadget_uri: str, service_name: str, info: OAuth2SpecInfo) -> None:
        self._services[(gadget_uri, service_name)] = info

    async def get_service_info(
        self,
        security_context: SecurityContext,
        arguments: OAuth2Arguments,
        gadget_uri: str,
    ) -> OAuth2SpecInfo | None:
        if not any(uri == gadget_uri for uri, _ in self._services):
            raise SpecLookupError(f"No gadget spec for {gadget_uri}")
        return self._services.get((gadget_uri, arguments.service_name))


class GadgetOAuth2TokenStore:
    """Builds the per-fetch accessor for a gadget request."""

    def __init__(self, store: OAuth2Store, spec_lookup: SpecLookup):
        self.store = store
        self.spec_lookup = spec_lookup

    async def get_oauth2_accessor(
        self,
        security_context: SecurityContext | None,
        arguments: OAuth2Arguments | None,
        gadget_uri: str | None,
    ) -> OAuth2Accessor:
        """
        Accessor for (gadget_uri, service, viewer, scope) owned by the caller.

        Endpoints from the spec replace the registered ones only when the
        client allows module overrides, and only when the spec value is
        non-empty. The result is a private copy; the cached instance is
        never handed out.

        Raises:
            OAuth2RequestError: On missing inputs, spec problems or storage errors
        """
        if self.store is None or security_context is None or not gadget_uri:
            raise OAuth2RequestError(
                OAuth2Error.GET_OAUTH2_ACCESSOR_PROBLEM,
                "OAuth2Store, gadgetUri and securityToken must be present",
            )
        arguments = arguments or OAuth2Arguments()

        try:
            spec_info = await self.spec_lookup.get_service_info(
                security_context, arguments, gadget_uri
            )
        except SpecLookupError as e:
            raise OAuth2RequestError(
                OAuth2Error.NO_GADGET_SPEC, f"gadgetUri={gadget_uri}", cause=e
            ) from e

        if spec_info is None:
            raise OAuth2RequestError(
                OAuth2Error.LOOKUP_SPEC_PROBLEM,
                f"service {arguments.service_name} not declared by {gadget_uri}",
            )

        scope = arguments.scope or spec_info.scope or ""

        try:
            persisted = self.store.get_oauth2_accessor(
                gadget_uri, arguments.service_name, security_context.viewer_id or "", scope
            )
        except OAuth2StoreError as e:
            raise OAuth2RequestError(
                OAuth2Error.STORAGE_PROBLEM, "error loading accessor", cause=e
            ) from e

        merged = persisted.copy()
        if persisted.allow_module_override:
            if spec_info.authorization_url:
                merged.authorization_url = spec_info.authorization_url
            if spec_info.token_url:
                merged.token_url = spec_info.token_url

        logger.debug(
            f"Resolved accessor {merged}",
            extra={"gadget_uri": gadget_uri, "service_name": arguments.service_name},
        )
        return merged


__all__ = [
    "OAuth2SpecInfo",
    "SpecLookup",
    "StaticSpecLookup",
    "GadgetOAuth2TokenStore",
]
