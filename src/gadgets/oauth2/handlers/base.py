"""
Strategy contracts for the pluggable steps of the OAuth2 flow.

Handlers report failure by returning an OAuth2HandlerError (or raising
OAuth2RequestError while building a request); success is ``None``.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping

from core.http.models import HttpRequest, HttpResponse
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.errors import OAuth2HandlerError


class GrantRequestHandler(ABC):
    """Builds the authorization step for one grant type."""

    grant_type: str = ""

    @abstractmethod
    def get_complete_url(self, accessor: OAuth2Accessor) -> str:
        """
        URL the authorization step starts at.

        For redirect grants this is the authorization URL the user is sent
        to; for direct grants it is the token endpoint.

        Raises:
            OAuth2RequestError: If the URL can not be built
        """

    @abstractmethod
    def get_authorization_request(
        self, accessor: OAuth2Accessor, complete_url: str
    ) -> HttpRequest | None:
        """
        Backend request that performs the grant, or None for redirect grants.

        Raises:
            OAuth2RequestError: If the request can not be built
        """

    @abstractmethod
    def is_redirect_required(self) -> bool: ...

    @abstractmethod
    def is_authorization_endpoint_response(self) -> bool: ...

    @abstractmethod
    def is_token_endpoint_response(self) -> bool: ...


class ClientAuthenticationHandler(ABC):
    """Attaches client credentials to a token endpoint request."""

    client_authentication_type: str = ""

    @abstractmethod
    def add_oauth2_authentication(
        self, request: HttpRequest, accessor: OAuth2Accessor
    ) -> OAuth2HandlerError | None: ...


class ResourceRequestHandler(ABC):
    """Attaches an access token of one token type to a resource request."""

    token_type: str = ""

    @abstractmethod
    def add_oauth2_params(
        self, accessor: OAuth2Accessor, request: HttpRequest
    ) -> OAuth2HandlerError | None: ...


class AuthorizationEndpointResponseHandler(ABC):
    """
    Handles what the authorization endpoint sends back.

    Either an inbound callback request (redirect grants) or the response to
    a backend authorization request (direct grants).
    """

    @abstractmethod
    def handles_request(self, accessor: OAuth2Accessor, params: Mapping[str, str]) -> bool: ...

    @abstractmethod
    async def handle_request(
        self, accessor: OAuth2Accessor, params: Mapping[str, str]
    ) -> OAuth2HandlerError | None: ...

    @abstractmethod
    def handles_response(self, accessor: OAuth2Accessor, response: HttpResponse) -> bool: ...

    @abstractmethod
    async def handle_response(
        self, accessor: OAuth2Accessor, response: HttpResponse
    ) -> OAuth2HandlerError | None: ...


class TokenEndpointResponseHandler(ABC):
    """Turns a token endpoint response into stored tokens."""

    @abstractmethod
    def handles_response(self, accessor: OAuth2Accessor, response: HttpResponse) -> bool: ...

    @abstractmethod
    def handle_response(
        self, accessor: OAuth2Accessor, response: HttpResponse
    ) -> OAuth2HandlerError | None: ...


__all__ = [
    "GrantRequestHandler",
    "ClientAuthenticationHandler",
    "ResourceRequestHandler",
    "AuthorizationEndpointResponseHandler",
    "TokenEndpointResponseHandler",
]
