"""
Pluggable OAuth2 flow steps.

Each handler family is keyed by a discriminator (grant type, client
authentication type, token type) and looked up through a HandlerRegistry.
"""

from gadgets.oauth2.handlers.base import (
    AuthorizationEndpointResponseHandler,
    ClientAuthenticationHandler,
    GrantRequestHandler,
    ResourceRequestHandler,
    TokenEndpointResponseHandler,
)
from gadgets.oauth2.handlers.client_auth import (
    BasicAuthenticationHandler,
    StandardAuthenticationHandler,
    apply_client_authentication,
)
from gadgets.oauth2.handlers.code_response import CodeAuthorizationResponseHandler
from gadgets.oauth2.handlers.grant import ClientCredentialsGrantTypeHandler, CodeGrantTypeHandler
from gadgets.oauth2.handlers.registry import (
    HandlerRegistry,
    client_auth_registry,
    grant_registry,
    resource_registry,
)
from gadgets.oauth2.handlers.resource import BearerTokenHandler, MacTokenHandler
from gadgets.oauth2.handlers.token_response import TokenAuthorizationResponseHandler

__all__ = [
    # Contracts
    "GrantRequestHandler",
    "ClientAuthenticationHandler",
    "ResourceRequestHandler",
    "AuthorizationEndpointResponseHandler",
    "TokenEndpointResponseHandler",
    # Registry
    "HandlerRegistry",
    "grant_registry",
    "client_auth_registry",
    "resource_registry",
    # Defaults
    "CodeGrantTypeHandler",
    "ClientCredentialsGrantTypeHandler",
    "BasicAuthenticationHandler",
    "StandardAuthenticationHandler",
    "apply_client_authentication",
    "BearerTokenHandler",
    "MacTokenHandler",
    "CodeAuthorizationResponseHandler",
    "TokenAuthorizationResponseHandler",
]
