"""
Client authentication handlers for token endpoint requests.

A client authenticates with exactly one method (RFC 6749 2.3): HTTP Basic
puts the credentials in the Authorization header, STANDARD sends them as
request parameters. Clients with authentication type NONE only identify
themselves with client_id.
"""

import base64
import logging

from core.http.models import HttpRequest
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.handlers.base import ClientAuthenticationHandler
from gadgets.oauth2.handlers.registry import HandlerRegistry
from gadgets.oauth2.message import (
    AUTHORIZATION_HEADER,
    BASIC_AUTH_TYPE,
    CLIENT_ID,
    CLIENT_SECRET,
    NO_AUTH_TYPE,
    STANDARD_AUTH_TYPE,
)

logger = logging.getLogger(__name__)


def _check(request: HttpRequest | None, accessor: OAuth2Accessor | None) -> OAuth2HandlerError | None:
    if request is None:
        return OAuth2HandlerError(OAuth2Error.AUTHENTICATION_PROBLEM, "request is null")
    if accessor is None or not accessor.is_valid() or accessor.is_error_response:
        return OAuth2HandlerError(OAuth2Error.AUTHENTICATION_PROBLEM, "accessor is invalid")
    if not accessor.client_id or not accessor.client_secret:
        return OAuth2HandlerError(OAuth2Error.AUTHENTICATION_PROBLEM, "client_id or secret is empty")
    return None


class BasicAuthenticationHandler(ClientAuthenticationHandler):
    """``Authorization: Basic base64(client_id:client_secret)``."""

    client_authentication_type = BASIC_AUTH_TYPE

    def add_oauth2_authentication(
        self, request: HttpRequest, accessor: OAuth2Accessor
    ) -> OAuth2HandlerError | None:
        error = _check(request, accessor)
        if error is not None:
            return error
        credentials = f"{accessor.client_id}:{accessor.client_secret_text}".encode("utf-8")
        request.set_header(
            AUTHORIZATION_HEADER, f"Basic {base64.b64encode(credentials).decode('ascii')}"
        )
        return None


class StandardAuthenticationHandler(ClientAuthenticationHandler):
    """client_id and client_secret as form parameters (query parameters on GET)."""

    client_authentication_type = STANDARD_AUTH_TYPE

    def add_oauth2_authentication(
        self, request: HttpRequest, accessor: OAuth2Accessor
    ) -> OAuth2HandlerError | None:
        error = _check(request, accessor)
        if error is not None:
            return error
        params = {CLIENT_ID: accessor.client_id, CLIENT_SECRET: accessor.client_secret_text}
        if request.method.upper() == "GET":
            request.add_query_params(params)
        else:
            request.add_form_params(params)
        return None


def apply_client_authentication(
    request: HttpRequest,
    accessor: OAuth2Accessor,
    handlers: HandlerRegistry,
    error: OAuth2Error = OAuth2Error.AUTHENTICATION_PROBLEM,
) -> OAuth2HandlerError | None:
    """
    Authenticate request as the accessor's client.

    Returns the handler's error, or an error of the given kind when no
    handler is registered for the client's authentication type.
    """
    auth_type = accessor.client_authentication_type
    if not auth_type or auth_type.upper() == NO_AUTH_TYPE:
        if accessor.client_id:
            request.add_form_params({CLIENT_ID: accessor.client_id})
        return None

    handler = handlers.get(auth_type)
    if handler is None:
        return OAuth2HandlerError(error, f"no {handlers.kind} found for {auth_type}")
    logger.debug(
        f"Applying client authentication {auth_type}",
        extra={"client_auth_type": auth_type, "gadget_uri": accessor.gadget_uri},
    )
    return handler.add_oauth2_authentication(request, accessor)


__all__ = [
    "BasicAuthenticationHandler",
    "StandardAuthenticationHandler",
    "apply_client_authentication",
]
