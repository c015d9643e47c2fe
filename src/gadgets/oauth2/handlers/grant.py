"""
Grant request handlers.

The authorization code grant sends the user to the provider and resumes
at the callback; the client credentials grant posts straight to the token
endpoint.
"""

import logging

from core.http.models import HttpRequest, build_url
from core.security.url_validation import is_uri_allowed
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.errors import OAuth2Error
from gadgets.oauth2.exceptions import CallbackStateError, OAuth2RequestError
from gadgets.oauth2.handlers.base import GrantRequestHandler
from gadgets.oauth2.handlers.client_auth import apply_client_authentication
from gadgets.oauth2.handlers.registry import HandlerRegistry
from gadgets.oauth2.message import (
    CLIENT_CREDENTIALS,
    CLIENT_ID,
    CODE_GRANT_TYPE,
    GRANT_TYPE,
    REDIRECT_URI,
    RESPONSE_TYPE,
    SCOPE,
    STATE,
)

logger = logging.getLogger(__name__)


def _require_usable(accessor: OAuth2Accessor | None, error: OAuth2Error) -> OAuth2Accessor:
    if accessor is None or not accessor.is_valid() or accessor.is_error_response:
        raise OAuth2RequestError(error, "accessor is invalid")
    return accessor


class CodeGrantTypeHandler(GrantRequestHandler):
    """Authorization code grant (RFC 6749 4.1)."""

    grant_type = CODE_GRANT_TYPE

    def get_complete_url(self, accessor: OAuth2Accessor) -> str:
        accessor = _require_usable(accessor, OAuth2Error.CODE_GRANT_PROBLEM)
        if accessor.grant_type.lower() != CODE_GRANT_TYPE:
            raise OAuth2RequestError(OAuth2Error.CODE_GRANT_PROBLEM, "grant_type is not code")
        if not accessor.authorization_url:
            raise OAuth2RequestError(OAuth2Error.CODE_GRANT_PROBLEM, "authorization_url is empty")

        try:
            state = accessor.encrypted_state()
        except (ValueError, CallbackStateError) as e:
            raise OAuth2RequestError(
                OAuth2Error.CODE_GRANT_PROBLEM, "error encrypting callback state", cause=e
            ) from e

        params = {
            RESPONSE_TYPE: CODE_GRANT_TYPE,
            CLIENT_ID: accessor.client_id,
            REDIRECT_URI: accessor.resolved_redirect_uri,
            STATE: state,
        }
        if accessor.scope:
            params[SCOPE] = accessor.scope
        params.update(accessor.additional_request_params)
        return build_url(accessor.authorization_url, params)

    def get_authorization_request(
        self, accessor: OAuth2Accessor, complete_url: str
    ) -> HttpRequest | None:
        # The user agent makes this request, not the container
        return None

    def is_redirect_required(self) -> bool:
        return True

    def is_authorization_endpoint_response(self) -> bool:
        return True

    def is_token_endpoint_response(self) -> bool:
        return False


class ClientCredentialsGrantTypeHandler(GrantRequestHandler):
    """Client credentials grant (RFC 6749 4.4)."""

    grant_type = CLIENT_CREDENTIALS

    def __init__(self, client_auth_handlers: HandlerRegistry):
        self.client_auth_handlers = client_auth_handlers

    def get_complete_url(self, accessor: OAuth2Accessor) -> str:
        accessor = _require_usable(accessor, OAuth2Error.CLIENT_CREDENTIALS_PROBLEM)
        if not accessor.token_url:
            raise OAuth2RequestError(OAuth2Error.CLIENT_CREDENTIALS_PROBLEM, "token_url is empty")
        return build_url(accessor.token_url, None)

    def get_authorization_request(
        self, accessor: OAuth2Accessor, complete_url: str
    ) -> HttpRequest | None:
        accessor = _require_usable(accessor, OAuth2Error.CLIENT_CREDENTIALS_PROBLEM)
        if not complete_url:
            raise OAuth2RequestError(OAuth2Error.CLIENT_CREDENTIALS_PROBLEM, "completeUrl is empty")
        if not is_uri_allowed(complete_url, accessor.allowed_domains):
            raise OAuth2RequestError(
                OAuth2Error.CLIENT_CREDENTIALS_PROBLEM,
                "Exception exchanging client credentials for access_token - domain not allowed",
            )

        request = HttpRequest(uri=complete_url, method="POST", gadget_uri=accessor.gadget_uri)
        body = {GRANT_TYPE: CLIENT_CREDENTIALS}
        if accessor.scope:
            body[SCOPE] = accessor.scope
        body.update(accessor.additional_request_params)
        request.set_form_body(body)

        error = apply_client_authentication(
            request, accessor, self.client_auth_handlers, OAuth2Error.CLIENT_CREDENTIALS_PROBLEM
        )
        if error is not None:
            raise OAuth2RequestError(
                error.error, error.context_message, cause=error.cause, uri=error.uri,
                description=error.description,
            )
        return request

    def is_redirect_required(self) -> bool:
        return False

    def is_authorization_endpoint_response(self) -> bool:
        return False

    def is_token_endpoint_response(self) -> bool:
        return True


__all__ = [
    "CodeGrantTypeHandler",
    "ClientCredentialsGrantTypeHandler",
]
