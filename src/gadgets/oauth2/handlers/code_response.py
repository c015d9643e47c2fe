"""
Authorization code callback handling.

Turns the provider's redirect back to the container into an access token
by exchanging the authorization code at the token endpoint.
"""

import logging
from collections.abc import Mapping, Sequence

from core.http.exceptions import TransportError
from core.http.models import HttpFetcher, HttpRequest, HttpResponse
from core.security.url_validation import is_uri_allowed
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.handlers.base import (
    AuthorizationEndpointResponseHandler,
    TokenEndpointResponseHandler,
)
from gadgets.oauth2.handlers.client_auth import apply_client_authentication
from gadgets.oauth2.handlers.registry import HandlerRegistry
from gadgets.oauth2.message import (
    AUTHORIZATION,
    AUTHORIZATION_CODE,
    CODE_GRANT_TYPE,
    CONTENT_TYPE_JSON,
    GRANT_TYPE,
    REDIRECT_URI,
    OAuth2Message,
)

logger = logging.getLogger(__name__)


def _problem(context: str, **kwargs) -> OAuth2HandlerError:
    return OAuth2HandlerError(OAuth2Error.AUTHORIZATION_CODE_PROBLEM, context, **kwargs)


class CodeAuthorizationResponseHandler(AuthorizationEndpointResponseHandler):
    """
    Handles ``?code=...&state=...`` (or ``?error=...``) at the callback.

    Only inbound requests are handled; a code grant never produces a
    backend authorization response.
    """

    def __init__(
        self,
        fetcher: HttpFetcher,
        client_auth_handlers: HandlerRegistry,
        token_handlers: Sequence[TokenEndpointResponseHandler],
    ):
        self.fetcher = fetcher
        self.client_auth_handlers = client_auth_handlers
        self.token_handlers = list(token_handlers)

    def handles_request(self, accessor: OAuth2Accessor, params: Mapping[str, str]) -> bool:
        return (
            accessor is not None
            and params is not None
            and accessor.is_valid()
            and not accessor.is_error_response
            and accessor.redirecting
            and accessor.grant_type.lower() == CODE_GRANT_TYPE
        )

    async def handle_request(
        self, accessor: OAuth2Accessor, params: Mapping[str, str]
    ) -> OAuth2HandlerError | None:
        if accessor is None or not accessor.is_valid() or accessor.is_error_response:
            return _problem("accessor is invalid")
        if not accessor.redirecting:
            return _problem("accessor is not redirecting")
        if accessor.grant_type.lower() != CODE_GRANT_TYPE:
            return _problem("grant_type is not code")

        message = OAuth2Message()
        message.parse_request(params or {})
        error = message.get_error()
        if error is not None:
            return OAuth2HandlerError(
                error,
                "error parsing authorization response",
                uri=message.error_uri or "",
                description=message.error_description or "",
            )
        if not message.authorization:
            return _problem("authorization code is missing")

        return await self._exchange_code(accessor, message.authorization)

    async def _exchange_code(
        self, accessor: OAuth2Accessor, code: str
    ) -> OAuth2HandlerError | None:
        token_url = accessor.token_url
        if not token_url:
            return _problem("token_url is empty")
        if not is_uri_allowed(token_url, accessor.allowed_domains):
            return _problem(
                "Exception exchanging authorization code for access_token - domain not allowed"
            )

        request = HttpRequest(uri=token_url, method="POST", gadget_uri=accessor.gadget_uri)
        body = {
            GRANT_TYPE: AUTHORIZATION_CODE,
            AUTHORIZATION: code,
            REDIRECT_URI: accessor.resolved_redirect_uri,
        }
        body.update(accessor.additional_request_params)
        request.set_form_body(body)

        error = apply_client_authentication(
            request, accessor, self.client_auth_handlers, OAuth2Error.AUTHORIZATION_CODE_PROBLEM
        )
        if error is not None:
            return error

        try:
            response = await self.fetcher.fetch(request)
        except TransportError as e:
            logger.warning(
                f"Error exchanging code for access_token: {e}",
                extra={"gadget_uri": accessor.gadget_uri, "token_url": token_url},
            )
            return _problem("error exchanging code for access_token", cause=e)

        if response.status != HttpResponse.SC_OK and response.content_type == CONTENT_TYPE_JSON:
            provider_error = OAuth2Message()
            provider_error.parse_json(response.body_text)
            error = provider_error.get_error()
            if error is not None:
                return OAuth2HandlerError(
                    error,
                    "error exchanging code for access_token",
                    uri=provider_error.error_uri or "",
                    description=provider_error.error_description or "",
                )

        for handler in self.token_handlers:
            if handler.handles_response(accessor, response):
                error = handler.handle_response(accessor, response)
                if error is not None:
                    return error
        return None

    def handles_response(self, accessor: OAuth2Accessor, response: HttpResponse) -> bool:
        return False

    async def handle_response(
        self, accessor: OAuth2Accessor, response: HttpResponse
    ) -> OAuth2HandlerError | None:
        return _problem("code grant responses arrive at the callback")


__all__ = [
    "CodeAuthorizationResponseHandler",
]
