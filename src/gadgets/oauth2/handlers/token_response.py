"""
Token endpoint response handling.

Parses a token endpoint answer (JSON or a text/plain form body), stores
the access token and any refresh token, and attaches them to the accessor.
"""

import logging

from core.http.models import HttpResponse
from core.logging.utilities import log_exception
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.exceptions import OAuth2StoreError
from gadgets.oauth2.handlers.base import TokenEndpointResponseHandler
from gadgets.oauth2.message import (
    BEARER_TOKEN_TYPE,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_TEXT,
    OAuth2Message,
)
from gadgets.oauth2.models import TokenType, now_seconds
from gadgets.oauth2.store import OAuth2Store

logger = logging.getLogger(__name__)


def parse_token_response(response: HttpResponse) -> OAuth2Message | None:
    """Message for a token endpoint body, or None for an unhandled content type."""
    content_type = response.content_type
    message = OAuth2Message()
    if content_type == CONTENT_TYPE_TEXT:
        message.parse_query(response.body_text)
    elif content_type == CONTENT_TYPE_JSON:
        message.parse_json(response.body_text)
    else:
        return None
    return message


def _problem(context: str, **kwargs) -> OAuth2HandlerError:
    return OAuth2HandlerError(OAuth2Error.TOKEN_RESPONSE_PROBLEM, context, **kwargs)


class TokenAuthorizationResponseHandler(TokenEndpointResponseHandler):
    """Default handler for token endpoint responses."""

    def __init__(self, store: OAuth2Store, clock=now_seconds):
        self.store = store
        self.clock = clock

    def handles_response(self, accessor: OAuth2Accessor, response: HttpResponse) -> bool:
        return (
            accessor is not None
            and accessor.is_valid()
            and not accessor.is_error_response
            and response is not None
        )

    def handle_response(
        self, accessor: OAuth2Accessor, response: HttpResponse
    ) -> OAuth2HandlerError | None:
        if response is None:
            return _problem("response is null")
        if accessor is None or not accessor.is_valid() or accessor.is_error_response:
            return _problem("accessor is invalid")
        if response.status != HttpResponse.SC_OK:
            return _problem(f"can't handle error response code {response.status}")

        message = parse_token_response(response)
        if message is None:
            return _problem(f"Unhandled Content-Type {response.content_type}")

        error = message.get_error()
        if error is not None:
            return OAuth2HandlerError(
                error,
                "error parsing request",
                uri=message.error_uri or "",
                description=message.error_description or "",
            )

        if not message.access_token:
            return _problem("no access_token in response")

        try:
            self._store_tokens(accessor, message)
        except (OAuth2StoreError, ValueError) as e:
            log_exception(
                logger,
                e,
                "Error storing tokens from token endpoint",
                include_traceback=False,
                gadget_uri=accessor.gadget_uri,
                service_name=accessor.service_name,
            )
            return _problem("exception thrown handling authorization response", cause=e)
        return None

    def _store_tokens(self, accessor: OAuth2Accessor, message: OAuth2Message) -> None:
        issued_at = self.clock()
        expires_in = message.expires_in
        token_type = message.token_type or BEARER_TOKEN_TYPE
        user = accessor.token_user

        access_token = self.store.create_token(
            gadget_uri=accessor.gadget_uri,
            service_name=accessor.service_name,
            user=user,
            scope=accessor.scope,
            type=TokenType.ACCESS,
            secret=message.access_token.encode("utf-8"),
            token_type=token_type,
            issued_at=issued_at,
            expires_at=issued_at + expires_in if expires_in else 0,
            mac_algorithm=message.mac_algorithm,
            mac_secret=message.mac_secret.encode("utf-8") if message.mac_secret else None,
            properties=message.unparsed_properties,
        )
        self.store.set_token(access_token)
        accessor.access_token = access_token

        if message.refresh_token:
            refresh_token = self.store.create_token(
                gadget_uri=accessor.gadget_uri,
                service_name=accessor.service_name,
                user=user,
                scope=accessor.scope,
                type=TokenType.REFRESH,
                secret=message.refresh_token.encode("utf-8"),
                token_type=token_type,
                issued_at=issued_at,
            )
            self.store.set_token(refresh_token)
            accessor.refresh_token = refresh_token

        logger.info(
            "Stored OAuth2 tokens",
            extra={
                "gadget_uri": accessor.gadget_uri,
                "service_name": accessor.service_name,
                "token_type": token_type,
            },
        )


__all__ = [
    "TokenAuthorizationResponseHandler",
    "parse_token_response",
]
