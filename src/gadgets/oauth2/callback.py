"""
Authorization callback endpoint.

The provider redirects the user's browser here after the authorization
step. The sealed ``state`` parameter names the accessor that started the
redirect; the matching authorization endpoint handler completes the grant
and the page closes the popup so the gadget can fetch again.
"""

import html
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from core.logging.context import set_log_context
from core.logging.setup import generate_request_id
from gadgets.oauth2.callback_state import DEFAULT_STATE_MAX_AGE_SECONDS, OAuth2CallbackState
from gadgets.oauth2.encryption import BlobCrypter
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.exceptions import OAuth2StoreError
from gadgets.oauth2.handlers.base import AuthorizationEndpointResponseHandler
from gadgets.oauth2.message import OAuth2Message
from gadgets.oauth2.store import OAuth2Store

logger = logging.getLogger(__name__)

CLOSE_WINDOW_BODY = (
    "<html><head><title>Close this window</title></head><body>"
    "<script type='text/javascript'>"
    "try {window.opener.gadgets.io.oauthReceivedCallbackUrl_ = document.location.href;}"
    " catch (e) {} window.close();"
    "</script>Close this window.</body></html>"
)

ERROR_BODY = (
    "<html><head><title>OAuth2 Error</title></head><body>"
    "<p>{code}</p><p>{text}</p></body></html>"
)


@dataclass
class CallbackResult:
    """What the container sends back to the browser."""

    status: int
    body: str
    error: OAuth2HandlerError | None = None
    content_type: str = "text/html; charset=UTF-8"

    @property
    def ok(self) -> bool:
        return self.error is None


class OAuth2CallbackHandler:
    """
    Completes redirect grants.

    Example:
        result = await callback.handle({"code": "abc", "state": sealed})
        if not result.ok:
            logger.warning(result.error)
    """

    def __init__(
        self,
        store: OAuth2Store,
        state_crypter: BlobCrypter,
        handlers: Sequence[AuthorizationEndpointResponseHandler],
        state_max_age: int = DEFAULT_STATE_MAX_AGE_SECONDS,
        send_trace_to_client: bool = False,
    ):
        self.store = store
        self.state_crypter = state_crypter
        self.handlers = list(handlers)
        self.state_max_age = state_max_age
        self.send_trace_to_client = send_trace_to_client

    async def handle(self, params: Mapping[str, str | list[str]]) -> CallbackResult:
        set_log_context(request_id=generate_request_id(), component="callback")
        message = OAuth2Message()
        message.parse_request(params or {})

        state = OAuth2CallbackState.decode(
            self.state_crypter, message.state, max_age=self.state_max_age
        )
        if state is None or state.is_expired():
            return self._error(
                OAuth2HandlerError(OAuth2Error.CALLBACK_PROBLEM, "callback state is missing or expired")
            )

        try:
            accessor = self.store.get_oauth2_accessor_for_state(state)
        except OAuth2StoreError as e:
            return self._error(
                OAuth2HandlerError(OAuth2Error.STORAGE_PROBLEM, "error loading accessor", cause=e)
            )

        if not accessor.is_valid() or accessor.is_error_response:
            return self._error(
                OAuth2HandlerError(OAuth2Error.CALLBACK_PROBLEM, "accessor is invalid")
            )
        set_log_context(gadget_uri=accessor.gadget_uri, service_name=accessor.service_name)
        if not accessor.redirecting:
            self.store.remove_oauth2_accessor(accessor)
            return self._error(
                OAuth2HandlerError(
                    OAuth2Error.CALLBACK_PROBLEM, "accessor is not waiting for a callback"
                )
            )

        error = None
        handled = False
        for handler in self.handlers:
            if handler.handles_request(accessor, params):
                handled = True
                error = await handler.handle_request(accessor, params)
                if error is not None:
                    break
        if not handled:
            error = OAuth2HandlerError(
                OAuth2Error.NO_RESPONSE_HANDLER,
                f"no authorization response handler for grant_type {accessor.grant_type}",
            )

        if error is not None:
            # Surfaced by the gadget's next fetch
            accessor.redirecting = False
            accessor.set_error_response(error)
            self.store.store_oauth2_accessor(accessor)
            return self._error(error)

        logger.info(
            "OAuth2 authorization completed",
            extra={"gadget_uri": accessor.gadget_uri, "service_name": accessor.service_name},
        )
        accessor.invalidate()
        self.store.remove_oauth2_accessor(accessor)
        return CallbackResult(status=200, body=CLOSE_WINDOW_BODY)

    def _error(self, error: OAuth2HandlerError) -> CallbackResult:
        logger.warning(
            f"OAuth2 callback failed: {error}",
            extra={"error_code": error.error_code},
        )
        text = error.full_description if self.send_trace_to_client else error.error.explanation
        body = ERROR_BODY.format(code=html.escape(error.error_code), text=html.escape(text))
        return CallbackResult(status=403, body=body, error=error)


__all__ = [
    "CallbackResult",
    "OAuth2CallbackHandler",
]
