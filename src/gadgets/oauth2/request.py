"""
OAuth2 request orchestrator.

OAuth2Request runs one signed fetch: it resolves the accessor, then
decides between using the access token, refreshing it, authorizing
(redirecting the user or doing a direct grant) and finally fetching the
resource. Every outcome is an HttpResponse; exceptions never escape
fetch().

Typical usage:
    factory = OAuth2RequestFactory(fetcher_config, fetcher, handlers)
    response = await factory.create().fetch(request)
"""

import asyncio
import dataclasses
import logging
import threading
import weakref
from dataclasses import dataclass, field

from core.errors.exceptions import classify_http_status, is_client_error
from core.http.exceptions import TransportError
from core.http.models import HttpFetcher, HttpRequest, HttpResponse, build_url
from core.logging.context import set_log_context
from core.logging.setup import generate_request_id
from core.logging.utilities import log_exception, log_with_context
from core.security.sanitize import sanitize_body
from core.security.url_validation import is_uri_allowed
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.exceptions import OAuth2RequestError, OAuth2StoreError
from gadgets.oauth2.handlers.base import (
    AuthorizationEndpointResponseHandler,
    GrantRequestHandler,
    TokenEndpointResponseHandler,
)
from gadgets.oauth2.handlers.client_auth import apply_client_authentication
from gadgets.oauth2.handlers.registry import HandlerRegistry
from gadgets.oauth2.message import BEARER_TOKEN_TYPE, GRANT_TYPE, REFRESH_TOKEN, SCOPE
from gadgets.oauth2.models import OAuth2Token, TokenKey, TokenType, now_seconds
from gadgets.oauth2.response_params import APPROVAL_URL, OAuth2ResponseParams
from gadgets.oauth2.token_store import GadgetOAuth2TokenStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass
class OAuth2FetcherConfig:
    """
    Settings shared by every OAuth2Request.

    Attributes:
        token_store: Resolves the accessor for a request
        send_trace_to_client: Include redacted request traces and error
            details in error responses
        viewer_access_tokens_enabled: Let viewers other than the page owner
            authorize
        max_attempts: Recursive attempts before a final fetch without retry
    """

    token_store: GadgetOAuth2TokenStore
    send_trace_to_client: bool = False
    viewer_access_tokens_enabled: bool = False
    max_attempts: int = DEFAULT_MAX_ATTEMPTS


@dataclass
class OAuth2Handlers:
    """The handler registries an OAuth2Request dispatches to."""

    grants: HandlerRegistry
    client_auth: HandlerRegistry
    resources: HandlerRegistry
    authorization_endpoint: list[AuthorizationEndpointResponseHandler] = field(
        default_factory=list
    )
    token_endpoint: list[TokenEndpointResponseHandler] = field(default_factory=list)


class RefreshLocks:
    """
    One asyncio.Lock per token key.

    Locks live only while some fetch holds a reference, so the map does
    not grow with the number of users ever seen.
    """

    def __init__(self):
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def get(self, key) -> asyncio.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                self._locks[key] = lock
            return lock


def _refresh_key(accessor: OAuth2Accessor) -> tuple:
    return (accessor.gadget_uri, accessor.service_name, accessor.token_user, accessor.scope)


def _strict_no_cache(status: int = HttpResponse.SC_OK) -> HttpResponse:
    response = HttpResponse(status=status)
    response.set_strict_no_cache()
    return response


class OAuth2Request:
    """
    State machine for a single OAuth2-signed fetch.

    An instance is used for one fetch only; create a new one per request
    (OAuth2RequestFactory.create()).
    """

    def __init__(
        self,
        config: OAuth2FetcherConfig,
        fetcher: HttpFetcher,
        handlers: OAuth2Handlers,
        refresh_locks: RefreshLocks | None = None,
    ):
        self.config = config
        self.fetcher = fetcher
        self.handlers = handlers
        self.refresh_locks = refresh_locks or RefreshLocks()
        self.store = config.token_store.store

        self.real_request: HttpRequest | None = None
        self.response_params = OAuth2ResponseParams(config.send_trace_to_client)
        self.accessor: OAuth2Accessor | None = None
        self.attempt_counter = 0
        self._traced_causes: set[int] = set()

    # -- entry point ---------------------------------------------------------

    async def fetch(self, request: HttpRequest | None) -> HttpResponse:
        """
        Fetch request on behalf of the gadget user.

        Returns the resource response, a 200 strict-no-cache response with
        ``approval_url`` metadata when the user must authorize, or a 403
        error response carrying the oauthError fields.
        """
        try:
            if request is None or request.security_context is None:
                return self._error_response(
                    OAuth2HandlerError(
                        OAuth2Error.MISSING_FETCH_PARAMS, "no request or security context"
                    )
                )

            self.real_request = request
            arguments = request.oauth2_arguments
            if arguments is None:
                return self._error_response(
                    OAuth2HandlerError(OAuth2Error.FETCH_INIT_PROBLEM, "no OAuth2 arguments")
                )

            set_log_context(
                request_id=generate_request_id(),
                gadget_uri=request.gadget_uri or "",
                service_name=arguments.service_name,
            )
            try:
                self.accessor = await self.config.token_store.get_oauth2_accessor(
                    request.security_context, arguments, request.gadget_uri
                )
            except OAuth2RequestError as e:
                self.accessor = OAuth2Accessor.with_error(
                    e.to_handler_error(),
                    gadget_uri=request.gadget_uri or "",
                    service_name=arguments.service_name,
                    user=request.security_context.viewer_id or "",
                    scope=arguments.scope or "",
                )

            accessor = self.accessor
            accessor.redirecting = False
            accessor.additional_request_params = dict(arguments.additional_params)
            if not accessor.is_error_response and not accessor.is_valid():
                accessor.set_error_response(
                    OAuth2HandlerError(
                        OAuth2Error.GET_OAUTH2_ACCESSOR_PROBLEM,
                        f"no OAuth2 client registered for {accessor.gadget_uri} "
                        f"service {accessor.service_name}",
                    )
                )

            log_with_context(
                logger,
                logging.DEBUG,
                "Starting OAuth2 fetch",
                gadget_uri=accessor.gadget_uri,
                service_name=accessor.service_name,
                grant_type=accessor.grant_type,
            )

            response = None
            if not accessor.is_error_response:
                response = await self._attempt_fetch(accessor)
            return self._process_response(accessor, response)

        except Exception as e:
            log_exception(
                logger,
                e,
                "Exception occurred during OAuth2 fetch",
                gadget_uri=request.gadget_uri if request is not None else None,
            )
            error = OAuth2HandlerError(
                OAuth2Error.FETCH_PROBLEM, "exception occurred during fetch", cause=e
            )
            if self.accessor is None:
                self.accessor = OAuth2Accessor.with_error(error)
            else:
                self.accessor.set_error_response(error)
            return self._error_response(error)

        finally:
            self._finish()

    def _finish(self) -> None:
        accessor = self.accessor
        if accessor is None:
            return
        if not accessor.redirecting:
            accessor.invalidate()
            self.store.remove_oauth2_accessor(accessor)
            self.accessor = None
        else:
            if accessor.is_error_response:
                logger.warning(
                    f"Keeping redirecting accessor with error {accessor.error}",
                    extra={"gadget_uri": accessor.gadget_uri},
                )
            # The callback resumes from this instance
            self.store.store_oauth2_accessor(accessor)

    # -- state machine -------------------------------------------------------

    async def _attempt_fetch(self, accessor: OAuth2Accessor) -> HttpResponse | None:
        max_attempts = self.config.max_attempts
        if self.attempt_counter > max_attempts:
            logger.debug(
                "Too many OAuth2 attempts, fetching without retry",
                extra={"attempt": self.attempt_counter, "max_attempts": max_attempts},
            )
            return await self._fetch_data(accessor, last_attempt=True)

        self.attempt_counter += 1

        if accessor.is_error_response:
            return self._error_response(accessor.error)

        response = None
        if accessor.access_token is not None:
            response = await self._fetch_data(
                accessor, last_attempt=self.attempt_counter > max_attempts
            )
        elif accessor.refresh_token is not None:
            if self._can_refresh(accessor):
                response, attempt = await self._refresh_once(accessor)
                if attempt:
                    self.store.remove_oauth2_accessor(accessor)
                    response = await self._attempt_fetch(accessor)
            else:
                accessor.access_token = None
                accessor.refresh_token = None
                response = await self._attempt_fetch(accessor)
        elif not accessor.redirecting and self._check_can_authorize(accessor):
            complete_url = await self._authorize(accessor)
            if complete_url:
                self.response_params.authorization_url = complete_url
                accessor.redirecting = True
            else:
                response = await self._attempt_fetch(accessor)

        if response is None:
            if accessor.redirecting:
                response = _strict_no_cache()
            else:
                accessor.access_token = None
                response = await self._attempt_fetch(accessor)
        return response

    async def _refresh_once(self, accessor: OAuth2Accessor) -> tuple[HttpResponse | None, bool]:
        """
        Refresh under the per-key lock.

        Returns (error response, False) when refreshing failed, otherwise
        (None, True) and the accessor holds whatever tokens are current.
        """
        async with self.refresh_locks.get(_refresh_key(accessor)):
            current = self.store.get_token(
                accessor.gadget_uri,
                accessor.service_name,
                accessor.token_user,
                accessor.scope,
                TokenType.ACCESS,
            )
            if current is not None and not current.is_expired():
                logger.debug(
                    "Access token already refreshed by a concurrent fetch",
                    extra={"gadget_uri": accessor.gadget_uri, "service_name": accessor.service_name},
                )
                accessor.access_token = current
                return None, True

            error = await self._refresh_token(accessor)
            if error is None:
                return None, True
            return self._error_response(error), False

    def _can_refresh(self, accessor: OAuth2Accessor) -> bool:
        return True

    def _check_can_authorize(self, accessor: OAuth2Accessor) -> bool:
        security_context = self.real_request.security_context
        owner = security_context.owner_id
        viewer = security_context.viewer_id
        if owner is None or viewer is None:
            accessor.set_error_response(
                OAuth2HandlerError(OAuth2Error.AUTHORIZE_PROBLEM, "pageOwner or pageViewer is null")
            )
            return False
        if not self.config.viewer_access_tokens_enabled and owner != viewer:
            accessor.set_error_response(
                OAuth2HandlerError(OAuth2Error.AUTHORIZE_PROBLEM, "pageViewer is not pageOwner")
            )
            return False
        return True

    # -- authorization -------------------------------------------------------

    async def _authorize(self, accessor: OAuth2Accessor) -> str | None:
        """
        Run the grant for the accessor's grant type.

        Returns the URL to send the user to for redirect grants; None once
        a direct grant has run (or failed, leaving an error on the accessor).
        """
        handler = self.handlers.grants.get(accessor.grant_type)
        if handler is None:
            accessor.set_error_response(
                OAuth2HandlerError(
                    OAuth2Error.AUTHENTICATION_PROBLEM,
                    f"no {self.handlers.grants.kind} found for {accessor.grant_type}",
                )
            )
            return None

        try:
            complete_url = handler.get_complete_url(accessor)
        except OAuth2RequestError as e:
            logger.debug(f"Error getting complete url: {e}")
            accessor.set_error_response(e.to_handler_error())
            return None

        if handler.is_redirect_required():
            log_with_context(
                logger,
                logging.INFO,
                "User authorization required",
                gadget_uri=accessor.gadget_uri,
                service_name=accessor.service_name,
                grant_type=accessor.grant_type,
                authorization_url=complete_url,
            )
            return complete_url

        error = await self._authorize_direct(accessor, handler, complete_url)
        if error is not None:
            accessor.set_error_response(error)
        return None

    async def _authorize_direct(
        self, accessor: OAuth2Accessor, handler: GrantRequestHandler, complete_url: str
    ) -> OAuth2HandlerError | None:
        try:
            authorization_request = handler.get_authorization_request(accessor, complete_url)
        except OAuth2RequestError as e:
            return e.to_handler_error()
        if authorization_request is None:
            return OAuth2HandlerError(
                OAuth2Error.AUTHORIZE_PROBLEM, "grant produced no authorization request"
            )

        try:
            response = await self.fetcher.fetch(authorization_request)
        except TransportError as e:
            return OAuth2HandlerError(
                OAuth2Error.AUTHORIZE_PROBLEM, "exception thrown fetching authorization", cause=e
            )
        if response.status != HttpResponse.SC_OK:
            self.response_params.add_request_trace(authorization_request, response)

        if handler.is_authorization_endpoint_response():
            for response_handler in self.handlers.authorization_endpoint:
                if response_handler.handles_response(accessor, response):
                    error = await response_handler.handle_response(accessor, response)
                    if error is not None:
                        return error

        if handler.is_token_endpoint_response():
            for response_handler in self.handlers.token_endpoint:
                if response_handler.handles_response(accessor, response):
                    error = response_handler.handle_response(accessor, response)
                    if error is not None:
                        return error
        return None

    async def _refresh_token(self, accessor: OAuth2Accessor) -> OAuth2HandlerError | None:
        """
        Exchange the refresh token for a new access token.

        A 400/401 from the provider means the refresh token is dead: it is
        removed and None is returned so the caller falls back to authorizing.
        """
        if not accessor.token_url:
            return OAuth2HandlerError(OAuth2Error.REFRESH_TOKEN_PROBLEM, "token_url is empty")

        request = HttpRequest(
            uri=build_url(accessor.token_url, None), method="POST", gadget_uri=accessor.gadget_uri
        )
        body = {GRANT_TYPE: REFRESH_TOKEN, REFRESH_TOKEN: accessor.refresh_token.secret_text}
        if accessor.scope:
            body[SCOPE] = accessor.scope
        request.set_form_body(body)

        error = apply_client_authentication(
            request, accessor, self.handlers.client_auth, OAuth2Error.REFRESH_TOKEN_PROBLEM
        )
        if error is not None:
            return error
        if not is_uri_allowed(request.uri, accessor.allowed_domains):
            return OAuth2HandlerError(
                OAuth2Error.REFRESH_TOKEN_PROBLEM,
                "error fetching refresh token - domain not allowed",
            )

        try:
            response = await self.fetcher.fetch(request)
        except TransportError as e:
            return OAuth2HandlerError(
                OAuth2Error.REFRESH_TOKEN_PROBLEM, "error fetching refresh token", cause=e
            )

        status = response.status
        if status in (HttpResponse.SC_UNAUTHORIZED, HttpResponse.SC_BAD_REQUEST):
            self.response_params.add_request_trace(request, response)
            removal_error = self._drop_refresh_token(accessor)
            if removal_error is not None:
                return removal_error
            logger.info(
                f"Received {status} from provider, removed refresh token",
                extra={"gadget_uri": accessor.gadget_uri, "http_status": status},
            )
            return None
        if status != HttpResponse.SC_OK:
            self.response_params.add_request_trace(request, response)
            return OAuth2HandlerError(
                OAuth2Error.REFRESH_TOKEN_PROBLEM,
                f"bad response from server : {status}",
                description=sanitize_body(response.body_text, response.get_header("Content-Type")),
            )

        for response_handler in self.handlers.token_endpoint:
            if response_handler.handles_response(accessor, response):
                error = response_handler.handle_response(accessor, response)
                if error is not None:
                    removal_error = self._drop_refresh_token(accessor)
                    if removal_error is not None:
                        return OAuth2HandlerError(
                            OAuth2Error.REFRESH_TOKEN_PROBLEM,
                            error.context_message,
                            cause=removal_error.cause,
                            uri=error.uri,
                            description=error.description,
                        )
                    return error

        log_with_context(
            logger,
            logging.INFO,
            "Refreshed access token",
            gadget_uri=accessor.gadget_uri,
            service_name=accessor.service_name,
        )
        return None

    def _drop_refresh_token(self, accessor: OAuth2Accessor) -> OAuth2HandlerError | None:
        try:
            self.store.remove_token_by_key(self._token_key(accessor, TokenType.REFRESH))
        except OAuth2StoreError as e:
            return OAuth2HandlerError(
                OAuth2Error.REFRESH_TOKEN_PROBLEM, "failed to remove refresh token", cause=e
            )
        accessor.refresh_token = None
        return None

    # -- resource fetch ------------------------------------------------------

    async def _fetch_data(self, accessor: OAuth2Accessor, last_attempt: bool) -> HttpResponse | None:
        try:
            sent, response = await self._fetch_from_server(accessor, last_attempt)
        except OAuth2RequestError as e:
            return self._error_response(e.to_handler_error())
        if response is not None and response.status != HttpResponse.SC_OK:
            self.response_params.add_request_trace(sent, response)
        return response

    async def _fetch_from_server(
        self, accessor: OAuth2Accessor, last_attempt: bool
    ) -> tuple[HttpRequest, HttpResponse | None]:
        """
        Sign and send a copy of the real request.

        Returns a None response when the caller should try again: the
        token expired, or the provider rejected it with a 4xx.

        Raises:
            OAuth2RequestError: On transport failure or when signing fails
        """
        request = dataclasses.replace(self.real_request, headers=dict(self.real_request.headers))
        now = now_seconds()

        access_token = accessor.access_token
        if access_token is not None and access_token.is_expired(now):
            self._remove_token(access_token, "error removing access_token")
            accessor.access_token = access_token = None
            if not last_attempt:
                return request, None

        refresh_token = accessor.refresh_token
        if refresh_token is not None and refresh_token.is_expired(now):
            self._remove_token(refresh_token, "error removing refresh_token")
            accessor.refresh_token = None
            if not last_attempt:
                return request, None

        if access_token is not None:
            if is_uri_allowed(request.uri, accessor.allowed_domains):
                self._sign(accessor, access_token, request)
            else:
                logger.warning(
                    f"Gadget {accessor.gadget_uri} attempted to send OAuth2 token "
                    f"to an unauthorized domain",
                    extra={"gadget_uri": accessor.gadget_uri, "http_url": request.uri},
                )

        try:
            response = await self.fetcher.fetch(request)
        except TransportError as e:
            raise OAuth2RequestError(
                OAuth2Error.MISSING_SERVER_RESPONSE, "error fetching resource", cause=e
            ) from e
        if response is None:
            raise OAuth2RequestError(OAuth2Error.MISSING_SERVER_RESPONSE, "response is null")

        if is_client_error(response.status):
            log_with_context(
                logger,
                logging.INFO,
                f"Resource server returned {response.status}, discarding tokens",
                gadget_uri=accessor.gadget_uri,
                service_name=accessor.service_name,
                http_status=response.status,
                error_category=classify_http_status(response.status).value,
            )
            for token_type in (TokenType.ACCESS, TokenType.REFRESH):
                try:
                    self.store.remove_token_by_key(self._token_key(accessor, token_type))
                except OAuth2StoreError as e:
                    raise OAuth2RequestError(
                        OAuth2Error.MISSING_SERVER_RESPONSE,
                        f"error removing {token_type.value}",
                        cause=e,
                    ) from e
            accessor.access_token = None
            accessor.refresh_token = None
            if not last_attempt:
                return request, None

        return request, response

    def _sign(self, accessor: OAuth2Accessor, token: OAuth2Token, request: HttpRequest) -> None:
        token_type = token.token_type or BEARER_TOKEN_TYPE
        handler = self.handlers.resources.get(token_type)
        if handler is None:
            raise OAuth2RequestError(
                OAuth2Error.FETCH_PROBLEM,
                f"no {self.handlers.resources.kind} found for {token_type}",
            )
        error = handler.add_oauth2_params(accessor, request)
        if error is not None:
            raise OAuth2RequestError(
                error.error,
                error.context_message,
                cause=error.cause,
                uri=error.uri,
                description=error.description,
            )

    def _remove_token(self, token: OAuth2Token, context: str) -> None:
        try:
            self.store.remove_token(token)
        except OAuth2StoreError as e:
            raise OAuth2RequestError(OAuth2Error.MISSING_SERVER_RESPONSE, context, cause=e) from e

    @staticmethod
    def _token_key(accessor: OAuth2Accessor, token_type: TokenType) -> TokenKey:
        return TokenKey(
            accessor.gadget_uri,
            accessor.service_name,
            accessor.token_user,
            accessor.scope,
            token_type,
        )

    # -- responses -----------------------------------------------------------

    def _process_response(
        self, accessor: OAuth2Accessor, response: HttpResponse | None
    ) -> HttpResponse:
        if accessor.is_error_response:
            return self._error_response(accessor.error)
        if response is None:
            return self._error_response(
                OAuth2HandlerError(OAuth2Error.FETCH_PROBLEM, "no response")
            )

        if self.response_params.authorization_url:
            response.set_metadata(APPROVAL_URL, self.response_params.authorization_url)
            accessor.redirecting = True
        else:
            accessor.redirecting = False
        return response

    def _error_response(self, error: OAuth2HandlerError) -> HttpResponse:
        """403 strict-no-cache response carrying the oauthError fields."""
        response = _strict_no_cache(HttpResponse.SC_FORBIDDEN)
        if error.cause is not None and id(error.cause) not in self._traced_causes:
            self._traced_causes.add(id(error.cause))
            self.response_params.add_exception(error.cause)

        if self.config.send_trace_to_client:
            text, uri = error.full_description, error.uri
        else:
            text, uri = "", ""
        self.response_params.add_to_response(
            response, error.error_code, text, uri, error.error.explanation
        )
        log_with_context(
            logger,
            logging.WARNING,
            f"OAuth2 fetch failed: {error.error_code}",
            error_code=error.error_code,
            error_message=error.full_description,
        )
        return response


class OAuth2RequestFactory:
    """Creates OAuth2Request instances sharing configuration, handlers and locks."""

    def __init__(self, config: OAuth2FetcherConfig, fetcher: HttpFetcher, handlers: OAuth2Handlers):
        self.config = config
        self.fetcher = fetcher
        self.handlers = handlers
        self.refresh_locks = RefreshLocks()

    def create(self) -> OAuth2Request:
        return OAuth2Request(self.config, self.fetcher, self.handlers, self.refresh_locks)

    async def fetch(self, request: HttpRequest) -> HttpResponse:
        return await self.create().fetch(request)


__all__ = [
    "OAuth2FetcherConfig",
    "OAuth2Handlers",
    "RefreshLocks",
    "OAuth2Request",
    "OAuth2RequestFactory",
]
