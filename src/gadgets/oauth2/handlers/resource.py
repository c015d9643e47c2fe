"""
Resource request handlers: attach an access token to a resource fetch.

Bearer tokens (RFC 6750) go in the Authorization header and/or the
``access_token`` query parameter. MAC tokens
(draft-ietf-oauth-v2-http-mac-01) sign the request with the token's MAC
key and send the signature in the Authorization header.
"""

import base64
import hashlib
import hmac
import logging
import secrets
from urllib.parse import urlparse

from core.http.models import HttpRequest
from gadgets.oauth2.accessor import OAuth2Accessor
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError
from gadgets.oauth2.handlers.base import ResourceRequestHandler
from gadgets.oauth2.message import (
    ACCESS_TOKEN,
    AUTHORIZATION_HEADER,
    BEARER_TOKEN_TYPE,
    HMAC_SHA_1,
    HMAC_SHA_256,
    MAC_TOKEN_TYPE,
)
from gadgets.oauth2.models import now_seconds

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}

MAC_DIGESTS = {
    HMAC_SHA_1: hashlib.sha1,
    HMAC_SHA_256: hashlib.sha256,
}


def _check(
    accessor: OAuth2Accessor | None, request: HttpRequest | None, error: OAuth2Error
) -> OAuth2HandlerError | None:
    if request is None:
        return OAuth2HandlerError(error, "request is null")
    if accessor is None or not accessor.is_valid() or accessor.is_error_response:
        return OAuth2HandlerError(error, "accessor is invalid")
    if accessor.access_token is None or not accessor.access_token.secret:
        return OAuth2HandlerError(error, "access token is empty")
    return None


class BearerTokenHandler(ResourceRequestHandler):
    """
    Sends the token as configured on the client.

    A client that asks for neither the header nor the URL parameter gets
    the header.
    """

    token_type = BEARER_TOKEN_TYPE

    def add_oauth2_params(
        self, accessor: OAuth2Accessor, request: HttpRequest
    ) -> OAuth2HandlerError | None:
        error = _check(accessor, request, OAuth2Error.BEARER_TOKEN_PROBLEM)
        if error is not None:
            return error

        token = accessor.access_token
        if token.token_type and token.token_type.lower() != BEARER_TOKEN_TYPE.lower():
            return OAuth2HandlerError(
                OAuth2Error.BEARER_TOKEN_PROBLEM, f"token type is {token.token_type}"
            )

        use_header = accessor.authorization_header or not accessor.url_parameter
        if use_header:
            request.set_header(AUTHORIZATION_HEADER, f"{BEARER_TOKEN_TYPE} {token.secret_text}")
        if accessor.url_parameter:
            request.add_query_params({ACCESS_TOKEN: token.secret_text})
        return None


def _port(parsed) -> int:
    return parsed.port or DEFAULT_PORTS.get(parsed.scheme.lower(), 80)


def normalized_request_string(
    nonce: str, method: str, uri: str, body_hash: str, ext: str
) -> str:
    """Signature base string: one value per line, each line newline-terminated."""
    parsed = urlparse(uri)
    request_uri = parsed.path or "/"
    if parsed.query:
        request_uri = f"{request_uri}?{parsed.query}"
    lines = [
        nonce,
        method.upper(),
        request_uri,
        (parsed.hostname or "").lower(),
        str(_port(parsed)),
        body_hash,
        ext,
    ]
    return "".join(f"{line}\n" for line in lines)


class MacTokenHandler(ResourceRequestHandler):
    """MAC access authentication."""

    token_type = MAC_TOKEN_TYPE

    def __init__(self, clock=now_seconds):
        self.clock = clock

    def add_oauth2_params(
        self, accessor: OAuth2Accessor, request: HttpRequest
    ) -> OAuth2HandlerError | None:
        error = _check(accessor, request, OAuth2Error.MAC_TOKEN_PROBLEM)
        if error is not None:
            return error

        token = accessor.access_token
        algorithm = (token.mac_algorithm or "").lower()
        digest = MAC_DIGESTS.get(algorithm)
        if digest is None:
            return OAuth2HandlerError(
                OAuth2Error.MAC_TOKEN_PROBLEM, f"unsupported mac algorithm {token.mac_algorithm}"
            )
        if not token.mac_secret:
            return OAuth2HandlerError(OAuth2Error.MAC_TOKEN_PROBLEM, "mac secret is empty")

        age = max(self.clock() - token.issued_at, 0)
        nonce = f"{age}:{secrets.token_hex(8)}"
        body_hash = ""
        if request.body:
            body_hash = base64.b64encode(digest(request.body).digest()).decode("ascii")
        ext = token.mac_ext or ""

        base_string = normalized_request_string(nonce, request.method, request.uri, body_hash, ext)
        mac = hmac.new(token.mac_secret, base_string.encode("utf-8"), digest).digest()

        parts = [f'id="{token.secret_text}"', f'nonce="{nonce}"']
        if body_hash:
            parts.append(f'bodyhash="{body_hash}"')
        if ext:
            parts.append(f'ext="{ext}"')
        parts.append(f'mac="{base64.b64encode(mac).decode("ascii")}"')
        request.set_header(AUTHORIZATION_HEADER, "MAC " + ",".join(parts))
        return None


__all__ = [
    "BearerTokenHandler",
    "MacTokenHandler",
    "normalized_request_string",
]
