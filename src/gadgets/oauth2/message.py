"""
OAuth2 message codec.

Parses the four shapes a provider answer can take (URL fragment, query
string, JSON body, inbound callback request) into one parameter map and
exposes typed accessors for the well-known fields.
"""

import json
import logging
from collections.abc import Mapping
from urllib.parse import parse_qsl, urlparse

from gadgets.oauth2.errors import OAuth2Error

logger = logging.getLogger(__name__)

# Parameter names
ACCESS_TOKEN = "access_token"
AUTHORIZATION = "code"
CLIENT_ID = "client_id"
CLIENT_SECRET = "client_secret"
ERROR = "error"
ERROR_DESCRIPTION = "error_description"
ERROR_URI = "error_uri"
EXPIRES_IN = "expires_in"
GRANT_TYPE = "grant_type"
MAC_ALGORITHM = "mac_algorithm"
MAC_SECRET = "mac_key"
MAC_EXT = "ext"
REDIRECT_URI = "redirect_uri"
REFRESH_TOKEN = "refresh_token"
RESPONSE_TYPE = "response_type"
SCOPE = "scope"
STATE = "state"
TOKEN_TYPE = "token_type"

# Parameter values
AUTHORIZATION_CODE = "authorization_code"
CLIENT_CREDENTIALS = "client_credentials"
CODE_GRANT_TYPE = "code"
BASIC_AUTH_TYPE = "Basic"
STANDARD_AUTH_TYPE = "STANDARD"
NO_AUTH_TYPE = "NONE"
BEARER_TOKEN_TYPE = "Bearer"
MAC_TOKEN_TYPE = "mac"
HMAC_SHA_1 = "hmac-sha-1"
HMAC_SHA_256 = "hmac-sha-256"

# Headers and metadata
AUTHORIZATION_HEADER = "Authorization"
CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_TEXT = "text/plain"
CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
APPROVAL_URL = "approval_url"

WELL_KNOWN_PARAMS = frozenset(
    {
        ACCESS_TOKEN,
        AUTHORIZATION,
        ERROR,
        ERROR_DESCRIPTION,
        ERROR_URI,
        EXPIRES_IN,
        MAC_ALGORITHM,
        MAC_SECRET,
        REFRESH_TOKEN,
        SCOPE,
        STATE,
        TOKEN_TYPE,
    }
)


def _to_param(value) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class OAuth2Message:
    """
    Normalized OAuth2 provider message.

    Usage:
        msg = OAuth2Message()
        msg.parse_json(response.body_text)
        if msg.get_error() is not None:
            ...
        token = msg.access_token
    """

    def __init__(self):
        self._params: dict[str, str] = {}
        self._error: OAuth2Error | None = None
        self._error_resolved = False

    def _set(self, pairs) -> None:
        for key, value in pairs:
            if value is None:
                continue
            self._params[key] = _to_param(value)
        self._error_resolved = False

    def parse_fragment(self, fragment: str | None) -> None:
        """Parse "a=1&b=2" from a URL fragment (leading '#' allowed)."""
        if fragment:
            self._set(parse_qsl(fragment.lstrip("#"), keep_blank_values=True))

    def parse_query(self, query: str | None) -> None:
        """Parse a bare query string ("a=1&b=2", leading '?' allowed)."""
        if query:
            self._set(parse_qsl(query.lstrip("?"), keep_blank_values=True))

    def parse_url(self, url: str | None) -> None:
        """Parse the query and fragment parameters of a full URL."""
        if not url:
            return
        parsed = urlparse(url)
        self._set(parse_qsl(parsed.query, keep_blank_values=True))
        self.parse_fragment(parsed.fragment)

    def parse_json(self, text: str | None) -> None:
        """
        Parse a JSON object body.

        A body that is not a JSON object records UNKNOWN_PROBLEM as the
        message error instead of raising.
        """
        try:
            data = json.loads(text or "")
        except ValueError as e:
            logger.debug(f"Unable to parse JSON response: {e}")
            self._record_parse_failure("Unable to parse JSON response")
            return
        if not isinstance(data, dict):
            self._record_parse_failure("JSON response is not an object")
            return
        self._set(data.items())

    def parse_request(self, params: Mapping[str, str | list[str]]) -> None:
        """Parse the parameters of an inbound (callback) request."""
        pairs = []
        for key, value in params.items():
            if isinstance(value, (list, tuple)):
                value = value[0] if value else ""
            pairs.append((key, value))
        self._set(pairs)

    def _record_parse_failure(self, description: str) -> None:
        self._params[ERROR] = OAuth2Error.UNKNOWN_PROBLEM.error_code
        self._params[ERROR_DESCRIPTION] = description
        self._error = OAuth2Error.UNKNOWN_PROBLEM
        self._error_resolved = True

    def get_error(self) -> OAuth2Error | None:
        """Error carried by the message, mapped lazily onto OAuth2Error."""
        if not self._error_resolved:
            self._error = OAuth2Error.from_code(self._params.get(ERROR))
            self._error_resolved = True
        return self._error

    def set_error(self, error: OAuth2Error | None) -> None:
        self._error = error
        self._error_resolved = True

    def get(self, name: str) -> str | None:
        return self._params.get(name)

    @property
    def params(self) -> dict[str, str]:
        return dict(self._params)

    @property
    def unparsed_properties(self) -> dict[str, str]:
        """Provider-specific parameters outside the well-known set."""
        return {k: v for k, v in self._params.items() if k not in WELL_KNOWN_PARAMS}

    @property
    def access_token(self) -> str | None:
        return self._params.get(ACCESS_TOKEN)

    @property
    def refresh_token(self) -> str | None:
        return self._params.get(REFRESH_TOKEN)

    @property
    def authorization(self) -> str | None:
        return self._params.get(AUTHORIZATION)

    @property
    def state(self) -> str | None:
        return self._params.get(STATE)

    @property
    def token_type(self) -> str | None:
        return self._params.get(TOKEN_TYPE)

    @property
    def scope(self) -> str | None:
        return self._params.get(SCOPE)

    @property
    def expires_in(self) -> int | None:
        """expires_in as seconds, or None when absent or not a number."""
        value = self._params.get(EXPIRES_IN)
        if value is None or value == "":
            return None
        try:
            return int(float(value))
        except (ValueError, OverflowError):
            logger.warning(f"Ignoring non-numeric expires_in: {value!r}")
            return None

    @property
    def error_description(self) -> str | None:
        return self._params.get(ERROR_DESCRIPTION)

    @property
    def error_uri(self) -> str | None:
        return self._params.get(ERROR_URI)

    @property
    def mac_algorithm(self) -> str | None:
        return self._params.get(MAC_ALGORITHM)

    @property
    def mac_secret(self) -> str | None:
        return self._params.get(MAC_SECRET)

    def __repr__(self) -> str:
        keys = ", ".join(sorted(self._params))
        return f"OAuth2Message(params=[{keys}], error={self.get_error()})"


__all__ = [
    "OAuth2Message",
    "ACCESS_TOKEN",
    "AUTHORIZATION",
    "AUTHORIZATION_CODE",
    "AUTHORIZATION_HEADER",
    "APPROVAL_URL",
    "BASIC_AUTH_TYPE",
    "BEARER_TOKEN_TYPE",
    "CLIENT_CREDENTIALS",
    "CLIENT_ID",
    "CLIENT_SECRET",
    "CODE_GRANT_TYPE",
    "CONTENT_TYPE_FORM",
    "CONTENT_TYPE_JSON",
    "CONTENT_TYPE_TEXT",
    "ERROR",
    "ERROR_DESCRIPTION",
    "ERROR_URI",
    "EXPIRES_IN",
    "GRANT_TYPE",
    "HMAC_SHA_1",
    "HMAC_SHA_256",
    "MAC_ALGORITHM",
    "MAC_EXT",
    "MAC_SECRET",
    "MAC_TOKEN_TYPE",
    "NO_AUTH_TYPE",
    "REDIRECT_URI",
    "REFRESH_TOKEN",
    "RESPONSE_TYPE",
    "SCOPE",
    "STANDARD_AUTH_TYPE",
    "STATE",
    "TOKEN_TYPE",
]
