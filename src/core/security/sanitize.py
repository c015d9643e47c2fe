"""
Redaction of credentials from URLs, headers, bodies and messages.

Used for log records and for request traces echoed back to clients.
"""

import re
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

REDACTED = "[REDACTED]"

# Query/form parameters that carry credentials
SENSITIVE_PARAMS = frozenset(
    {
        "access_token",
        "refresh_token",
        "client_secret",
        "code",
        "state",
        "token",
        "id_token",
        "mac_key",
        "password",
        "secret",
        "key",
        "sig",
        "signature",
        "api_key",
        "apikey",
    }
)

SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
    }
)

# JSON fields in provider responses
SENSITIVE_JSON_PATTERN = re.compile(
    r'("(?:access_token|refresh_token|client_secret|mac_key|id_token)"\s*:\s*)"[^"]*"',
    re.IGNORECASE,
)

SENSITIVE_PATTERNS = [
    (re.compile(r"bearer\s+[a-zA-Z0-9\-_.~+/]+=*", re.IGNORECASE), "Bearer " + REDACTED),
    (re.compile(r"basic\s+[a-zA-Z0-9+/]+=*", re.IGNORECASE), "Basic " + REDACTED),
    (re.compile(r'(mac\s+id=)"[^"]*"', re.IGNORECASE), r'\1"' + REDACTED + '"'),
]

URL_PATTERN = re.compile(r'https?://[^\s"\'<>]+')


def _sanitize_pairs(pairs: list[tuple[str, str]]) -> list[tuple[str, str]]:
    return [(k, REDACTED if k.lower() in SENSITIVE_PARAMS else v) for k, v in pairs]


def sanitize_url(url: str) -> str:
    """
    Replace sensitive query and fragment parameter values with [REDACTED].

    Preserves the scheme, host and path for debugging.
    """
    if not url:
        return url

    try:
        parsed = urlparse(url)
    except ValueError:
        return url

    if not parsed.query and not parsed.fragment:
        return url

    query = parsed.query
    if query:
        query = urlencode(_sanitize_pairs(parse_qsl(query, keep_blank_values=True)), safe="[]")
    fragment = parsed.fragment
    if fragment and "=" in fragment:
        fragment = urlencode(
            _sanitize_pairs(parse_qsl(fragment, keep_blank_values=True)), safe="[]"
        )
    return urlunparse(parsed._replace(query=query, fragment=fragment))


def sanitize_headers(headers: dict[str, str]) -> dict[str, str]:
    """Copy of headers with credential-bearing values redacted."""
    return {k: (REDACTED if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


def sanitize_body(body: str, content_type: str | None = None) -> str:
    """Redact credentials from a form-encoded or JSON body."""
    if not body:
        return body
    content_type = (content_type or "").lower()
    if "x-www-form-urlencoded" in content_type or (
        "json" not in content_type and "=" in body and "{" not in body
    ):
        return urlencode(_sanitize_pairs(parse_qsl(body, keep_blank_values=True)), safe="[]")
    return SENSITIVE_JSON_PATTERN.sub(r'\1"' + REDACTED + '"', body)


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """
    Remove potentially sensitive data from error messages.

    Applies pattern-based redaction and truncates to max_length.
    """
    if not msg:
        return msg

    for pattern, replacement in SENSITIVE_PATTERNS:
        msg = pattern.sub(replacement, msg)

    msg = SENSITIVE_JSON_PATTERN.sub(r'\1"' + REDACTED + '"', msg)

    for match in URL_PATTERN.finditer(msg):
        original_url = match.group(0)
        sanitized = sanitize_url(original_url)
        if sanitized != original_url:
            msg = msg.replace(original_url, sanitized)

    if len(msg) > max_length:
        msg = msg[: max_length - 3] + "..."

    return msg


__all__ = [
    "REDACTED",
    "SENSITIVE_PARAMS",
    "SENSITIVE_HEADERS",
    "sanitize_url",
    "sanitize_headers",
    "sanitize_body",
    "sanitize_error_message",
]
