"""
URL host validation against per-client domain allowlists.

A client registration may restrict which hosts its credentials are sent
to. An empty allowlist means no restriction.
"""

import ipaddress
from collections.abc import Iterable
from urllib.parse import urlparse

ALLOWED_SCHEMES = frozenset({"http", "https"})

# Hosts never worth sending credentials to
BLOCKED_HOSTS = frozenset(
    {
        "0.0.0.0",
        "metadata.google.internal",
        "metadata.aws.internal",
        "169.254.169.254",
    }
)

LINK_LOCAL = ipaddress.ip_network("169.254.0.0/16")


def get_host(uri: str | None) -> str | None:
    """Return the lower-cased host of uri, or None if it has none."""
    if not uri:
        return None
    try:
        parsed = urlparse(uri)
    except ValueError:
        return None
    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        return None
    return parsed.hostname.lower()


def _is_blocked(host: str) -> bool:
    if host in BLOCKED_HOSTS:
        return True
    try:
        return ipaddress.ip_address(host) in LINK_LOCAL
    except ValueError:
        return False


def is_uri_allowed(uri: str | None, allowed_domains: Iterable[str] | None) -> bool:
    """
    Check that credentials may be sent to uri.

    The host must equal an allowed domain or be a subdomain of one
    (case-insensitive). With no allowlist every http(s) host is allowed
    except cloud metadata endpoints.

    Examples:
        >>> is_uri_allowed("https://api.example.com/photos", ["example.com"])
        True
        >>> is_uri_allowed("https://evil.com/?example.com", ["example.com"])
        False
        >>> is_uri_allowed("https://anything.org/", [])
        True
    """
    host = get_host(uri)
    if host is None or _is_blocked(host):
        return False

    domains = [d.strip().lower().lstrip(".") for d in (allowed_domains or []) if d and d.strip()]
    if not domains:
        return True

    return any(host == domain or host.endswith("." + domain) for domain in domains)


__all__ = [
    "ALLOWED_SCHEMES",
    "BLOCKED_HOSTS",
    "get_host",
    "is_uri_allowed",
]
