"""Exceptions raised by the HTTP transport."""

from core.errors.exceptions import TransientError


class TransportError(TransientError):
    """
    The request never produced an HTTP response.

    Covers connection failures, TLS errors and deadline expiry. Never
    carries a status code, so it can not be confused with a 4xx rejection.
    """

    pass


__all__ = ["TransportError"]
