"""
Callback state carried across the authorization redirect.

The state names the accessor a callback belongs to. It travels through
the provider as the OAuth2 ``state`` parameter, sealed by a BlobCrypter
and bounded by an expiry, so the container keeps nothing per redirect
beyond the cached accessor.
"""

import logging
from dataclasses import dataclass

from gadgets.oauth2.encryption import BlobCrypter
from gadgets.oauth2.exceptions import CallbackStateError
from gadgets.oauth2.models import AccessorKey, now_seconds

logger = logging.getLogger(__name__)

DEFAULT_STATE_MAX_AGE_SECONDS = 600

_GADGET_URI = "g"
_SERVICE_NAME = "sn"
_USER = "u"
_SCOPE = "sc"
_EXPIRES_AT = "e"


@dataclass(frozen=True)
class OAuth2CallbackState:
    """
    Identity of an accessor awaiting the authorization callback.

    Attributes:
        gadget_uri: Gadget URI
        service_name: Service name
        user: Viewer the tokens will belong to
        scope: Requested scope
        expires_at: Epoch seconds after which the state is worthless
    """

    gadget_uri: str
    service_name: str
    user: str
    scope: str
    expires_at: int = 0

    @classmethod
    def for_accessor(
        cls, key: AccessorKey, max_age: int = DEFAULT_STATE_MAX_AGE_SECONDS
    ) -> "OAuth2CallbackState":
        return cls(
            gadget_uri=key.gadget_uri,
            service_name=key.service_name,
            user=key.user,
            scope=key.scope,
            expires_at=now_seconds() + max_age,
        )

    @property
    def accessor_key(self) -> AccessorKey:
        return AccessorKey(self.gadget_uri, self.service_name, self.user, self.scope)

    def is_expired(self, now: int | None = None) -> bool:
        return (now if now is not None else now_seconds()) >= self.expires_at

    def encode(self, crypter: BlobCrypter) -> str:
        """Seal the state; raises CallbackStateError if the crypter fails."""
        return crypter.wrap(
            {
                _GADGET_URI: self.gadget_uri,
                _SERVICE_NAME: self.service_name,
                _USER: self.user,
                _SCOPE: self.scope,
                _EXPIRES_AT: str(self.expires_at),
            }
        )

    @classmethod
    def decode(
        cls,
        crypter: BlobCrypter,
        blob: str | None,
        max_age: int = DEFAULT_STATE_MAX_AGE_SECONDS,
        now: int | None = None,
    ) -> "OAuth2CallbackState | None":
        """
        Unseal a state blob.

        Returns None for a missing, tampered, malformed or expired blob;
        the caller then starts a fresh authorization.
        """
        if not blob:
            return None
        try:
            values = crypter.unwrap(blob, max_age=max_age)
        except CallbackStateError as e:
            logger.info(f"Discarding callback state: {e.message}")
            return None

        try:
            state = cls(
                gadget_uri=values[_GADGET_URI],
                service_name=values[_SERVICE_NAME],
                user=values[_USER],
                scope=values.get(_SCOPE, ""),
                expires_at=int(values[_EXPIRES_AT]),
            )
        except (KeyError, ValueError) as e:
            logger.info(f"Discarding malformed callback state: {e!r}")
            return None

        if state.is_expired(now):
            logger.info(
                "Discarding expired callback state",
                extra={"gadget_uri": state.gadget_uri, "service_name": state.service_name},
            )
            return None
        return state


__all__ = [
    "DEFAULT_STATE_MAX_AGE_SECONDS",
    "OAuth2CallbackState",
]
