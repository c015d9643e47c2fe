"""OAuth2 runtime exceptions."""

from core.errors.exceptions import (
    ConfigurationError,
    ContainerError,
    PermanentError,
    TransientError,
)
from gadgets.oauth2.errors import OAuth2Error, OAuth2HandlerError


class OAuth2RequestError(PermanentError):
    """
    A step of the OAuth2 flow failed with a taxonomy error.

    Raised inside handlers and converted to an OAuth2HandlerError before
    it reaches the accessor; never escapes OAuth2Request.fetch.
    """

    def __init__(
        self,
        error: OAuth2Error,
        message: str,
        cause: Exception | None = None,
        uri: str = "",
        description: str = "",
    ):
        super().__init__(message, cause, {"error_code": error.error_code})
        self.error = error
        self.uri = uri
        self.description = description

    def to_handler_error(self) -> OAuth2HandlerError:
        return OAuth2HandlerError(
            error=self.error,
            context_message=self.message,
            cause=self.cause or self,
            uri=self.uri,
            description=self.description,
        )


class OAuth2StoreError(TransientError):
    """Reading or writing clients/tokens failed."""

    pass


class OAuth2PersistenceError(OAuth2StoreError):
    """The durable persister failed."""

    pass


class OAuth2CacheError(OAuth2StoreError):
    """The cache rejected an operation."""

    pass


class OAuth2EncryptionError(PermanentError):
    """A secret could not be encrypted or decrypted."""

    pass


class CallbackStateError(PermanentError):
    """A callback state blob could not be sealed or unsealed."""

    pass


class SpecLookupError(ContainerError):
    """The gadget spec could not be loaded."""

    pass


class HandlerNotFoundError(ConfigurationError):
    """No handler is registered for a grant, authentication or token type."""

    def __init__(self, kind: str, discriminator: str | None):
        super().__init__(f"no {kind} found for {discriminator}")
        self.kind = kind
        self.discriminator = discriminator


__all__ = [
    "OAuth2RequestError",
    "OAuth2StoreError",
    "OAuth2PersistenceError",
    "OAuth2CacheError",
    "OAuth2EncryptionError",
    "CallbackStateError",
    "SpecLookupError",
    "HandlerNotFoundError",
]
