"""
Encryption primitives used by the OAuth2 runtime.

Two concerns, both backed by Fernet (AES-128-CBC + HMAC-SHA256):
    - OAuth2Encrypter: secrets at rest (client secrets, token secrets)
    - BlobCrypter: callback state sealed into the ``state`` parameter
"""

import base64
import json
import logging
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken

from gadgets.oauth2.exceptions import CallbackStateError, OAuth2EncryptionError

logger = logging.getLogger(__name__)


class OAuth2Encrypter(Protocol):
    """Encrypts secrets before they reach a persister."""

    def encrypt(self, plain: bytes) -> bytes:
        ...

    def decrypt(self, encrypted: bytes) -> bytes:
        ...


class NoOpOAuth2Encrypter:
    """Stores secrets as given. For development and tests only."""

    def encrypt(self, plain: bytes) -> bytes:
        return plain

    def decrypt(self, encrypted: bytes) -> bytes:
        return encrypted


class FernetOAuth2Encrypter:
    """
    Fernet encryption of secrets at rest.

    Args:
        key: Base64-encoded 32-byte Fernet key
    """

    def __init__(self, key: str | bytes):
        try:
            self._cipher = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise OAuth2EncryptionError("Invalid encryption key", cause=e) from e

    def encrypt(self, plain: bytes) -> bytes:
        if not plain:
            return b""
        return self._cipher.encrypt(plain)

    def decrypt(self, encrypted: bytes) -> bytes:
        if not encrypted:
            return b""
        try:
            return self._cipher.decrypt(encrypted)
        except InvalidToken as e:
            raise OAuth2EncryptionError("Unable to decrypt secret", cause=e) from e


def create_encrypter(key: str | None) -> OAuth2Encrypter:
    """Fernet encrypter for key, or a no-op encrypter when key is empty."""
    if key:
        return FernetOAuth2Encrypter(key)
    logger.warning("No encryption key configured. OAuth2 secrets will be stored unencrypted.")
    return NoOpOAuth2Encrypter()


class BlobCrypter(Protocol):
    """
    Seals a string map into an opaque, URL-safe string.

    unwrap raises CallbackStateError when the blob was tampered with,
    corrupted, sealed with another key or is older than max_age seconds.
    """

    def wrap(self, values: dict[str, str]) -> str:
        ...

    def unwrap(self, blob: str, max_age: int | None = None) -> dict[str, str]:
        ...


class FernetBlobCrypter:
    """
    BlobCrypter backed by Fernet.

    Fernet tokens are URL-safe base64 and carry their creation time, so
    unwrap can enforce a maximum age without extra fields.
    """

    def __init__(self, key: str | bytes | None = None):
        if not key:
            key = Fernet.generate_key()
            logger.info("No state key configured, using a random per-process key")
        try:
            self._cipher = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise CallbackStateError("Invalid state key", cause=e) from e

    def wrap(self, values: dict[str, str]) -> str:
        payload = json.dumps(values, separators=(",", ":"), sort_keys=True).encode("utf-8")
        return self._cipher.encrypt(payload).decode("ascii")

    def unwrap(self, blob: str, max_age: int | None = None) -> dict[str, str]:
        try:
            payload = self._cipher.decrypt(blob.encode("ascii"), ttl=max_age)
        except (InvalidToken, UnicodeEncodeError) as e:
            raise CallbackStateError("Invalid or expired state blob", cause=e) from e
        try:
            values = json.loads(payload)
        except ValueError as e:
            raise CallbackStateError("Corrupt state blob", cause=e) from e
        if not isinstance(values, dict):
            raise CallbackStateError("Corrupt state blob")
        return {str(k): str(v) for k, v in values.items()}

    @staticmethod
    def generate_key() -> str:
        """Generate a new base64-encoded Fernet key."""
        return Fernet.generate_key().decode()


def is_valid_key(key: str) -> bool:
    """True if key decodes to the 32 bytes Fernet requires."""
    try:
        return len(base64.urlsafe_b64decode(key.encode())) == 32
    except (ValueError, TypeError):
        return False


__all__ = [
    "OAuth2Encrypter",
    "NoOpOAuth2Encrypter",
    "FernetOAuth2Encrypter",
    "create_encrypter",
    "BlobCrypter",
    "FernetBlobCrypter",
    "is_valid_key",
]
