"""OAuth2 client registration and token models."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from gadgets.oauth2.message import BEARER_TOKEN_TYPE


class TokenType(Enum):
    """Role of a stored token."""

    ACCESS = "ACCESS"
    REFRESH = "REFRESH"


class ClientType(Enum):
    """Client type as defined by RFC 6749 section 2.1."""

    CONFIDENTIAL = "CONFIDENTIAL"
    PUBLIC = "PUBLIC"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: str | None) -> "ClientType":
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN


class ClientKey(NamedTuple):
    gadget_uri: str
    service_name: str


class AccessorKey(NamedTuple):
    gadget_uri: str
    service_name: str
    user: str
    scope: str


class TokenKey(NamedTuple):
    gadget_uri: str
    service_name: str
    user: str
    scope: str
    token_type: TokenType

    @classmethod
    def for_accessor(cls, key: AccessorKey, token_type: TokenType) -> "TokenKey":
        return cls(key.gadget_uri, key.service_name, key.user, key.scope, token_type)


def now_seconds() -> int:
    """Current time as integer epoch seconds."""
    return int(time.time())


@dataclass
class OAuth2Client:
    """
    Durable registration of an OAuth2 client for one (gadget, service) pair.

    Attributes:
        gadget_uri: Gadget the registration applies to
        service_name: Service name inside the gadget spec
        client_id: Client identifier issued by the provider
        client_secret: Client secret (plain bytes; encrypted only at rest)
        authorization_url: Provider authorization endpoint
        token_url: Provider token endpoint
        client_authentication_type: "Basic", "STANDARD" or "NONE"
        grant_type: "code", "client_credentials", ...
        redirect_uri: Redirect URI template (None = container default)
        type: Confidential/public client type
        authorization_header: Send access tokens in the Authorization header
        url_parameter: Send access tokens as a URL parameter
        allow_module_override: Gadget spec endpoints win over these
        shared_token: Tokens are shared by all users of the gadget
        allowed_domains: Hosts the client's credentials may be sent to
    """

    gadget_uri: str
    service_name: str
    client_id: str = ""
    client_secret: bytes = field(default=b"", repr=False)
    authorization_url: str | None = None
    token_url: str | None = None
    client_authentication_type: str = "NONE"
    grant_type: str = "code"
    redirect_uri: str | None = None
    type: ClientType = ClientType.UNKNOWN
    authorization_header: bool = False
    url_parameter: bool = False
    allow_module_override: bool = False
    shared_token: bool = False
    allowed_domains: list[str] = field(default_factory=list)

    @property
    def key(self) -> ClientKey:
        return ClientKey(self.gadget_uri, self.service_name)


@dataclass
class OAuth2Token:
    """
    Access or refresh token held for (gadget, service, user, scope).

    Times are epoch seconds; expires_at == 0 means the provider did not
    say when the token expires.
    """

    gadget_uri: str
    service_name: str
    user: str
    scope: str
    type: TokenType
    secret: bytes = field(default=b"", repr=False)
    token_type: str = BEARER_TOKEN_TYPE
    issued_at: int = 0
    expires_at: int = 0
    mac_algorithm: str | None = None
    mac_secret: bytes | None = field(default=None, repr=False)
    mac_ext: str | None = None
    properties: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.expires_at and self.expires_at < self.issued_at:
            raise ValueError(
                f"Token expires_at ({self.expires_at}) is before issued_at ({self.issued_at})"
            )

    @property
    def key(self) -> TokenKey:
        return TokenKey(self.gadget_uri, self.service_name, self.user, self.scope, self.type)

    @property
    def secret_text(self) -> str:
        return self.secret.decode("utf-8")

    def is_expired(self, now: int | None = None) -> bool:
        """True once expires_at has passed; never for non-expiring tokens."""
        if not self.expires_at:
            return False
        return (now if now is not None else now_seconds()) >= self.expires_at


__all__ = [
    "TokenType",
    "ClientType",
    "ClientKey",
    "AccessorKey",
    "TokenKey",
    "OAuth2Client",
    "OAuth2Token",
    "now_seconds",
]
