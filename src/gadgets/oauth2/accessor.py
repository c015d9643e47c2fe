"""
OAuth2 accessor: per-fetch view of a client registration and its tokens.

An accessor is owned by exactly one fetch at a time. The store hands out
a cached base instance; GadgetOAuth2TokenStore copies it before merging
gadget spec data, so concurrent fetches for the same key never share a
mutable instance.
"""

import copy
import logging
from dataclasses import dataclass, field

from gadgets.oauth2.callback_state import DEFAULT_STATE_MAX_AGE_SECONDS, OAuth2CallbackState
from gadgets.oauth2.context import Authority, substitute_authority
from gadgets.oauth2.encryption import BlobCrypter
from gadgets.oauth2.errors import OAuth2HandlerError
from gadgets.oauth2.models import AccessorKey, ClientType, OAuth2Client, OAuth2Token

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class OAuth2Accessor:
    """
    Client configuration, current tokens and transient flow state for
    (gadget_uri, service_name, user, scope).

    An accessor is valid iff it has a grant type.
    """

    gadget_uri: str
    service_name: str
    user: str
    scope: str

    # Snapshot of the client registration
    client_id: str | None = None
    client_secret: bytes | None = field(default=None, repr=False)
    authorization_url: str | None = None
    token_url: str | None = None
    client_authentication_type: str | None = None
    grant_type: str | None = None
    redirect_uri: str | None = None
    type: ClientType = ClientType.UNKNOWN
    authorization_header: bool = False
    url_parameter: bool = False
    allow_module_override: bool = False
    shared_token: bool = False
    allowed_domains: list[str] = field(default_factory=list)

    # Tokens
    access_token: OAuth2Token | None = None
    refresh_token: OAuth2Token | None = None

    # Transient flow state
    redirecting: bool = False
    error: OAuth2HandlerError | None = None
    additional_request_params: dict[str, str] = field(default_factory=dict)

    # Redirect URI resolution and state sealing
    global_redirect_uri: str | None = None
    authority: Authority | None = None
    state_crypter: BlobCrypter | None = field(default=None, repr=False)
    state_max_age: int = DEFAULT_STATE_MAX_AGE_SECONDS

    @classmethod
    def from_client(
        cls,
        client: OAuth2Client,
        user: str,
        scope: str,
        **kwargs,
    ) -> "OAuth2Accessor":
        """New accessor populated from a client registration."""
        return cls(
            gadget_uri=client.gadget_uri,
            service_name=client.service_name,
            user=user,
            scope=scope,
            client_id=client.client_id,
            client_secret=client.client_secret,
            authorization_url=client.authorization_url,
            token_url=client.token_url,
            client_authentication_type=client.client_authentication_type,
            grant_type=client.grant_type,
            redirect_uri=client.redirect_uri,
            type=client.type,
            authorization_header=client.authorization_header,
            url_parameter=client.url_parameter,
            allow_module_override=client.allow_module_override,
            shared_token=client.shared_token,
            allowed_domains=list(client.allowed_domains),
            **kwargs,
        )

    @classmethod
    def with_error(
        cls,
        error: OAuth2HandlerError,
        gadget_uri: str = "",
        service_name: str = "",
        user: str = "",
        scope: str = "",
    ) -> "OAuth2Accessor":
        """Placeholder accessor carrying an error, for failures before lookup."""
        accessor = cls(gadget_uri=gadget_uri, service_name=service_name, user=user, scope=scope)
        accessor.set_error_response(error)
        return accessor

    @property
    def key(self) -> AccessorKey:
        return AccessorKey(self.gadget_uri, self.service_name, self.user, self.scope)

    @property
    def token_user(self) -> str:
        """User tokens are stored under ("" when tokens are shared)."""
        return "" if self.shared_token else self.user

    def is_valid(self) -> bool:
        return bool(self.grant_type)

    @property
    def is_error_response(self) -> bool:
        return self.error is not None

    def set_error_response(self, error: OAuth2HandlerError) -> None:
        self.error = error

    def clear_error(self) -> None:
        self.error = None

    @property
    def resolved_redirect_uri(self) -> str | None:
        """Redirect URI with the container authority substituted in."""
        template = self.redirect_uri or self.global_redirect_uri
        return substitute_authority(template, self.authority)

    @property
    def callback_state(self) -> OAuth2CallbackState:
        return OAuth2CallbackState.for_accessor(self.key, self.state_max_age)

    def encrypted_state(self) -> str:
        """Sealed callback state for the ``state`` parameter."""
        if self.state_crypter is None:
            raise ValueError("accessor has no state crypter")
        return self.callback_state.encode(self.state_crypter)

    @property
    def client_secret_text(self) -> str:
        return (self.client_secret or b"").decode("utf-8")

    def copy(self) -> "OAuth2Accessor":
        """Independent copy: containers are new, tokens are shared read-only."""
        duplicate = copy.copy(self)
        duplicate.allowed_domains = list(self.allowed_domains)
        duplicate.additional_request_params = dict(self.additional_request_params)
        return duplicate

    def invalidate(self) -> None:
        """
        Forget secrets and flow state.

        Safe to call any number of times. Leaves the accessor invalid.
        """
        self.access_token = None
        self.refresh_token = None
        self.authorization_url = None
        self.client_authentication_type = None
        self.client_id = None
        self.client_secret = None
        self.grant_type = None
        self.redirect_uri = None
        self.token_url = None
        self.type = ClientType.UNKNOWN
        self.allowed_domains = []
        self.additional_request_params = {}
        self.redirecting = False
        self.error = None

    def __str__(self) -> str:
        return (
            f"OAuth2Accessor(gadget_uri={self.gadget_uri!r}, service_name={self.service_name!r}, "
            f"user={self.user!r}, scope={self.scope!r}, grant_type={self.grant_type!r}, "
            f"redirecting={self.redirecting}, error={self.error.error_code if self.error else None})"
        )


__all__ = [
    "OAuth2Accessor",
]
