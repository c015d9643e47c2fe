"""
Durable storage of OAuth2 clients and tokens.

Provides:
    - OAuth2Persister: persister contract used by OAuth2Store
    - InMemoryPersister: non-durable persister for tests and single-node demos
    - JsonOAuth2Persister: clients from an oauth2.json document, tokens in
      an optional JSON file with secrets encrypted at rest

oauth2.json layout:
    {
      "providers": {
        "<provider>": {
          "client_authentication": "Basic",
          "usesAuthorizationHeader": true,
          "usesUrlParameter": false,
          "endpoints": {"authorizationUrl": "...", "tokenUrl": "..."}
        }
      },
      "clients": {
        "<client>": {
          "providerName": "<provider>", "client_id": "...", "client_secret": "...",
          "redirect_uri": "%origin%%contextRoot%/gadgets/oauth2callback",
          "type": "confidential", "grant_type": "code", "sharedToken": false,
          "allowedDomains": ["example.com"]
        }
      },
      "gadgetBindings": {
        "<gadget uri>": {"<service>": {"clientName": "<client>", "allowModuleOverride": true}}
      }
    }
"""

import base64
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from gadgets.oauth2.context import Authority, substitute_authority
from gadgets.oauth2.encryption import NoOpOAuth2Encrypter, OAuth2Encrypter
from gadgets.oauth2.exceptions import OAuth2EncryptionError, OAuth2PersistenceError
from gadgets.oauth2.message import NO_AUTH_TYPE
from gadgets.oauth2.models import (
    ClientKey,
    ClientType,
    OAuth2Client,
    OAuth2Token,
    TokenKey,
    TokenType,
)

logger = logging.getLogger(__name__)


class OAuth2Persister(ABC):
    """
    Durable source of truth for clients and tokens.

    Implementations must be safe for concurrent use and raise
    OAuth2PersistenceError on I/O failure.
    """

    def create_token(self, **fields: Any) -> OAuth2Token:
        """New, unsaved token."""
        return OAuth2Token(**fields)

    @abstractmethod
    def find_client(self, key: ClientKey) -> OAuth2Client | None: ...

    @abstractmethod
    def find_token(self, key: TokenKey) -> OAuth2Token | None: ...

    @abstractmethod
    def insert_token(self, token: OAuth2Token) -> None: ...

    @abstractmethod
    def update_token(self, token: OAuth2Token) -> None: ...

    @abstractmethod
    def remove_token(self, key: TokenKey) -> bool:
        """Delete a token; False if there was none."""

    @abstractmethod
    def load_clients(self) -> list[OAuth2Client]: ...

    @abstractmethod
    def load_tokens(self) -> list[OAuth2Token]: ...

    @abstractmethod
    def insert_client(self, client: OAuth2Client) -> None: ...

    @abstractmethod
    def remove_all_clients(self) -> int: ...

    @abstractmethod
    def remove_all_tokens(self) -> int: ...


class InMemoryPersister(OAuth2Persister):
    """Dictionary-backed persister. Contents are lost on restart."""

    def __init__(self, clients=None, tokens=None):
        self._clients: dict[ClientKey, OAuth2Client] = {c.key: c for c in clients or []}
        self._tokens: dict[TokenKey, OAuth2Token] = {t.key: t for t in tokens or []}
        self._lock = threading.Lock()

    def find_client(self, key: ClientKey) -> OAuth2Client | None:
        with self._lock:
            return self._clients.get(key)

    def find_token(self, key: TokenKey) -> OAuth2Token | None:
        with self._lock:
            return self._tokens.get(key)

    def insert_token(self, token: OAuth2Token) -> None:
        with self._lock:
            self._tokens[token.key] = token

    def update_token(self, token: OAuth2Token) -> None:
        with self._lock:
            self._tokens[token.key] = token

    def remove_token(self, key: TokenKey) -> bool:
        with self._lock:
            return self._tokens.pop(key, None) is not None

    def load_clients(self) -> list[OAuth2Client]:
        with self._lock:
            return list(self._clients.values())

    def load_tokens(self) -> list[OAuth2Token]:
        with self._lock:
            return list(self._tokens.values())

    def insert_client(self, client: OAuth2Client) -> None:
        with self._lock:
            self._clients[client.key] = client

    def remove_all_clients(self) -> int:
        with self._lock:
            count = len(self._clients)
            self._clients.clear()
            return count

    def remove_all_tokens(self) -> int:
        with self._lock:
            count = len(self._tokens)
            self._tokens.clear()
            return count


# =============================================================================
# oauth2.json document schema
# =============================================================================


class _Settings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ProviderEndpoints(_Settings):
    authorization_url: str | None = Field(default=None, alias="authorizationUrl")
    token_url: str | None = Field(default=None, alias="tokenUrl")


class ProviderSettings(_Settings):
    endpoints: ProviderEndpoints = Field(default_factory=ProviderEndpoints)
    client_authentication: str = NO_AUTH_TYPE
    uses_authorization_header: bool = Field(default=False, alias="usesAuthorizationHeader")
    uses_url_parameter: bool = Field(default=False, alias="usesUrlParameter")


class ClientSettings(_Settings):
    provider_name: str = Field(..., alias="providerName", min_length=1)
    client_id: str = Field(..., min_length=1)
    client_secret: str = ""
    redirect_uri: str | None = None
    type: str | None = None
    grant_type: str = "code"
    shared_token: bool = Field(default=False, alias="sharedToken")
    allowed_domains: list[str] = Field(default_factory=list, alias="allowedDomains")


class GadgetBinding(_Settings):
    client_name: str = Field(..., alias="clientName", min_length=1)
    allow_module_override: bool = Field(default=False, alias="allowModuleOverride")


class OAuth2Document(_Settings):
    """Validated contents of an oauth2.json document."""

    providers: dict[str, ProviderSettings] = Field(default_factory=dict)
    clients: dict[str, ClientSettings] = Field(default_factory=dict)
    gadget_bindings: dict[str, dict[str, GadgetBinding]] = Field(
        default_factory=dict, alias="gadgetBindings"
    )

    @model_validator(mode="after")
    def check_references(self) -> "OAuth2Document":
        for name, client in self.clients.items():
            if client.provider_name not in self.providers:
                raise ValueError(f"client '{name}' references unknown provider '{client.provider_name}'")
        for gadget_uri, services in self.gadget_bindings.items():
            for service_name, binding in services.items():
                if binding.client_name not in self.clients:
                    raise ValueError(
                        f"binding {gadget_uri}/{service_name} references unknown client "
                        f"'{binding.client_name}'"
                    )
        return self


def _b64(data: bytes | None) -> str | None:
    return base64.b64encode(data).decode("ascii") if data else None


def _unb64(data: str | None) -> bytes:
    return base64.b64decode(data) if data else b""


class JsonOAuth2Persister(OAuth2Persister):
    """
    Clients from an oauth2.json document, tokens in an optional JSON file.

    Client secrets in the document are passed through the encrypter's
    decrypt, so a deployment with an encryption key stores them encrypted.
    Token secrets are encrypted before they are written. Without a
    tokens_path tokens live only in memory.

    Args:
        config_path: Path of the oauth2.json document
        authority: Container location substituted into URL templates
        encrypter: Secret encrypter (default: no-op)
        tokens_path: JSON file tokens are persisted to (optional)
        document: Already-parsed document (used instead of config_path)
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        authority: Authority | None = None,
        encrypter: OAuth2Encrypter | None = None,
        tokens_path: Path | str | None = None,
        document: dict | None = None,
    ):
        self.config_path = Path(config_path) if config_path else None
        self.tokens_path = Path(tokens_path) if tokens_path else None
        self.authority = authority or Authority()
        self.encrypter = encrypter or NoOpOAuth2Encrypter()
        self._lock = threading.RLock()
        self._clients: dict[ClientKey, OAuth2Client] = {}
        self._tokens: dict[TokenKey, OAuth2Token] = {}

        raw = document if document is not None else self._read_document()
        self._clients = {c.key: c for c in self._build_clients(raw)}
        self._tokens = {t.key: t for t in self._read_tokens()}

        logger.info(
            f"Loaded {len(self._clients)} OAuth2 clients and {len(self._tokens)} tokens",
            extra={
                "clients_loaded": len(self._clients),
                "tokens_loaded": len(self._tokens),
                "persister": "json",
            },
        )

    # -- document ------------------------------------------------------------

    def _read_document(self) -> dict:
        if self.config_path is None:
            return {}
        try:
            with open(self.config_path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise OAuth2PersistenceError(
                f"OAuth2 config not found: {self.config_path}", cause=e
            ) from e
        except (OSError, ValueError) as e:
            raise OAuth2PersistenceError(
                f"Unable to read OAuth2 config {self.config_path}", cause=e
            ) from e

    def _sub(self, template: str | None) -> str | None:
        return substitute_authority(template, self.authority)

    def _decrypt_secret(self, secret: str) -> bytes:
        if not secret:
            return b""
        try:
            return self.encrypter.decrypt(secret.encode("utf-8"))
        except OAuth2EncryptionError as e:
            raise OAuth2PersistenceError("Unable to decrypt client secret", cause=e) from e

    def _build_clients(self, raw: dict) -> list[OAuth2Client]:
        try:
            document = OAuth2Document.model_validate(raw)
        except ValidationError as e:
            raise OAuth2PersistenceError("Invalid OAuth2 config document", cause=e) from e

        clients = []
        for gadget_uri_template, services in document.gadget_bindings.items():
            gadget_uri = self._sub(gadget_uri_template)
            for service_name, binding in services.items():
                settings = document.clients[binding.client_name]
                provider = document.providers[settings.provider_name]
                clients.append(
                    OAuth2Client(
                        gadget_uri=gadget_uri,
                        service_name=service_name,
                        client_id=settings.client_id,
                        client_secret=self._decrypt_secret(settings.client_secret),
                        authorization_url=self._sub(provider.endpoints.authorization_url),
                        token_url=self._sub(provider.endpoints.token_url),
                        client_authentication_type=provider.client_authentication,
                        grant_type=settings.grant_type,
                        redirect_uri=self._sub(settings.redirect_uri),
                        type=ClientType.parse(settings.type),
                        authorization_header=provider.uses_authorization_header,
                        url_parameter=provider.uses_url_parameter,
                        allow_module_override=binding.allow_module_override,
                        shared_token=settings.shared_token,
                        allowed_domains=list(settings.allowed_domains),
                    )
                )
        return clients

    # -- token file ----------------------------------------------------------

    def _token_to_dict(self, token: OAuth2Token) -> dict:
        return {
            "gadget_uri": token.gadget_uri,
            "service_name": token.service_name,
            "user": token.user,
            "scope": token.scope,
            "type": token.type.value,
            "secret": _b64(self.encrypter.encrypt(token.secret)),
            "token_type": token.token_type,
            "issued_at": token.issued_at,
            "expires_at": token.expires_at,
            "mac_algorithm": token.mac_algorithm,
            "mac_secret": _b64(self.encrypter.encrypt(token.mac_secret or b"")),
            "mac_ext": token.mac_ext,
            "properties": token.properties,
        }

    def _token_from_dict(self, data: dict) -> OAuth2Token:
        mac_secret = self.encrypter.decrypt(_unb64(data.get("mac_secret")))
        return OAuth2Token(
            gadget_uri=data["gadget_uri"],
            service_name=data["service_name"],
            user=data["user"],
            scope=data.get("scope", ""),
            type=TokenType(data["type"]),
            secret=self.encrypter.decrypt(_unb64(data.get("secret"))),
            token_type=data.get("token_type") or "Bearer",
            issued_at=int(data.get("issued_at", 0)),
            expires_at=int(data.get("expires_at", 0)),
            mac_algorithm=data.get("mac_algorithm"),
            mac_secret=mac_secret or None,
            mac_ext=data.get("mac_ext"),
            properties=dict(data.get("properties") or {}),
        )

    def _read_tokens(self) -> list[OAuth2Token]:
        if self.tokens_path is None or not self.tokens_path.exists():
            return []
        try:
            with open(self.tokens_path, encoding="utf-8") as f:
                records = json.load(f)
            return [self._token_from_dict(r) for r in records]
        except (OSError, ValueError, KeyError, TypeError, OAuth2EncryptionError) as e:
            raise OAuth2PersistenceError(
                f"Unable to read OAuth2 tokens {self.tokens_path}", cause=e
            ) from e

    def _write_tokens(self) -> None:
        if self.tokens_path is None:
            return
        records = [self._token_to_dict(t) for t in self._tokens.values()]
        try:
            self.tokens_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.tokens_path.parent, prefix=".tokens-", suffix=".json"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2)
            os.replace(tmp_name, self.tokens_path)
        except OSError as e:
            raise OAuth2PersistenceError(
                f"Unable to write OAuth2 tokens {self.tokens_path}", cause=e
            ) from e

    def _mutate_tokens(self, mutate) -> Any:
        with self._lock:
            snapshot = dict(self._tokens)
            result = mutate()
            try:
                self._write_tokens()
            except OAuth2PersistenceError:
                self._tokens = snapshot
                raise
            return result

    # -- OAuth2Persister -----------------------------------------------------

    def find_client(self, key: ClientKey) -> OAuth2Client | None:
        with self._lock:
            return self._clients.get(key)

    def find_token(self, key: TokenKey) -> OAuth2Token | None:
        with self._lock:
            return self._tokens.get(key)

    def insert_token(self, token: OAuth2Token) -> None:
        self._mutate_tokens(lambda: self._tokens.__setitem__(token.key, token))

    def update_token(self, token: OAuth2Token) -> None:
        self._mutate_tokens(lambda: self._tokens.__setitem__(token.key, token))

    def remove_token(self, key: TokenKey) -> bool:
        with self._lock:
            if key not in self._tokens:
                return False
            self._mutate_tokens(lambda: self._tokens.pop(key))
            return True

    def load_clients(self) -> list[OAuth2Client]:
        with self._lock:
            return list(self._clients.values())

    def load_tokens(self) -> list[OAuth2Token]:
        with self._lock:
            return list(self._tokens.values())

    def insert_client(self, client: OAuth2Client) -> None:
        # Clients come from the document; additions live until restart
        with self._lock:
            self._clients[client.key] = client

    def remove_all_clients(self) -> int:
        with self._lock:
            count = len(self._clients)
            self._clients.clear()
            return count

    def remove_all_tokens(self) -> int:
        with self._lock:
            count = len(self._tokens)
            self._mutate_tokens(self._tokens.clear)
            return count


__all__ = [
    "OAuth2Persister",
    "InMemoryPersister",
    "JsonOAuth2Persister",
    "OAuth2Document",
    "ProviderSettings",
    "ClientSettings",
    "GadgetBinding",
]
