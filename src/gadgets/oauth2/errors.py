"""
OAuth2 error taxonomy.

OAuth2Error is the closed set of failure categories used both for
problems detected by the runtime and for error codes returned by
providers. OAuth2HandlerError is the single error value passed between
handlers, the request orchestrator and the client-facing response.
"""

from dataclasses import dataclass
from enum import Enum


class OAuth2Error(Enum):
    """
    Named OAuth2 failure.

    Each member carries a machine code (sent to clients as ``oauthError``),
    a description template (``{context}`` is replaced by the context
    message) and a longer explanation for people debugging a gadget.
    """

    # Provider error codes (RFC 6749 4.1.2.1 / 5.2, RFC 6750 3.1)
    ACCESS_DENIED = (
        "access_denied",
        "The resource owner or authorization server denied the request. {context}",
        "The user declined to authorize the gadget, or the provider refused to issue a token.",
    )
    INVALID_CLIENT = (
        "invalid_client",
        "Client authentication failed. {context}",
        "The provider did not recognize the client id/secret or the authentication method.",
    )
    INVALID_GRANT = (
        "invalid_grant",
        "The provided authorization grant or refresh token is invalid. {context}",
        "The grant is expired, revoked, or was issued to another client or redirect URI.",
    )
    INVALID_REQUEST = (
        "invalid_request",
        "The request is missing a required parameter or is otherwise malformed. {context}",
        "The provider could not parse the request sent by the container.",
    )
    INVALID_SCOPE = (
        "invalid_scope",
        "The requested scope is invalid, unknown, or malformed. {context}",
        "Check the scope declared by the gadget spec or passed with the request.",
    )
    INVALID_TOKEN = (
        "invalid_token",
        "The access token is invalid. {context}",
        "The resource server rejected the access token; it has been discarded.",
    )
    INSUFFICIENT_SCOPE = (
        "insufficient_scope",
        "The request requires higher privileges than provided by the access token. {context}",
        "Request a broader scope for this service.",
    )
    SERVER_ERROR = (
        "server_error",
        "The authorization server encountered an unexpected condition. {context}",
        "The provider failed internally; trying again later may succeed.",
    )
    TEMPORARILY_UNAVAILABLE = (
        "temporarily_unavailable",
        "The authorization server is temporarily unavailable. {context}",
        "The provider is overloaded or down for maintenance.",
    )
    UNAUTHORIZED_CLIENT = (
        "unauthorized_client",
        "The client is not authorized to use this grant type. {context}",
        "The provider registration does not permit the configured grant type.",
    )
    UNSUPPORTED_GRANT_TYPE = (
        "unsupported_grant_type",
        "The authorization grant type is not supported. {context}",
        "The provider does not support the configured grant type.",
    )
    UNSUPPORTED_RESPONSE_TYPE = (
        "unsupported_response_type",
        "The authorization server does not support this response type. {context}",
        "The provider does not support the response_type sent by the grant handler.",
    )

    # Problems detected by the runtime
    AUTHENTICATION_PROBLEM = (
        "authentication_problem",
        "Problem authenticating with the service provider. {context}",
        "Obtaining a token failed; see the description for the failing step.",
    )
    AUTHORIZATION_CODE_PROBLEM = (
        "authorization_code_problem",
        "Problem exchanging the authorization code. {context}",
        "The token endpoint did not accept the authorization code returned on the callback.",
    )
    AUTHORIZE_PROBLEM = (
        "authorize_problem",
        "Problem authorizing the request. {context}",
        "The caller may not authorize this gadget, or the authorization request failed.",
    )
    BEARER_TOKEN_PROBLEM = (
        "bearer_token_problem",
        "Problem attaching the bearer token. {context}",
        "The access token could not be added to the resource request.",
    )
    CALLBACK_PROBLEM = (
        "callback_problem",
        "Problem processing the authorization callback. {context}",
        "The redirect back from the provider could not be matched to a pending authorization.",
    )
    CLIENT_CREDENTIALS_PROBLEM = (
        "client_credentials_problem",
        "Problem with the client credentials grant. {context}",
        "The client credentials token request could not be built.",
    )
    CODE_GRANT_PROBLEM = (
        "code_grant_problem",
        "Problem building the authorization code request. {context}",
        "The authorization URL could not be built for the code grant.",
    )
    FETCH_INIT_PROBLEM = (
        "fetch_init_problem",
        "Problem initializing the fetch. {context}",
        "The request could not be matched to an OAuth2 accessor.",
    )
    FETCH_PROBLEM = (
        "fetch_problem",
        "Problem fetching the resource. {context}",
        "An unexpected failure happened while fetching the protected resource.",
    )
    GET_OAUTH2_ACCESSOR_PROBLEM = (
        "get_oauth2_accessor_problem",
        "Problem getting the OAuth2 accessor. {context}",
        "The request is missing the gadget, security context or OAuth2 store.",
    )
    LOOKUP_SPEC_PROBLEM = (
        "lookup_spec_problem",
        "Problem looking up the OAuth2 service in the gadget spec. {context}",
        "The gadget spec does not declare the requested OAuth2 service.",
    )
    MAC_TOKEN_PROBLEM = (
        "mac_token_problem",
        "Problem signing the request with the MAC token. {context}",
        "The MAC token is missing its key or uses an unsupported algorithm.",
    )
    MISSING_FETCH_PARAMS = (
        "missing_fetch_params",
        "Missing fetch parameters. {context}",
        "The request carried no security context.",
    )
    MISSING_SERVER_RESPONSE = (
        "missing_server_response",
        "No response from the server. {context}",
        "The service provider could not be reached or did not answer in time.",
    )
    NO_GADGET_SPEC = (
        "no_gadget_spec",
        "Could not load the gadget spec. {context}",
        "The gadget spec could not be fetched or parsed.",
    )
    NO_RESPONSE_HANDLER = (
        "no_response_handler",
        "No handler found for the response. {context}",
        "No registered response handler accepts this provider response.",
    )
    REFRESH_TOKEN_PROBLEM = (
        "refresh_token_problem",
        "Problem refreshing the access token. {context}",
        "The token endpoint did not accept the refresh token.",
    )
    SECRET_ENCRYPTION_PROBLEM = (
        "secret_encryption_problem",
        "Problem encrypting or decrypting a secret. {context}",
        "A stored secret could not be decrypted with the configured key.",
    )
    STORAGE_PROBLEM = (
        "storage_problem",
        "Problem reading or writing OAuth2 data. {context}",
        "The OAuth2 persister failed; clients and tokens could not be loaded or saved.",
    )
    TOKEN_RESPONSE_PROBLEM = (
        "token_response_problem",
        "Problem parsing the token response. {context}",
        "The token endpoint returned a response the container could not understand.",
    )
    UNKNOWN_PROBLEM = (
        "unknown_problem",
        "Unknown problem. {context}",
        "The service provider returned an error code the container does not know.",
    )

    def __init__(self, error_code: str, description: str, explanation: str):
        self.error_code = error_code
        self.description = description
        self.explanation = explanation

    def describe(self, context_message: str | None = None) -> str:
        """Fill the description template with context_message."""
        return self.description.format(context=context_message or "").strip()

    @classmethod
    def from_code(cls, code: str | None) -> "OAuth2Error | None":
        """
        Map a provider ``error=`` value onto the taxonomy.

        Unrecognized codes map to UNKNOWN_PROBLEM; None or "" map to None.
        """
        if not code:
            return None
        normalized = code.strip().lower()
        for member in cls:
            if member.error_code == normalized:
                return member
        return cls.UNKNOWN_PROBLEM


@dataclass(frozen=True)
class OAuth2HandlerError:
    """
    An OAuth2 failure together with where it happened.

    Attributes:
        error: Taxonomy value
        context_message: What the runtime was doing when it failed
        cause: Underlying exception, if any
        uri: Provider error_uri, if the provider sent one
        description: Provider error_description, if the provider sent one
    """

    error: OAuth2Error
    context_message: str = ""
    cause: BaseException | None = None
    uri: str = ""
    description: str = ""

    @property
    def error_code(self) -> str:
        return self.error.error_code

    @property
    def full_description(self) -> str:
        text = self.error.describe(self.context_message)
        if self.description:
            text = f"{text} , {self.description}"
        return text

    def __str__(self) -> str:
        parts = [f"{self.error.error_code}: {self.full_description}"]
        if self.cause is not None:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


__all__ = [
    "OAuth2Error",
    "OAuth2HandlerError",
]
