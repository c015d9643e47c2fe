"""
Per-request values passed explicitly through the OAuth2 runtime.

Nothing in the runtime reads caller identity or container location from
ambient state; both arrive in these values.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class SecurityContext:
    """
    Identity of the caller a fetch is made for.

    Attributes:
        owner_id: Owner of the page the gadget is rendered on
        viewer_id: User viewing the page (tokens are stored per viewer)
        container: Container id
        app_url: Gadget URI the security token was minted for
    """

    owner_id: str | None
    viewer_id: str | None
    container: str = "default"
    app_url: str | None = None


@dataclass(frozen=True)
class OAuth2Arguments:
    """
    OAuth2 options a gadget supplies with a signed fetch.

    Attributes:
        service_name: Name of the <OAuth2><Service> in the gadget spec
        scope: Scope override ("" or None means use the spec's scope)
        bypass_spec_cache: Reload the gadget spec instead of using the cache
        additional_params: Extra parameters forwarded to grant requests
    """

    service_name: str = ""
    scope: str | None = None
    bypass_spec_cache: bool = False
    additional_params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Authority:
    """
    Public location of this container, used to resolve URL templates.

    Attributes:
        scheme: "http" or "https"
        host: host[:port] the container is reachable at
        context_root: Path prefix the container is mounted under
        origin: scheme://host, derived when not given
    """

    scheme: str = "http"
    host: str = "localhost:8080"
    context_root: str = ""
    origin: str | None = None

    @property
    def resolved_origin(self) -> str:
        return self.origin or f"{self.scheme}://{self.host}"


def substitute_authority(template: str | None, authority: Authority | None) -> str | None:
    """
    Replace %authority%, %contextRoot%, %origin% and %scheme% in template.

    >>> substitute_authority("%origin%%contextRoot%/cb", Authority("https", "c.example", "/gadgets"))
    'https://c.example/gadgets/cb'
    """
    if not template or authority is None:
        return template
    return (
        template.replace("%authority%", authority.host)
        .replace("%contextRoot%", authority.context_root)
        .replace("%origin%", authority.resolved_origin)
        .replace("%scheme%", authority.scheme)
    )


__all__ = [
    "SecurityContext",
    "OAuth2Arguments",
    "Authority",
    "substitute_authority",
]
