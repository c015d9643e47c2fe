"""OAuth2 runtime configuration from YAML file.

Loads from config/config.yaml; every setting lives under the ``oauth2:``
section:
- Redirect URI template and container authority
- Trace and viewer-token switches
- Callback state and secret encryption keys
- Client/token documents and startup import
- HTTP timeout and orchestrator attempt ceiling

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
"""

import json
import logging
import os
import re
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

# Configure module logger
logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# Default config file: config/config.yaml next to this module
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"

DEFAULT_REDIRECT_URI = "/gadgets/oauth2callback"


@dataclass
class AuthorityConfig:
    """Public location of the container (fills %authority% style templates)."""

    scheme: str = "http"
    host: str = "localhost:8080"
    context_root: str = ""
    origin: Optional[str] = None


@dataclass
class OAuth2Config:
    """OAuth2 runtime configuration loaded from YAML.

    Keys are used for Fernet: ``state_key`` seals callback state,
    ``encryption_key`` protects client and token secrets at rest. Empty
    keys mean a random per-process state key and no at-rest encryption.
    """

    global_redirect_uri: str = DEFAULT_REDIRECT_URI
    send_trace_to_client: bool = False
    viewer_access_tokens_enabled: bool = False
    import_from_config: bool = False
    import_clean: bool = False
    state_key: str = ""
    state_max_age_seconds: int = 600
    encryption_key: str = ""
    clients_file: Optional[str] = None
    tokens_file: Optional[str] = None
    http_timeout_seconds: float = 30
    max_attempts: int = 3
    authority: AuthorityConfig = field(default_factory=AuthorityConfig)

    def validate(self) -> None:
        """Validate configuration for correctness and constraints.

        Collects every problem and raises one ValueError listing them all.
        """
        # Imported here: config must stay importable without the runtime package
        from gadgets.oauth2.encryption import is_valid_key

        errors: List[str] = []
        if self.http_timeout_seconds <= 0:
            errors.append(f"http_timeout_seconds must be > 0, got {self.http_timeout_seconds}")
        if self.max_attempts < 1:
            errors.append(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.state_max_age_seconds <= 0:
            errors.append(f"state_max_age_seconds must be > 0, got {self.state_max_age_seconds}")
        if self.state_key and not is_valid_key(self.state_key):
            errors.append("state_key is not a valid Fernet key")
        if self.encryption_key and not is_valid_key(self.encryption_key):
            errors.append("encryption_key is not a valid Fernet key")
        if self.authority.scheme not in ("http", "https"):
            errors.append(f"authority.scheme must be http or https, got '{self.authority.scheme}'")
        if not self.authority.host:
            errors.append("authority.host is required")
        if self.import_from_config and not self.clients_file:
            errors.append("import_from_config requires clients_file")

        if errors:
            raise ValueError("Invalid oauth2 configuration:\n  - " + "\n  - ".join(errors))

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Plain dict of the effective settings, keys redacted by default."""
        data = asdict(self)
        if redact:
            for key in ("state_key", "encryption_key"):
                if data[key]:
                    data[key] = "[REDACTED]"
        return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _resolve_path(value: Optional[str], base_dir: Path) -> Optional[str]:
    """Relative document paths are resolved against the config file's directory."""
    if not value:
        return None
    path = Path(value)
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> OAuth2Config:
    """Load OAuth2 configuration from config.yaml file.

    Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n" f"Expected file: config/config.yaml"
        )

    logger.info(f"Loading configuration from file: {config_path}")
    yaml_data = load_yaml(config_path)
    yaml_data = _expand_env_vars(yaml_data)

    if "oauth2" not in yaml_data:
        raise ValueError("Invalid config file: missing 'oauth2:' section")

    oauth2 = yaml_data["oauth2"] or {}
    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        oauth2 = _deep_merge(oauth2, overrides)

    authority = oauth2.get("authority") or {}
    base_dir = config_path.parent

    try:
        config = OAuth2Config(
            global_redirect_uri=oauth2.get("global_redirect_uri") or DEFAULT_REDIRECT_URI,
            send_trace_to_client=_as_bool(oauth2.get("send_trace_to_client", False)),
            viewer_access_tokens_enabled=_as_bool(
                oauth2.get("viewer_access_tokens_enabled", False)
            ),
            import_from_config=_as_bool(oauth2.get("import_from_config", False)),
            import_clean=_as_bool(oauth2.get("import_clean", False)),
            state_key=oauth2.get("state_key") or "",
            state_max_age_seconds=int(oauth2.get("state_max_age_seconds", 600)),
            encryption_key=oauth2.get("encryption_key") or "",
            clients_file=_resolve_path(oauth2.get("clients_file"), base_dir),
            tokens_file=_resolve_path(oauth2.get("tokens_file"), base_dir),
            http_timeout_seconds=float(oauth2.get("http_timeout_seconds", 30)),
            max_attempts=int(oauth2.get("max_attempts", 3)),
            authority=AuthorityConfig(
                scheme=authority.get("scheme", "http"),
                host=authority.get("host", "localhost:8080"),
                context_root=authority.get("context_root", "") or "",
                origin=authority.get("origin") or None,
            ),
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid oauth2 configuration: {e}") from e

    logger.debug("Configuration loaded successfully:")
    logger.debug(f"  - Clients file: {config.clients_file}")
    logger.debug(f"  - Tokens file: {config.tokens_file}")
    logger.debug(f"  - Send trace to client: {config.send_trace_to_client}")

    logger.debug("Validating configuration...")
    config.validate()
    logger.debug("Configuration validation passed")

    return config


_oauth2_config: Optional[OAuth2Config] = None


def get_config() -> OAuth2Config:
    """Get or load the singleton OAuth2 config instance."""
    global _oauth2_config
    if _oauth2_config is None:
        _oauth2_config = load_config()
    return _oauth2_config


def set_config(config: OAuth2Config) -> None:
    """Set the singleton OAuth2 config instance (useful for testing)."""
    global _oauth2_config
    _oauth2_config = config


def reset_config() -> None:
    """Reset the singleton config instance (forces reload on next get_config() call)."""
    global _oauth2_config
    _oauth2_config = None


def _cli_main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    from dotenv import load_dotenv

    parser = argparse.ArgumentParser(
        description="OAuth2 Runtime Configuration Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration
  python -m config --validate

  # Show effective configuration
  python -m config --show

  # Use a specific file and .env
  python -m config --config /etc/gadgets/config.yaml --env-file .env --validate

  # JSON output for automation
  python -m config --validate --json
        """,
    )

    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate configuration values",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Display effective configuration (keys redacted)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config.yaml file (default: src/config/config.yaml)",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        help="Load environment variables from this .env file first",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output in JSON format instead of human-readable",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if args.env_file:
        load_dotenv(args.env_file)
    else:
        load_dotenv()

    if not args.validate and not args.show:
        parser.print_help()
        return 0

    try:
        config = load_config(config_path=args.config)
    except (FileNotFoundError, ValueError) as e:
        if args.json:
            print(json.dumps({"error": str(e)}))
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    output: Dict[str, Any] = {}
    if args.validate:
        # load_config() validates; reaching here means it passed
        if args.json:
            output["validation"] = {"passed": True, "errors": []}
        else:
            print("Configuration validation passed")
            print(f"  - Clients file: {config.clients_file or '(none)'}")
            print(f"  - Tokens file: {config.tokens_file or '(none)'}")

    if args.show:
        if args.json:
            output["config"] = config.to_dict()
        else:
            print(yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False))

    if args.json:
        print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(_cli_main())
