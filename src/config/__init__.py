"""Configuration loading for the gadget OAuth2 runtime.

Configuration lives in a single YAML file (config/config.yaml by default)
under the ``oauth2:`` section. Client registrations are kept in a separate
JSON document referenced by ``clients_file``.

Main Functions
--------------

    - load_config(): Load OAuth2 configuration from YAML
    - get_config(): Get or load the singleton config instance
    - set_config(): Replace the singleton (tests)
    - reset_config(): Reset the singleton config instance

Usage Examples
--------------

    >>> from config import load_config
    >>> config = load_config()
    >>> config.max_attempts
    3

    >>> from pathlib import Path
    >>> config = load_config(config_path=Path("/etc/gadgets/config.yaml"))

Environment variables are expanded with ${VAR} / ${VAR:-default} syntax;
``python -m config`` loads a .env file before reading the configuration.
"""

from config.config import (
    DEFAULT_CONFIG_FILE,
    AuthorityConfig,
    OAuth2Config,
    get_config,
    load_config,
    load_yaml,
    reset_config,
    set_config,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "AuthorityConfig",
    "OAuth2Config",
    "load_config",
    "load_yaml",
    "get_config",
    "set_config",
    "reset_config",
]
