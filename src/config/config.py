"""OAuth2 connector configuration from YAML file.

Loads from config/config.yaml with all settings in one place:
- Connector-level defaults (client id, token URL, auth method, token source)
- Per-endpoint descriptors that override the connector defaults

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
"""

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from connector.errors.exceptions import ConfigError
from connector.oauth2.exceptions import InvalidConfigurationError
from connector.oauth2.models import DEFAULT_AUTH_METHOD, SUPPORTED_AUTH_METHODS, EndpointConfig

# Configure module logger
logger = logging.getLogger(__name__)

PARAM_CLIENT_ID = "client-id"
PARAM_TOKEN_URL = "access-token-url"
PARAM_AUTH_METHOD = "auth-method"
PARAM_TOKEN_SOURCE = "token-source"
PARAM_ENDPOINT_URL = "endpoint-url"

CONFIG_PATH_ENV = "CONNECTOR_CONFIG"


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
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"


@dataclass
class EndpointDescriptor:
    """Raw per-endpoint settings as written in YAML.

    Unset values fall back to the connector-level defaults when resolved.
    """

    endpoint_id: str
    endpoint_url: str = ""
    client_id: Optional[str] = None
    token_url: Optional[str] = None
    auth_method: Optional[str] = None

    @classmethod
    def from_dict(cls, endpoint_id: str, data: Dict[str, Any]) -> "EndpointDescriptor":
        return cls(
            endpoint_id=endpoint_id,
            endpoint_url=data.get(PARAM_ENDPOINT_URL, "") or "",
            client_id=data.get(PARAM_CLIENT_ID),
            token_url=data.get(PARAM_TOKEN_URL),
            auth_method=data.get(PARAM_AUTH_METHOD),
        )


@dataclass
class ConnectorSettings:
    """OAuth2 connector configuration.

    Configuration structure:
        connector:
          client-id: ...           # default client id
          access-token-url: ...    # default token endpoint
          auth-method: OAuth       # OAuth (default) or Bearer
          token-source: ...        # optional fixed endpoint id for the vault
        endpoints:
          <endpoint-id>:
            endpoint-url: ...
            client-id: ...         # overrides connector value
            access-token-url: ...  # overrides connector value
            auth-method: Bearer    # overrides connector value
    """

    client_id: Optional[str] = None
    token_url: Optional[str] = None
    auth_method: Optional[str] = None
    token_source: Optional[str] = None
    endpoints: Dict[str, EndpointDescriptor] = field(default_factory=dict)

    @property
    def authentication_method(self) -> str:
        return self.auth_method or DEFAULT_AUTH_METHOD

    def list_endpoints(self) -> list[str]:
        return list(self.endpoints.keys())


class EndpointConfigResolver:
    """
    Resolves EndpointConfig values from connector settings.

    Endpoint properties win; connector properties fill the gaps, the same
    lookup order for client id, token URL and auth method.
    """

    def __init__(self, settings: ConnectorSettings):
        self.settings = settings

    def resolve(self, endpoint_id: str) -> EndpointConfig:
        """
        Resolve the configuration for an endpoint.

        Raises:
            ConfigError: If the endpoint is unknown
            InvalidConfigurationError: If the endpoint has no client id or
                token URL after applying connector defaults, or names an
                unsupported auth method
        """
        descriptor = self.settings.endpoints.get(endpoint_id)
        if descriptor is None:
            raise ConfigError(
                f"Unknown endpoint '{endpoint_id}'. "
                f"Available: {self.settings.list_endpoints()}",
                context={"endpoint_id": endpoint_id},
            )

        client_id = descriptor.client_id or self.settings.client_id
        token_url = descriptor.token_url or self.settings.token_url
        if not client_id or not token_url:
            raise InvalidConfigurationError(
                f"Endpoint '{endpoint_id}' requires {PARAM_CLIENT_ID} and {PARAM_TOKEN_URL}",
                context={"endpoint_id": endpoint_id},
            )

        auth_scheme = descriptor.auth_method or self.settings.authentication_method
        if auth_scheme not in SUPPORTED_AUTH_METHODS:
            raise InvalidConfigurationError(
                f"Endpoint '{endpoint_id}' has unsupported {PARAM_AUTH_METHOD} '{auth_scheme}'. "
                f"Supported: {list(SUPPORTED_AUTH_METHODS)}",
                context={"endpoint_id": endpoint_id, "auth_method": auth_scheme},
            )

        return EndpointConfig(
            endpoint_id=endpoint_id,
            client_id=client_id,
            token_url=token_url,
            auth_scheme=auth_scheme,
            endpoint_url=descriptor.endpoint_url,
        )


def parse_settings(yaml_data: Dict[str, Any]) -> ConnectorSettings:
    """Build ConnectorSettings from already-expanded YAML data."""
    connector = yaml_data.get("connector") or {}
    endpoints = yaml_data.get("endpoints") or {}

    if not isinstance(connector, dict):
        raise ConfigError("Invalid config file: 'connector:' must be a mapping")
    if not isinstance(endpoints, dict):
        raise ConfigError("Invalid config file: 'endpoints:' must be a mapping")
    for endpoint_id, data in endpoints.items():
        if data is not None and not isinstance(data, dict):
            raise ConfigError(
                f"Invalid config file: endpoint '{endpoint_id}' must be a mapping",
                context={"endpoint_id": endpoint_id},
            )

    return ConnectorSettings(
        client_id=connector.get(PARAM_CLIENT_ID),
        token_url=connector.get(PARAM_TOKEN_URL),
        auth_method=connector.get(PARAM_AUTH_METHOD),
        token_source=connector.get(PARAM_TOKEN_SOURCE),
        endpoints={
            endpoint_id: EndpointDescriptor.from_dict(endpoint_id, data or {})
            for endpoint_id, data in endpoints.items()
        },
    )


def load_config(config_path: Optional[Path] = None) -> ConnectorSettings:
    """Load connector configuration from config.yaml file.

    The path comes from the argument, else the CONNECTOR_CONFIG environment
    variable, else config/config.yaml. A .env file is loaded first so it can
    supply ${VAR_NAME} values.
    """
    load_dotenv()

    if config_path is None:
        env_path = os.getenv(CONFIG_PATH_ENV)
        config_path = Path(env_path) if env_path else DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path}\n" f"Expected file: config/config.yaml"
        )

    logger.info(f"Loading configuration from file: {config_path}")
    yaml_data = _expand_env_vars(load_yaml(config_path))

    if "endpoints" not in yaml_data:
        raise ConfigError(
            "Invalid config file: missing 'endpoints:' section\n"
            "See config.yaml.example for correct structure"
        )

    settings = parse_settings(yaml_data)
    logger.debug(f"Loaded {len(settings.endpoints)} endpoint(s): {settings.list_endpoints()}")
    return settings


_connector_settings: Optional[ConnectorSettings] = None


def get_config() -> ConnectorSettings:
    """Get or load the singleton connector settings instance."""
    global _connector_settings
    if _connector_settings is None:
        _connector_settings = load_config()
    return _connector_settings


def set_config(settings: ConnectorSettings) -> None:
    """Set the singleton settings instance (useful for testing)."""
    global _connector_settings
    _connector_settings = settings


def reset_config() -> None:
    """Reset the singleton settings instance (forces reload on next get_config() call)."""
    global _connector_settings
    _connector_settings = None


def _cli_main() -> int:
    """CLI entry point for config validation and debugging."""
    import argparse

    parser = argparse.ArgumentParser(
        description="OAuth2 Connector Configuration Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate configuration
  python -m config.config --validate

  # Validate a specific file
  python -m config.config --validate --config path/to/config.yaml
""",
    )
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    parser.add_argument(
        "--validate", action="store_true", help="Resolve every endpoint and report errors"
    )
    args = parser.parse_args()

    try:
        settings = load_config(args.config)
    except (FileNotFoundError, ConfigError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if not args.validate:
        for endpoint_id in settings.list_endpoints():
            print(endpoint_id)
        return 0

    resolver = EndpointConfigResolver(settings)
    failures = 0
    for endpoint_id in settings.list_endpoints():
        try:
            resolved = resolver.resolve(endpoint_id)
        except (ConfigError, InvalidConfigurationError) as e:
            failures += 1
            print(f"[FAIL] {endpoint_id}: {e}", file=sys.stderr)
            continue
        print(f"[OK]   {endpoint_id}: {resolved.auth_scheme} via {resolved.token_url}")

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(_cli_main())
