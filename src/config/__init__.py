"""Configuration loading for the OAuth2 connector.

Configuration Structure
-----------------------

config/config.yaml:
    connector:            # connector-level defaults
    endpoints:            # per-endpoint descriptors

Main Functions
--------------

    - load_config(): Load connector settings from YAML
    - get_config(): Get or load singleton settings instance
    - reset_config(): Reset singleton settings instance
    - EndpointConfigResolver: Resolve EndpointConfig values by endpoint id

Usage Examples
--------------

    >>> from config import EndpointConfigResolver, load_config
    >>>
    >>> settings = load_config()
    >>> resolver = EndpointConfigResolver(settings)
    >>> endpoint = resolver.resolve("my-endpoint")
    >>> endpoint.authorization_header("abc")
    'OAuth abc'
"""

from config.config import (
    DEFAULT_CONFIG_FILE,
    ConnectorSettings,
    EndpointConfigResolver,
    EndpointDescriptor,
    get_config,
    load_config,
    parse_settings,
    reset_config,
    set_config,
)

__all__ = [
    "DEFAULT_CONFIG_FILE",
    "ConnectorSettings",
    "EndpointConfigResolver",
    "EndpointDescriptor",
    "get_config",
    "load_config",
    "parse_settings",
    "reset_config",
    "set_config",
]
