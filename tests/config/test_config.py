import os
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml

from config.config import (
    CONFIG_PATH_ENV,
    ConnectorSettings,
    EndpointConfigResolver,
    EndpointDescriptor,
    _cli_main,
    _expand_env_vars,
    get_config,
    load_config,
    load_yaml,
    parse_settings,
    reset_config,
    set_config,
)
from connector.errors.exceptions import ConfigError
from connector.oauth2.exceptions import InvalidConfigurationError
from connector.types import ErrorKind

VALID_CONFIG = """
connector:
  client-id: default-client
  access-token-url: https://auth.example.com/token
  auth-method: OAuth

endpoints:
  salesforce:
    endpoint-url: https://na1.salesforce.example.com
  google-drive:
    endpoint-url: https://drive.example.com
    client-id: drive-client
    access-token-url: https://oauth2.example.com/token
    auth-method: Bearer
"""


def _write(tmp_path, text, name="config.yaml"):
    path = tmp_path / name
    path.write_text(text)
    return path


@pytest.fixture(autouse=True)
def _reset_singleton():
    reset_config()
    yield
    reset_config()


# =========================================================================
# load_yaml
# =========================================================================


class TestLoadYaml:
    def test_returns_empty_dict_for_nonexistent_file(self):
        result = load_yaml(Path("/nonexistent/path/config.yaml"))
        assert result == {}

    def test_loads_yaml_file(self, tmp_path):
        config_file = _write(tmp_path, "key: value\nnested:\n  a: 1\n", "test.yaml")
        assert load_yaml(config_file) == {"key": "value", "nested": {"a": 1}}

    def test_returns_empty_dict_for_empty_file(self, tmp_path):
        assert load_yaml(_write(tmp_path, "", "empty.yaml")) == {}


# =========================================================================
# _expand_env_vars
# =========================================================================


class TestExpandEnvVars:
    def test_expands_variable(self):
        with patch.dict(os.environ, {"OAUTH_CLIENT_ID": "abc"}):
            assert _expand_env_vars("${OAUTH_CLIENT_ID}") == "abc"

    def test_uses_default_when_unset(self):
        with patch.dict(os.environ, {}, clear=True):
            assert _expand_env_vars("${MISSING:-fallback}") == "fallback"

    def test_leaves_unset_variable_without_default(self):
        with patch.dict(os.environ, {}, clear=True):
            assert _expand_env_vars("${MISSING}") == "${MISSING}"

    def test_recurses_into_dicts_and_lists(self):
        with patch.dict(os.environ, {"A": "1"}):
            data = {"x": ["${A}", {"y": "pre-${A}"}], "n": 5}
            assert _expand_env_vars(data) == {"x": ["1", {"y": "pre-1"}], "n": 5}


# =========================================================================
# parse_settings / EndpointConfigResolver
# =========================================================================


class TestParseSettings:
    def test_parses_connector_and_endpoints(self):
        settings = parse_settings(yaml.safe_load(VALID_CONFIG))

        assert settings.client_id == "default-client"
        assert settings.token_url == "https://auth.example.com/token"
        assert settings.list_endpoints() == ["salesforce", "google-drive"]
        assert settings.endpoints["google-drive"].auth_method == "Bearer"

    def test_endpoint_without_properties(self):
        settings = parse_settings({"endpoints": {"bare": None}})
        assert settings.endpoints["bare"] == EndpointDescriptor("bare")

    def test_endpoints_must_be_mapping(self):
        with pytest.raises(ConfigError):
            parse_settings({"endpoints": ["a", "b"]})

    def test_connector_must_be_mapping(self):
        with pytest.raises(ConfigError, match="'connector:' must be a mapping"):
            parse_settings({"connector": "client-1", "endpoints": {"ep": None}})

    @pytest.mark.parametrize("entry", ["https://x", ["a"], 3])
    def test_endpoint_entry_must_be_mapping(self, entry):
        with pytest.raises(ConfigError, match="endpoint 'ep' must be a mapping"):
            parse_settings({"endpoints": {"ep": entry}})


class TestEndpointConfigResolver:
    @pytest.fixture
    def resolver(self):
        return EndpointConfigResolver(parse_settings(yaml.safe_load(VALID_CONFIG)))

    def test_falls_back_to_connector_values(self, resolver):
        config = resolver.resolve("salesforce")

        assert config.endpoint_id == "salesforce"
        assert config.client_id == "default-client"
        assert config.token_url == "https://auth.example.com/token"
        assert config.auth_scheme == "OAuth"
        assert config.endpoint_url == "https://na1.salesforce.example.com"

    def test_endpoint_values_win(self, resolver):
        config = resolver.resolve("google-drive")

        assert config.client_id == "drive-client"
        assert config.token_url == "https://oauth2.example.com/token"
        assert config.authorization_header("tok") == "Bearer tok"

    def test_auth_method_defaults_to_oauth(self):
        settings = ConnectorSettings(
            client_id="c",
            token_url="https://auth.example.com/token",
            endpoints={"ep": EndpointDescriptor("ep")},
        )
        assert EndpointConfigResolver(settings).resolve("ep").auth_scheme == "OAuth"

    def test_unknown_endpoint_raises(self, resolver):
        with pytest.raises(ConfigError, match="Unknown endpoint 'nope'"):
            resolver.resolve("nope")

    def test_missing_client_id_raises(self):
        settings = ConnectorSettings(
            token_url="https://auth.example.com/token",
            endpoints={"ep": EndpointDescriptor("ep")},
        )
        with pytest.raises(InvalidConfigurationError, match="client-id") as exc_info:
            EndpointConfigResolver(settings).resolve("ep")

        assert exc_info.value.kind == ErrorKind.ERR_CONFIG

    def test_unsupported_auth_method_raises(self):
        settings = ConnectorSettings(
            client_id="c",
            token_url="https://auth.example.com/token",
            endpoints={"ep": EndpointDescriptor("ep", auth_method="Basic")},
        )
        with pytest.raises(InvalidConfigurationError, match="unsupported auth-method 'Basic'"):
            EndpointConfigResolver(settings).resolve("ep")


# =========================================================================
# load_config / singleton
# =========================================================================


class TestLoadConfig:
    def test_loads_file_with_env_expansion(self, tmp_path):
        path = _write(
            tmp_path,
            "connector:\n  client-id: ${TEST_CLIENT_ID}\n  access-token-url: https://a/t\n"
            "endpoints:\n  ep: {}\n",
        )
        with patch.dict(os.environ, {"TEST_CLIENT_ID": "from-env"}):
            settings = load_config(path)

        assert settings.client_id == "from-env"
        assert settings.list_endpoints() == ["ep"]

    def test_path_from_environment(self, tmp_path):
        path = _write(tmp_path, VALID_CONFIG)
        with patch.dict(os.environ, {CONFIG_PATH_ENV: str(path)}):
            settings = load_config()

        assert "salesforce" in settings.endpoints

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_missing_endpoints_section_raises(self, tmp_path):
        path = _write(tmp_path, "connector:\n  client-id: x\n")
        with pytest.raises(ConfigError, match="endpoints"):
            load_config(path)

    def test_set_and_get_config(self):
        settings = ConnectorSettings(client_id="c")
        set_config(settings)
        assert get_config() is settings

    def test_get_config_loads_once(self, tmp_path):
        path = _write(tmp_path, VALID_CONFIG)
        with patch.dict(os.environ, {CONFIG_PATH_ENV: str(path)}):
            first = get_config()
            second = get_config()

        assert first is second


# =========================================================================
# CLI
# =========================================================================


class TestCli:
    def test_lists_endpoints(self, tmp_path, capsys):
        path = _write(tmp_path, VALID_CONFIG)
        with patch("sys.argv", ["config", "--config", str(path)]):
            assert _cli_main() == 0

        assert capsys.readouterr().out.split() == ["salesforce", "google-drive"]

    def test_validate_reports_failures(self, tmp_path, capsys):
        path = _write(tmp_path, "endpoints:\n  ep:\n    endpoint-url: https://x\n")
        with patch("sys.argv", ["config", "--config", str(path), "--validate"]):
            assert _cli_main() == 1

        assert "[FAIL] ep" in capsys.readouterr().err

    def test_validate_ok(self, tmp_path, capsys):
        path = _write(tmp_path, VALID_CONFIG)
        with patch("sys.argv", ["config", "--config", str(path), "--validate"]):
            assert _cli_main() == 0

        assert "[OK]   google-drive: Bearer" in capsys.readouterr().out

    def test_missing_file_returns_error(self, tmp_path, capsys):
        with patch("sys.argv", ["config", "--config", str(tmp_path / "nope.yaml")]):
            assert _cli_main() == 1
