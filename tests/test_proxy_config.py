"""
Tests for the recording engine configuration.

Tests port and target validation, the proxyOnce stub layout and writing
and reading the engine config file.
"""

import json
import sys
from pathlib import Path
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pacttap.common.errors import ConfigError
from pacttap.proxy.config import (
    ProxyConfig,
    build_proxy_config,
    load_proxy_config,
    parse_port,
    setup_proxy_config,
    validate_target,
)


class TestParsePort:
    """Test suite for port parsing."""

    def test_valid_port(self):
        """Test that a numeric port string parses."""
        assert parse_port("3002") == 3002

    def test_port_with_whitespace(self):
        """Test that surrounding whitespace is ignored."""
        assert parse_port(" 8080 ") == 8080

    @pytest.mark.parametrize("port", ["abc", "", "80a", "3.5"])
    def test_non_numeric_port(self, port):
        """Test that non-numeric ports are rejected."""
        with pytest.raises(ConfigError):
            parse_port(port)

    @pytest.mark.parametrize("port", ["0", "-1", "65536"])
    def test_out_of_range_port(self, port):
        """Test that ports outside 1..65535 are rejected."""
        with pytest.raises(ConfigError):
            parse_port(port)


class TestValidateTarget:
    """Test suite for upstream target validation."""

    def test_http_target(self):
        """Test that an http URL is accepted."""
        assert validate_target("http://localhost:3000") == "http://localhost:3000"

    def test_https_target(self):
        """Test that an https URL is accepted."""
        assert validate_target("https://stub.example.com") == "https://stub.example.com"

    def test_empty_target(self):
        """Test that an empty target is rejected."""
        with pytest.raises(ConfigError):
            validate_target("")

    def test_target_without_scheme(self):
        """Test that a bare host is rejected."""
        with pytest.raises(ConfigError):
            validate_target("localhost:3000")


class TestBuildProxyConfig:
    """Test suite for building the engine configuration."""

    def test_single_proxy_once_stub(self):
        """Test that exactly one proxyOnce stub response is configured."""
        config = build_proxy_config("3002", "http://localhost:3000")

        assert config.port == 3002
        assert config.protocol == "http"
        assert config.name == "pacttap-proxy"
        assert len(config.stubs) == 1
        assert len(config.stubs[0].responses) == 1
        assert config.target.to == "http://localhost:3000"
        assert config.target.mode == "proxyOnce"

    def test_to_dict_shape(self):
        """Test the JSON shape of the configuration."""
        config = build_proxy_config("3002", "http://localhost:3000")

        assert config.to_dict() == {
            "port": 3002,
            "name": "pacttap-proxy",
            "protocol": "http",
            "stubs": [
                {"responses": [{"proxy": {"to": "http://localhost:3000", "mode": "proxyOnce"}}]}
            ],
        }

    def test_config_is_immutable(self):
        """Test that the configuration cannot be mutated."""
        config = build_proxy_config("3002", "http://localhost:3000")

        with pytest.raises(AttributeError):
            config.port = 1


class TestSetupProxyConfig:
    """Test suite for writing the engine configuration file."""

    def test_writes_config_file(self, tmp_path):
        """Test that the config file is written as JSON."""
        config_path = tmp_path / "proxy-config.json"

        config = setup_proxy_config("3002", "http://localhost:3000", str(config_path))

        data = json.loads(config_path.read_text())
        assert data == config.to_dict()

    def test_overwrites_existing_file(self, tmp_path):
        """Test that an existing config file is replaced."""
        config_path = tmp_path / "proxy-config.json"
        config_path.write_text("old content")

        setup_proxy_config("4000", "http://localhost:3000", str(config_path))

        assert json.loads(config_path.read_text())["port"] == 4000

    def test_invalid_port_writes_nothing(self, tmp_path):
        """Test that a bad port fails before anything is written."""
        config_path = tmp_path / "proxy-config.json"

        with pytest.raises(ConfigError):
            setup_proxy_config("not-a-port", "http://localhost:3000", str(config_path))

        assert not config_path.exists()

    def test_missing_parent_directory(self, tmp_path):
        """Test that missing parent directories are not created."""
        config_path = tmp_path / "missing" / "proxy-config.json"

        with pytest.raises(ConfigError, match="failed to write engine config file"):
            setup_proxy_config("3002", "http://localhost:3000", str(config_path))

        assert not config_path.parent.exists()


class TestLoadProxyConfig:
    """Test suite for reading the engine configuration back."""

    def test_round_trip(self, tmp_path):
        """Test that a written config loads back equal."""
        config_path = tmp_path / "proxy-config.json"
        written = setup_proxy_config("3002", "http://localhost:3000", str(config_path))

        assert load_proxy_config(str(config_path)) == written

    def test_missing_file(self, tmp_path):
        """Test that a missing file is a ConfigError."""
        with pytest.raises(ConfigError):
            load_proxy_config(str(tmp_path / "nope.json"))

    def test_invalid_json(self, tmp_path):
        """Test that invalid JSON is a ConfigError."""
        config_path = tmp_path / "proxy-config.json"
        config_path.write_text("{not json")

        with pytest.raises(ConfigError):
            load_proxy_config(str(config_path))

    def test_missing_stubs(self):
        """Test that a config without stubs is rejected."""
        with pytest.raises(ConfigError):
            ProxyConfig.from_dict({"port": 3002, "stubs": []})
