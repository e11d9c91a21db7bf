"""
Recording engine configuration.

Builds the startup configuration the recording engine is launched with:
listen port, upstream target and the "proxyOnce" pass-through mode.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple
from urllib.parse import urlparse

from ..common.errors import ConfigError


PROXY_NAME = "pacttap-proxy"
PROXY_PROTOCOL = "http"
PROXY_MODE_ONCE = "proxyOnce"

MAX_PORT = 65535


@dataclass(frozen=True)
class ProxyTarget:
    """Where the engine forwards requests, and how often."""

    to: str
    mode: str = PROXY_MODE_ONCE

    def to_dict(self) -> Dict[str, Any]:
        return {"to": self.to, "mode": self.mode}


@dataclass(frozen=True)
class StubResponse:
    proxy: ProxyTarget

    def to_dict(self) -> Dict[str, Any]:
        return {"proxy": self.proxy.to_dict()}


@dataclass(frozen=True)
class Stub:
    responses: Tuple[StubResponse, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {"responses": [r.to_dict() for r in self.responses]}


@dataclass(frozen=True)
class ProxyConfig:
    """Startup configuration for the recording engine."""

    port: int
    name: str = PROXY_NAME
    protocol: str = PROXY_PROTOCOL
    stubs: Tuple[Stub, ...] = field(default_factory=tuple)

    @property
    def target(self) -> ProxyTarget:
        """The proxy target of the first stub response."""
        return self.stubs[0].responses[0].proxy

    def to_dict(self) -> Dict[str, Any]:
        return {
            "port": self.port,
            "name": self.name,
            "protocol": self.protocol,
            "stubs": [s.to_dict() for s in self.stubs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProxyConfig':
        """
        Create ProxyConfig from its JSON representation.

        Raises:
            ConfigError: If required keys are missing or have the wrong shape
        """
        try:
            stubs: List[Stub] = []
            for stub in data["stubs"]:
                responses = tuple(
                    StubResponse(ProxyTarget(
                        to=r["proxy"]["to"],
                        mode=r["proxy"].get("mode", PROXY_MODE_ONCE),
                    ))
                    for r in stub["responses"]
                )
                stubs.append(Stub(responses=responses))

            config = cls(
                port=int(data["port"]),
                name=data.get("name", PROXY_NAME),
                protocol=data.get("protocol", PROXY_PROTOCOL),
                stubs=tuple(stubs),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"invalid engine config: {e}") from e

        if not config.stubs or not config.stubs[0].responses:
            raise ConfigError("invalid engine config: no proxy stub configured")
        return config


def parse_port(port: str) -> int:
    """
    Parse a listen port given as a string.

    Raises:
        ConfigError: If the port is not an integer in 1..65535
    """
    try:
        value = int(str(port).strip())
    except ValueError:
        raise ConfigError(f"invalid port '{port}': must be a positive integer")

    if value <= 0 or value > MAX_PORT:
        raise ConfigError(f"invalid port '{port}': must be between 1 and {MAX_PORT}")
    return value


def validate_target(target: str) -> str:
    """
    Check that the upstream target is an absolute http(s) URL.

    Raises:
        ConfigError: If the target is empty or not an http(s) URL
    """
    if not target:
        raise ConfigError("invalid target: an upstream URL is required")

    parsed = urlparse(target)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ConfigError(f"invalid target '{target}': must be an http:// or https:// URL")
    return target


def build_proxy_config(port: str, target: str) -> ProxyConfig:
    """
    Build a record-once engine configuration.

    The configuration has exactly one stub with one response that proxies to
    the target in "proxyOnce" mode: the first request is forwarded and
    captured, identical requests afterwards may be answered from the capture.

    Args:
        port: Listen port as given on the command line
        target: URL of the provider stub or mock

    Returns:
        The engine configuration
    """
    port_int = parse_port(port)
    target = validate_target(target)

    return ProxyConfig(
        port=port_int,
        stubs=(Stub(responses=(StubResponse(ProxyTarget(to=target)),)),),
    )


def write_proxy_config(config: ProxyConfig, config_path: str) -> None:
    """
    Write the engine configuration, overwriting any existing file.

    Missing parent directories are not created.

    Raises:
        ConfigError: If the file cannot be written
    """
    try:
        with open(config_path, 'w', encoding='utf-8') as f:
            json.dump(config.to_dict(), f, indent=2)
    except OSError as e:
        raise ConfigError(f"failed to write engine config file: {e}") from e


def setup_proxy_config(port: str, target: str, config_path: str) -> ProxyConfig:
    """Build the engine configuration and write it to config_path."""
    config = build_proxy_config(port, target)
    write_proxy_config(config, config_path)
    return config


def load_proxy_config(config_path: str) -> ProxyConfig:
    """
    Load an engine configuration written by write_proxy_config.

    Raises:
        ConfigError: If the file is missing or not valid JSON
    """
    path = Path(config_path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"failed to read engine config file: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"engine config file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"engine config file {path} must contain a JSON object")
    return ProxyConfig.from_dict(data)
