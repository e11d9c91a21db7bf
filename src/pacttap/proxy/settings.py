"""
Proxy command settings.

All values the proxy command needs are resolved once, from command-line
flags and the optional .pacttaprc.yaml file, into a single immutable
ProxySettings object that is handed to every component.
"""

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from ..common.errors import ConfigError
from .config import parse_port


RC_FILE_NAME = ".pacttaprc.yaml"
DEFAULT_WORK_DIR = ".pacttap"
DEFAULT_READY_TIMEOUT = 10.0

CONFIG_FILE_NAME = "proxy-config.json"
DATA_DIR_NAME = "data"

# (settings attribute, flag / rc key) in the order they are validated
REQUIRED_VALUES = [
    ("output_path", "path"),
    ("port", "port"),
    ("target", "target"),
    ("consumer_name", "name"),
    ("provider_name", "provider-name"),
]


@dataclass(frozen=True)
class ProxySettings:
    """Per-invocation configuration of the proxy command."""

    output_path: str
    port: str
    target: str
    consumer_name: str
    provider_name: str
    work_dir: str = DEFAULT_WORK_DIR
    ready_timeout: float = DEFAULT_READY_TIMEOUT
    quiet: bool = False
    engine_command: Optional[List[str]] = field(default=None, compare=False)

    @property
    def config_path(self) -> Path:
        """Engine configuration file."""
        return Path(self.work_dir) / CONFIG_FILE_NAME

    @property
    def data_dir(self) -> Path:
        """Directory the engine keeps its captures in."""
        return Path(self.work_dir) / DATA_DIR_NAME

    @property
    def stubs_dir(self) -> Path:
        """
        Per-port capture directory read by the synthesis pipeline.

        Named after the parsed port, the same way the engine names it, so
        "03002" and "3002" share one directory.

        Raises:
            ConfigError: If the port is not a valid port number
        """
        return self.data_dir / str(parse_port(self.port)) / "stubs"

    def validate(self) -> None:
        """
        Check that every required value is present.

        Raises:
            ConfigError: Naming the first missing flag
        """
        for attr, flag in REQUIRED_VALUES:
            if not str(getattr(self, attr) or "").strip():
                raise ConfigError(f"No --{flag} was provided. This is a required flag.")

    def build_engine_command(self) -> List[str]:
        """
        Command line of the recording engine.

        Defaults to the bundled mitmproxy-based engine running under the
        current interpreter.
        """
        if self.engine_command:
            return list(self.engine_command)

        command = [
            sys.executable, "-m", "pacttap.capture.engine",
            "--configfile", str(self.config_path),
            "--datadir", str(self.data_dir),
        ]
        if self.quiet:
            command.append("--quiet")
        return command


TRUE_VALUES = ("true", "yes", "on", "1")
FALSE_VALUES = ("false", "no", "off", "0", "")


def parse_bool(value: Any, name: str) -> bool:
    """
    Interpret a flag or rc-file value as a boolean.

    YAML gives real booleans for true/false, but quoted strings such as
    "false" must not count as set.

    Raises:
        ConfigError: If the value is not recognisably true or false
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ConfigError(f"invalid {name} value '{value}': expected true or false")


def load_rc_file(path: str) -> Dict[str, Any]:
    """
    Load the ``proxy`` section of a .pacttaprc.yaml file.

    Example file:
        proxy:
          path: pacts/web-orders.json
          port: 3002
          target: http://localhost:3000
          name: web
          provider-name: orders

    Returns:
        The proxy section, or an empty dict if the file does not exist

    Raises:
        ConfigError: If the file is not valid YAML or has the wrong shape
    """
    rc_path = Path(path)
    if not rc_path.exists():
        return {}

    try:
        with open(rc_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid config file {rc_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read config file {rc_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"invalid config file {rc_path}: expected a mapping")

    section = data.get("proxy") or {}
    if not isinstance(section, dict):
        raise ConfigError(f"invalid config file {rc_path}: 'proxy' must be a mapping")
    return section


def resolve_settings(flags: Dict[str, Any], rc: Optional[Dict[str, Any]] = None) -> ProxySettings:
    """
    Merge command-line flags over rc-file values and validate the result.

    Args:
        flags: Flag values keyed like the rc file (``path``, ``port``,
            ``target``, ``name``, ``provider-name``, ...). None means unset.
        rc: The ``proxy`` section of the rc file

    Returns:
        Validated ProxySettings

    Raises:
        ConfigError: If a required value is missing
    """
    rc = rc or {}

    def pick(key: str, default: Any = "") -> Any:
        value = flags.get(key)
        if value is None or value == "":
            value = rc.get(key)
        if value is None:
            return default
        return value

    try:
        ready_timeout = float(pick("ready-timeout", DEFAULT_READY_TIMEOUT))
    except (TypeError, ValueError):
        raise ConfigError(f"invalid ready timeout '{pick('ready-timeout')}': must be a number of seconds")

    settings = ProxySettings(
        output_path=str(pick("path")),
        port=str(pick("port")),
        target=str(pick("target")),
        consumer_name=str(pick("name")),
        provider_name=str(pick("provider-name")),
        work_dir=str(pick("work-dir", DEFAULT_WORK_DIR)),
        ready_timeout=ready_timeout,
        quiet=parse_bool(pick("quiet", False), "quiet"),
    )
    settings.validate()
    return settings
