"""
Configuration loading for silent-client.

Config file location: ~/.silent-client/config.yaml

Example config:
    server:
      host: 127.0.0.1
      port: 8000
    target_url: http://localhost:3000
    monitor:
      heartbeat_timeout: 10
      check_interval: 2
      debounce_time: 3
      max_spawn_attempts: 3
      spawn_window: 60
    agent:
      launch_timeout: 30
      teardown_timeout: 10
      headless: true
    shutdown_deadline: 5

Environment variables PORT, SILENT_CLIENT_HOST and SILENT_CLIENT_TARGET_URL
override the file; explicit overrides (CLI options) override both.
"""

import os
from typing import Any, Optional

import yaml

from .exceptions import ConfigError
from .settings import Settings, get_config_path


CONFIG_PATH = get_config_path()

# (section, key) in the YAML -> Settings attribute
_NUMERIC_KEYS = {
    ("monitor", "heartbeat_timeout"): "heartbeat_timeout",
    ("monitor", "check_interval"): "check_interval",
    ("monitor", "debounce_time"): "debounce_time",
    ("monitor", "max_spawn_attempts"): "max_spawn_attempts",
    ("monitor", "spawn_window"): "spawn_window",
    ("agent", "launch_timeout"): "launch_timeout",
    ("agent", "teardown_timeout"): "teardown_timeout",
    (None, "shutdown_deadline"): "shutdown_deadline",
}

_INT_FIELDS = {"port", "max_spawn_attempts"}


def load_config() -> dict:
    """Load configuration from config file.

    Returns an empty dict when the file is missing, unreadable, invalid
    YAML, or not a mapping.
    """
    if not CONFIG_PATH.exists():
        return {}

    try:
        with open(CONFIG_PATH) as f:
            data = yaml.safe_load(f)
    except (yaml.YAMLError, IOError):
        return {}

    if not isinstance(data, dict):
        return {}
    return data


def _section(config: dict, name: Optional[str]) -> dict:
    if name is None:
        return config
    section = config.get(name)
    return section if isinstance(section, dict) else {}


def _positive(key: str, value: Any, as_int: bool = False):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(key, value)
    if value <= 0:
        raise ConfigError(key, value)
    return int(value) if as_int else float(value)


def load_settings(overrides: Optional[dict] = None) -> Settings:
    """Build effective Settings from config file, environment and overrides.

    Args:
        overrides: Attribute -> value; None values are ignored

    Raises:
        ConfigError: If a numeric value is not a positive number
    """
    config = load_config()
    settings = Settings()

    server = _section(config, "server")
    if server.get("host"):
        settings.host = str(server["host"])
    if "port" in server:
        settings.port = _positive("server.port", server["port"], as_int=True)

    if config.get("target_url"):
        settings.target_url = str(config["target_url"])

    for (section, key), attr in _NUMERIC_KEYS.items():
        values = _section(config, section)
        if key in values:
            name = f"{section}.{key}" if section else key
            setattr(settings, attr, _positive(name, values[key], as_int=attr in _INT_FIELDS))

    agent = _section(config, "agent")
    if "headless" in agent:
        settings.headless = bool(agent["headless"])

    # Environment
    if os.environ.get("PORT"):
        try:
            settings.port = _positive("PORT", int(os.environ["PORT"]), as_int=True)
        except ValueError:
            raise ConfigError("PORT", os.environ["PORT"])
    if os.environ.get("SILENT_CLIENT_HOST"):
        settings.host = os.environ["SILENT_CLIENT_HOST"]
    if os.environ.get("SILENT_CLIENT_TARGET_URL"):
        settings.target_url = os.environ["SILENT_CLIENT_TARGET_URL"]

    for attr, value in (overrides or {}).items():
        if value is None:
            continue
        if not hasattr(settings, attr):
            raise ConfigError(attr, value, "unknown setting")
        if attr in _INT_FIELDS or attr.endswith(("_timeout", "_interval", "_time", "_window", "_deadline")):
            value = _positive(attr, value, as_int=attr in _INT_FIELDS)
        setattr(settings, attr, value)

    return settings
