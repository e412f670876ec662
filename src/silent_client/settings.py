"""
Default settings and filesystem locations.

State lives under ~/.silent-client unless SILENT_CLIENT_DIR points
somewhere else (tests use this to stay out of the user's home).
"""

import os
from dataclasses import dataclass, asdict
from pathlib import Path


# Liveness / transition timing (seconds)
DEFAULT_HEARTBEAT_TIMEOUT = 10.0
DEFAULT_CHECK_INTERVAL = 2.0
DEFAULT_DEBOUNCE_TIME = 3.0

# Spawn rate limiting
DEFAULT_MAX_SPAWN_ATTEMPTS = 3
DEFAULT_SPAWN_WINDOW = 60.0

# Agent capability bounds
DEFAULT_LAUNCH_TIMEOUT = 30.0
DEFAULT_TEARDOWN_TIMEOUT = 10.0
DEFAULT_SHUTDOWN_DEADLINE = 5.0

# Inbound server
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000

# Beacon
DEFAULT_BEACON_INTERVAL = 2.0
HEARTBEAT_PATH = "/heartbeat"


def get_state_dir() -> Path:
    """Directory holding config, PID and log files."""
    override = os.environ.get("SILENT_CLIENT_DIR")
    if override:
        return Path(override)
    return Path.home() / ".silent-client"


def get_config_path() -> Path:
    return get_state_dir() / "config.yaml"


def get_pid_path() -> Path:
    return get_state_dir() / "silent_client.pid"


def get_log_path() -> Path:
    return get_state_dir() / "silent_client.log"


def ensure_state_dir() -> Path:
    """Create the state directory if needed and return it."""
    state_dir = get_state_dir()
    state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir


@dataclass
class Settings:
    """Effective runtime settings for the daemon."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    target_url: str = ""
    heartbeat_timeout: float = DEFAULT_HEARTBEAT_TIMEOUT
    check_interval: float = DEFAULT_CHECK_INTERVAL
    debounce_time: float = DEFAULT_DEBOUNCE_TIME
    max_spawn_attempts: int = DEFAULT_MAX_SPAWN_ATTEMPTS
    spawn_window: float = DEFAULT_SPAWN_WINDOW
    launch_timeout: float = DEFAULT_LAUNCH_TIMEOUT
    teardown_timeout: float = DEFAULT_TEARDOWN_TIMEOUT
    shutdown_deadline: float = DEFAULT_SHUTDOWN_DEADLINE
    headless: bool = True

    @property
    def agent_url(self) -> str:
        """Address the stand-in navigates to (the service itself by default)."""
        return self.target_url or f"http://localhost:{self.port}"

    def to_dict(self) -> dict:
        data = asdict(self)
        data["agent_url"] = self.agent_url
        return data
