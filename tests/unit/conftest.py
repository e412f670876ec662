"""
Unit test configuration for silent-client.

Every test gets its own state directory and config path so nothing reads
or writes ~/.silent-client.
"""

import pytest

from silent_client import config


@pytest.fixture(autouse=True)
def isolated_state_dir(tmp_path, monkeypatch):
    """Point SILENT_CLIENT_DIR and the config path at a temp directory."""
    state_dir = tmp_path / "state"
    monkeypatch.setenv("SILENT_CLIENT_DIR", str(state_dir))
    monkeypatch.setattr(config, "CONFIG_PATH", state_dir / "config.yaml")
    for var in ("PORT", "SILENT_CLIENT_HOST", "SILENT_CLIENT_TARGET_URL", "SILENT_CLIENT_AGENT"):
        monkeypatch.delenv(var, raising=False)
    return state_dir
