"""
Browser-side assets served by the web server or injected into the agent.

Templates are plain files under web/templates; the few runtime values are
substituted into __PLACEHOLDER__ markers.
"""

import json
from functools import lru_cache
from pathlib import Path

from .settings import DEFAULT_BEACON_INTERVAL, HEARTBEAT_PATH
from .states import AGENT_HEADER

_TEMPLATE_DIR = Path(__file__).parent / "web" / "templates"


@lru_cache(maxsize=None)
def _read(name: str) -> str:
    return (_TEMPLATE_DIR / name).read_text()


def get_beacon_js(
    heartbeat_url: str = HEARTBEAT_PATH,
    interval_seconds: float = DEFAULT_BEACON_INTERVAL,
) -> str:
    """Return the browser beacon script."""
    # json.dumps gives a safely quoted JS string; strip the quotes the template already has
    url = json.dumps(heartbeat_url)[1:-1]
    return (
        _read("beacon.js")
        .replace("__HEARTBEAT_URL__", url)
        .replace("__INTERVAL_MS__", str(int(interval_seconds * 1000)))
    )


@lru_cache(maxsize=None)
def get_agent_identity_script() -> str:
    """Init script marking a page as the stand-in and tagging its fetches."""
    return _read("agent_identity.js").replace("__AGENT_HEADER__", AGENT_HEADER)


def get_index_html() -> str:
    """Landing page that loads the beacon and shows live state."""
    return _read("index.html")
