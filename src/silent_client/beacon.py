"""
beacon.py

Presence beacon for Python clients (the browser equivalent is served at
/beacon.js).

Posts a heartbeat every interval from a daemon thread, so it keeps
reporting even while the host program is busy. A process running as the
stand-in agent (SILENT_CLIENT_AGENT set) never emits anything.

Usage from another Python app:

    from silent_client.beacon import start_beacon

    beacon = start_beacon("http://localhost:8000/heartbeat")
    # ... your app runs ...
    beacon.stop()  # optional, stops at interpreter exit anyway

CLI usage:

    silent-client beacon --url http://localhost:8000

to run it in the foreground.
"""

import atexit
import json
import os
import socket
import threading
from typing import Optional
from urllib.error import URLError
from urllib.request import Request, urlopen

from .logging_config import get_logger
from .settings import DEFAULT_BEACON_INTERVAL
from .states import AGENT_ENV_VAR, CLIENT_ORIGIN

log = get_logger("beacon")


def is_agent_context() -> bool:
    """True when this process is the stand-in agent."""
    return os.environ.get(AGENT_ENV_VAR, "") not in ("", "0")


class Beacon:
    """
    Background heartbeat emitter.

    - Call .start() to spin up a daemon thread that beats continuously.
    - Call .stop() to ask it to shut down cleanly.
    """

    def __init__(self, url: str, interval: float = DEFAULT_BEACON_INTERVAL, timeout: float = 3.0):
        self.url = url
        self.interval = interval
        self.timeout = timeout
        self.ghosting: Optional[bool] = None
        self.sent = 0
        self.failures = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()  # protect start/stop

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> bool:
        """Start beating (idempotent).

        Returns:
            False if suppressed because this process is the stand-in
        """
        if is_agent_context():
            log.info("Running as stand-in agent, heartbeat suppressed")
            return False
        with self._lock:
            if self.running:
                return True
            self._stop_event.clear()
            self._thread = threading.Thread(
                target=self._run, name="SilentClientBeacon", daemon=True
            )
            self._thread.start()
            return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Request the beacon to stop and optionally wait for it."""
        with self._lock:
            if self._thread is None:
                return
            self._stop_event.set()
            self._thread.join(timeout=timeout)
            # Don't reuse threads
            self._thread = None

    def send_once(self) -> Optional[dict]:
        """Post one heartbeat. Returns the server's reply, None on failure."""
        body = json.dumps({"origin": CLIENT_ORIGIN}).encode("utf-8")
        req = Request(self.url, data=body, method="POST")
        req.add_header("Content-Type", "application/json")
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                reply = json.loads(resp.read().decode("utf-8"))
        except (URLError, socket.timeout, json.JSONDecodeError, OSError) as e:
            self.failures += 1
            log.debug(f"Heartbeat to {self.url} failed: {e}")
            return None

        self.sent += 1
        ghosting = bool(reply.get("ghosting")) if isinstance(reply, dict) else False
        if self.ghosting and not ghosting:
            log.info("Session reclaimed from stand-in")
        self.ghosting = ghosting
        return reply

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.send_once()
            self._stop_event.wait(self.interval)


# ---- process-wide singleton --------------------------------------------------

_singleton_beacon: Optional[Beacon] = None
_singleton_lock = threading.Lock()


def start_beacon(url: str, interval: float = DEFAULT_BEACON_INTERVAL) -> Beacon:
    """
    Create (if needed) and start the process-wide Beacon.

    Calling this again, even with different arguments, returns the same
    instance so one process never runs two beacons.
    """
    global _singleton_beacon
    with _singleton_lock:
        if _singleton_beacon is None:
            _singleton_beacon = Beacon(url, interval)
            atexit.register(_singleton_beacon.stop, 1.0)
        _singleton_beacon.start()
        return _singleton_beacon


def get_beacon() -> Optional[Beacon]:
    """Get the singleton beacon if it exists."""
    return _singleton_beacon
