#!/usr/bin/env python3
"""
Silent Client Daemon - keeps the tracked service occupied.

Runs three things in one process:
- The control loop (TransitionController) on an asyncio event loop
- The inbound HTTP interface (WebServer) on a background thread
- A shutdown hook that retracts the stand-in agent on SIGTERM/SIGINT,
  bounded by the shutdown deadline

Objects are constructed explicitly here and handed to the boundary layer;
nothing lives in module-level state.
"""

import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from .browser_agent import BrowserAgentLauncher
from .controller import TransitionController
from .heartbeat import HeartbeatTracker
from .logging_config import get_logger
from .pid_utils import get_process_pid, remove_pid_file, stop_process, write_pid_file
from .protocols import AgentLauncher
from .rate_limiter import RateLimiter
from .settings import Settings, get_pid_path
from .supervisor import AgentSupervisor
from .web_server import WebServer

log = get_logger("daemon")


def is_daemon_running(pid_path: Optional[Path] = None) -> bool:
    """Check if a daemon is alive according to its PID file."""
    return get_daemon_pid(pid_path) is not None


def get_daemon_pid(pid_path: Optional[Path] = None) -> Optional[int]:
    """Get the daemon PID if running, None otherwise."""
    return get_process_pid(pid_path or get_pid_path())


def stop_daemon(pid_path: Optional[Path] = None, timeout: float = 0.0) -> bool:
    """Send SIGTERM to the running daemon; its shutdown hook retracts the agent.

    Waits up to timeout seconds for it to exit. Returns True if a daemon
    was signalled.
    """
    return stop_process(pid_path or get_pid_path(), timeout=timeout)


class SilentClientDaemon:
    """Wires tracker, rate limiter, supervisor, controller and web server."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        launcher: Optional[AgentLauncher] = None,
        pid_path: Optional[Path] = None,
    ):
        self.settings = settings or Settings()
        s = self.settings

        self.tracker = HeartbeatTracker(timeout=s.heartbeat_timeout)
        self.rate_limiter = RateLimiter(max_attempts=s.max_spawn_attempts, window=s.spawn_window)
        self.launcher = launcher or BrowserAgentLauncher(
            headless=s.headless,
            launch_timeout=s.launch_timeout,
            teardown_timeout=s.teardown_timeout,
        )
        self.supervisor = AgentSupervisor(self.launcher, s.agent_url, self.rate_limiter)
        self.controller = TransitionController(
            self.tracker,
            self.supervisor,
            check_interval=s.check_interval,
            debounce_time=s.debounce_time,
        )
        self.web = WebServer(self.controller, host=s.host, port=s.port)
        self.pid_path = pid_path or get_pid_path()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def request_shutdown(self) -> None:
        """Stop the control loop; safe to call from a signal handler."""
        if self._loop is not None and self._loop.is_running():
            self._loop.call_soon_threadsafe(self.controller.stop)
        else:
            self.controller.stop()

    def _install_signal_handlers(self) -> None:
        def handle_shutdown(signum, frame):
            log.info("Shutdown signal received")
            self.request_shutdown()

        signal.signal(signal.SIGTERM, handle_shutdown)
        signal.signal(signal.SIGINT, handle_shutdown)

    async def shutdown(self) -> None:
        """Retract the agent within the shutdown deadline (best effort)."""
        deadline = self.settings.shutdown_deadline
        try:
            await asyncio.wait_for(self.controller.shutdown(), timeout=deadline)
        except asyncio.TimeoutError:
            log.warning(f"Stand-in not confirmed closed within {deadline}s, exiting anyway")

    async def run_async(self) -> None:
        """Serve and monitor until a shutdown is requested."""
        self._loop = asyncio.get_running_loop()
        self.web.start()
        write_pid_file(self.pid_path)
        log.info(f"PID: {os.getpid()}")
        log.info(f"Stand-in target: {self.settings.agent_url}")

        try:
            await self.controller.run()
        except Exception as e:
            log.error(f"Daemon error: {e}")
            raise
        finally:
            log.info("Silent client shutting down")
            await self.shutdown()
            self.web.stop()
            remove_pid_file(self.pid_path)

    def run(self) -> None:
        """Blocking entry point."""
        self._install_signal_handlers()
        asyncio.run(self.run_async())


def main() -> int:
    """Standalone entrypoint: python -m silent_client.daemon"""
    import argparse

    from .config import load_settings
    from .logging_config import setup_daemon_logging

    parser = argparse.ArgumentParser(description="Silent Client Daemon")
    parser.add_argument("--port", "-p", type=int, default=None, help="Port for the heartbeat/status server")
    parser.add_argument("--target-url", default=None, help="Address the stand-in opens")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args()

    setup_daemon_logging(verbose=args.verbose)
    settings = load_settings({"port": args.port, "target_url": args.target_url})

    if is_daemon_running():
        log.error(f"Silent client already running (PID {get_daemon_pid()})")
        return 1

    SilentClientDaemon(settings).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
