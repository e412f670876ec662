"""
Test fixtures and fakes for silent-client unit tests.

Provides a controllable clock and an in-memory agent launcher so the
state machine can be exercised without a real browser.
"""

import asyncio
from typing import Callable, List, Optional

from silent_client.exceptions import LaunchFailure, TeardownFailure
from silent_client.heartbeat import HeartbeatTracker
from silent_client.controller import TransitionController
from silent_client.rate_limiter import RateLimiter
from silent_client.supervisor import AgentSupervisor


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAgentHandle:
    """Stand-in handle that records close() calls."""

    def __init__(
        self,
        url: str,
        fail_close: bool = False,
        on_close: Optional[Callable] = None,
        close_delay: float = 0.0,
    ):
        self.url = url
        self.fail_close = fail_close
        self.close_delay = close_delay
        self.on_close = on_close
        self.close_calls = 0
        self.closed = False

    async def close(self) -> None:
        self.close_calls += 1
        if self.on_close is not None:
            self.on_close(self)
        await asyncio.sleep(self.close_delay)
        self.closed = True
        if self.fail_close:
            raise TeardownFailure("browser refused to close")


class FakeLauncher:
    """AgentLauncher that hands out FakeAgentHandles."""

    def __init__(
        self,
        delay: float = 0.0,
        fail: bool = False,
        fail_close: bool = False,
        close_delay: float = 0.0,
    ):
        self.delay = delay
        self.fail = fail
        self.fail_close = fail_close
        self.close_delay = close_delay
        self.live_at_launch: List[int] = []
        self.on_close: Optional[Callable] = None
        self.launches: List[str] = []
        self.handles: List[FakeAgentHandle] = []

    async def launch(self, url: str) -> FakeAgentHandle:
        self.launches.append(url)
        self.live_at_launch.append(len(self.live_handles))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise LaunchFailure(f"Agent did not reach {url}", url=url)
        handle = FakeAgentHandle(
            url, fail_close=self.fail_close, on_close=self.on_close, close_delay=self.close_delay
        )
        self.handles.append(handle)
        return handle

    @property
    def live_handles(self) -> List[FakeAgentHandle]:
        return [h for h in self.handles if not h.closed]


def create_stack(
    launcher: Optional[FakeLauncher] = None,
    clock: Optional[FakeClock] = None,
    heartbeat_timeout: float = 10.0,
    check_interval: float = 0.02,
    debounce_time: float = 0.05,
    max_spawn_attempts: int = 3,
):
    """Build tracker, supervisor and controller wired like the daemon does.

    Returns:
        Tuple of (controller, tracker, supervisor, launcher, clock)
    """
    clock = clock or FakeClock()
    launcher = launcher or FakeLauncher()
    tracker = HeartbeatTracker(timeout=heartbeat_timeout, clock=clock)
    limiter = RateLimiter(max_attempts=max_spawn_attempts, window=60.0, clock=clock)
    supervisor = AgentSupervisor(launcher, "http://localhost:8000", limiter)
    controller = TransitionController(
        tracker, supervisor, check_interval=check_interval, debounce_time=debounce_time
    )
    return controller, tracker, supervisor, launcher, clock
