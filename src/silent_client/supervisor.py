"""
Lifecycle owner for the single stand-in agent.

All check-then-act sequences that cross an await are protected by the
spawning/killing flags rather than locks: everything runs on one event
loop, so the only hazard is the same operation being re-entered while
it is suspended.

A kill() that arrives while a launch is in flight marks the launch for
retraction and waits for it; the new agent is closed as soon as it comes
up instead of being kept. A spawn() that arrives while a kill is closing
the previous agent waits for the close first, so two agents never run
side by side.
"""

import asyncio
from enum import Enum
from typing import Optional

from .exceptions import LaunchFailure
from .logging_config import get_logger
from .protocols import AgentHandle, AgentLauncher
from .rate_limiter import RateLimiter

log = get_logger("supervisor")


class SpawnResult(str, Enum):
    """Outcome of AgentSupervisor.spawn() when it doesn't raise."""

    STARTED = "started"
    ALREADY_RUNNING = "already_running"
    IN_FLIGHT = "in_flight"
    RATE_LIMITED = "rate_limited"
    RETRACTED = "retracted"
    SHUT_DOWN = "shut_down"


class AgentSupervisor:
    """Starts and stops at most one stand-in agent.

    The handle is private: callers see only has_agent and the
    spawn()/kill()/shutdown() operations.
    """

    def __init__(
        self,
        launcher: AgentLauncher,
        url: str,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        self.launcher = launcher
        self.url = url
        self.rate_limiter = rate_limiter or RateLimiter()
        self._handle: Optional[AgentHandle] = None
        self._spawning = False
        self._killing = False
        self._closed = False
        self._retract_requested = False
        self._retracted = False
        self._launch_finished: Optional[asyncio.Event] = None
        self._kill_finished: Optional[asyncio.Event] = None
        self.spawn_count = 0
        self.last_error: Optional[str] = None

    @property
    def has_agent(self) -> bool:
        return self._handle is not None

    @property
    def spawning(self) -> bool:
        return self._spawning

    @property
    def killing(self) -> bool:
        return self._killing

    async def spawn(self) -> SpawnResult:
        """Start the stand-in unless one exists, is starting, or is rate limited.

        Raises:
            LaunchFailure: If the launcher fails; nothing is left running
        """
        if self._closed:
            return SpawnResult.SHUT_DOWN
        if self._handle is not None:
            return SpawnResult.ALREADY_RUNNING
        if self._spawning:
            return SpawnResult.IN_FLIGHT

        self._spawning = True
        self._retract_requested = False
        self._retracted = False
        finished = self._launch_finished = asyncio.Event()
        try:
            pending_kill = self._kill_finished
            if pending_kill is not None:
                log.debug("Waiting for the previous stand-in to close")
                await pending_kill.wait()

            if self._closed:
                return SpawnResult.SHUT_DOWN
            if self._retract_requested:
                return SpawnResult.RETRACTED
            if not self.rate_limiter.can_spawn():
                wait = self.rate_limiter.seconds_until_available()
                log.warning(f"Spawn rate limit reached, next attempt allowed in {wait:.0f}s")
                return SpawnResult.RATE_LIMITED

            log.info(f"Spawning stand-in agent for {self.url}")
            try:
                handle = await self.launcher.launch(self.url)
            except LaunchFailure as e:
                self.last_error = str(e)
                log.error(f"Spawn failed: {e}")
                raise

            if self._closed or self._retract_requested:
                # kill() or shutdown() ran while we were launching; don't keep the agent
                log.info("Stand-in retracted during spawn, closing new agent")
                await self._release(handle)
                self._retracted = True
                return SpawnResult.SHUT_DOWN if self._closed else SpawnResult.RETRACTED

            self._handle = handle
            self.spawn_count += 1
            self.last_error = None
            log.info("Stand-in agent active")
            return SpawnResult.STARTED
        finally:
            self._spawning = False
            finished.set()

    async def kill(self) -> bool:
        """Retract the stand-in, including one that is still launching.

        The handle is cleared before closing, so observers see "no agent"
        immediately. Close errors are logged and not retried. When a launch
        is in flight, this waits for it and the new agent is closed.

        Returns:
            True if an agent was retracted by this call
        """
        if self._handle is None:
            if self._spawning and not self._retract_requested:
                return await self._retract_in_flight()
            return False
        if self._killing:
            return False

        self._killing = True
        finished = self._kill_finished = asyncio.Event()
        handle = self._handle
        self._handle = None
        try:
            await self._release(handle)
            log.info("Stand-in agent terminated")
            return True
        finally:
            self._killing = False
            self._kill_finished = None
            finished.set()

    async def _retract_in_flight(self) -> bool:
        self._retract_requested = True
        log.info("Kill requested while spawning, retracting the new agent")
        await self._launch_finished.wait()
        return self._retracted

    async def _release(self, handle: AgentHandle) -> None:
        try:
            await handle.close()
        except Exception as e:
            # TeardownFailure from well-behaved launchers, anything else from the rest
            self.last_error = str(e)
            log.error(f"Kill error: {e}")

    async def shutdown(self) -> None:
        """Refuse further spawns and retract any running or launching agent."""
        self._closed = True
        await self.kill()
