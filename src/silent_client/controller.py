"""
Transition controller: decides when the stand-in should be substituted
or retracted.

Every check interval the control loop compares heartbeat liveness with the
committed state and, when they disagree, arms a debounced transition.
Transitions are two-step:

1. request_transition() mints a fresh token, marks the state
   TRANSITIONING and arms a timer for the debounce time. Arming a new
   request invalidates the previous token; a duplicate request for the
   target already pending is coalesced.
2. When the timer fires, a request whose token is no longer current is
   dropped without touching anything. Otherwise liveness is re-checked:
   if it still supports the target the supervisor spawns or kills the
   agent; if not, the transition is abandoned and the state is re-derived
   from present liveness.

Cancellation relies on token comparison, not on the timer's cancel().
"""

import asyncio
import itertools
import time
from datetime import datetime
from typing import Optional, Set

from .exceptions import LaunchFailure
from .heartbeat import HeartbeatTracker
from .logging_config import get_logger
from .settings import DEFAULT_CHECK_INTERVAL, DEFAULT_DEBOUNCE_TIME
from .states import LivenessState, TransitionRequest
from .supervisor import AgentSupervisor, SpawnResult

log = get_logger("controller")


class TransitionController:
    """Owns the LivenessState and drives the AgentSupervisor.

    Runs on a single event loop. HTTP handler threads only read state
    through the properties here.
    """

    def __init__(
        self,
        tracker: HeartbeatTracker,
        supervisor: AgentSupervisor,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        debounce_time: float = DEFAULT_DEBOUNCE_TIME,
    ):
        self.tracker = tracker
        self.supervisor = supervisor
        self.check_interval = check_interval
        self.debounce_time = debounce_time

        self._state = LivenessState.NO_CLIENT
        self._pending: Optional[TransitionRequest] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tokens = itertools.count(1)
        self._tasks: Set[asyncio.Task] = set()
        self._stop: Optional[asyncio.Event] = None
        self._shutdown = False

        self.loop_count = 0
        self.commit_count = 0
        self.last_error: Optional[str] = None
        self.last_error_at: Optional[datetime] = None

    # -----------------------------------------------------------------
    # Read-only views
    # -----------------------------------------------------------------

    @property
    def state(self) -> LivenessState:
        return self._state

    @property
    def pending(self) -> Optional[TransitionRequest]:
        return self._pending

    @property
    def pending_target(self) -> Optional[LivenessState]:
        pending = self._pending
        return pending.target if pending else None

    @property
    def is_ghosting(self) -> bool:
        return self._state is LivenessState.GHOST_ACTIVE

    def status(self) -> dict:
        """Snapshot for the status endpoint."""
        pending_target = self.pending_target
        return {
            "state": self._state.value,
            "realClientAlive": self.tracker.is_alive(),
            "pendingTarget": pending_target.value if pending_target else None,
            "agentActive": self.supervisor.has_agent,
            "commits": self.commit_count,
            "lastError": self.last_error,
        }

    # -----------------------------------------------------------------
    # Decision
    # -----------------------------------------------------------------

    def evaluate(self) -> Optional[TransitionRequest]:
        """Run one control-loop decision.

        Returns the request armed (or coalesced into) by this evaluation,
        None if the committed state already matches liveness or a
        transition is in progress.
        """
        state = self._state
        if state is LivenessState.TRANSITIONING:
            return None

        alive = self.tracker.is_alive()
        if alive and state in (LivenessState.GHOST_ACTIVE, LivenessState.NO_CLIENT):
            return self.request_transition(LivenessState.REAL_ACTIVE)
        if not alive and state in (LivenessState.REAL_ACTIVE, LivenessState.NO_CLIENT):
            return self.request_transition(LivenessState.GHOST_ACTIVE)
        return None

    def request_transition(self, target: LivenessState) -> TransitionRequest:
        """Arm a debounced transition toward target.

        Must be called from the event loop thread.

        Returns:
            The armed request; the existing one if it already heads for target
        """
        if not target.is_settled:
            raise ValueError(f"Cannot transition to {target.value}")

        pending = self._pending
        if (
            self._state is LivenessState.TRANSITIONING
            and pending is not None
            and pending.target is target
        ):
            return pending

        if self._timer is not None:
            self._timer.cancel()

        loop = asyncio.get_running_loop()
        request = TransitionRequest(
            target=target,
            token=next(self._tokens),
            fire_at=loop.time() + self.debounce_time,
        )
        self._state = LivenessState.TRANSITIONING
        self._pending = request
        self._timer = loop.call_later(self.debounce_time, self._on_timer, request)
        log.debug(f"Armed transition to {target.value} (token {request.token})")
        return request

    def _on_timer(self, request: TransitionRequest) -> None:
        task = asyncio.ensure_future(self.fire(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, request: TransitionRequest) -> bool:
        pending = self._pending
        return pending is not None and pending.token == request.token

    # -----------------------------------------------------------------
    # Commit
    # -----------------------------------------------------------------

    async def fire(self, request: TransitionRequest) -> bool:
        """Execute an armed request.

        Returns:
            False if the request was stale and nothing happened
        """
        if self._shutdown or not self._is_current(request):
            log.debug(f"Dropping stale transition to {request.target.value} (token {request.token})")
            return False

        try:
            settled = await self._apply(request.target)
        except LaunchFailure as e:
            self._record_error(e)
            log.error(f"Transition error: {e}")
            settled = LivenessState.NO_CLIENT
        except Exception as e:
            self._record_error(e)
            log.exception(f"Unexpected transition error: {e}")
            settled = LivenessState.NO_CLIENT

        # A newer request owns the state now; leave it alone
        if self._is_current(request):
            self._state = settled
            self.commit_count += 1
            self._pending = None
            self._timer = None
            log.info(f"State → {settled.value}")
        return True

    async def _apply(self, target: LivenessState) -> LivenessState:
        alive = self.tracker.is_alive()

        if target is LivenessState.GHOST_ACTIVE:
            if alive:
                log.info("Client came back during debounce, not spawning")
                return await self._settle_from_liveness(alive)
            result = await self.supervisor.spawn()
            if result is SpawnResult.RATE_LIMITED:
                log.info("Spawn deferred by rate limit, will retry")
            elif result is SpawnResult.RETRACTED:
                log.info("Spawn retracted by a newer transition")
            return LivenessState.GHOST_ACTIVE if self.supervisor.has_agent else LivenessState.NO_CLIENT

        if not alive:
            log.info("Client went away during debounce, keeping stand-in")
            return await self._settle_from_liveness(alive)
        await self.supervisor.kill()
        return LivenessState.REAL_ACTIVE

    async def _settle_from_liveness(self, alive: bool) -> LivenessState:
        """Settled state matching current liveness, keeping the agent consistent."""
        if alive:
            await self.supervisor.kill()
            return LivenessState.REAL_ACTIVE
        if self.supervisor.has_agent:
            return LivenessState.GHOST_ACTIVE
        return LivenessState.NO_CLIENT

    def _record_error(self, error: Exception) -> None:
        self.last_error = str(error)
        self.last_error_at = datetime.now()

    # -----------------------------------------------------------------
    # Loop
    # -----------------------------------------------------------------

    def tick(self) -> None:
        """One iteration of the control loop; never raises."""
        self.loop_count += 1
        try:
            self.evaluate()
        except Exception as e:
            self._record_error(e)
            log.exception(f"Control loop error: {e}")

    async def run(self) -> None:
        """Evaluate every check_interval until shutdown() is called."""
        self._stop = asyncio.Event()
        log.info(
            f"Monitoring liveness every {self.check_interval}s "
            f"(timeout {self.tracker.timeout}s, debounce {self.debounce_time}s)"
        )
        while not self._shutdown:
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.check_interval)
            except asyncio.TimeoutError:
                pass
            if self._shutdown:
                break
            self.tick()

    def stop(self) -> None:
        """Ask run() to return; the agent is left alone until shutdown()."""
        self._shutdown = True
        if self._stop is not None:
            self._stop.set()

    async def shutdown(self) -> None:
        """Stop the loop, invalidate any pending transition and retract the agent."""
        started = time.monotonic()
        self.stop()
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None

        await self.supervisor.shutdown()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._state = LivenessState.NO_CLIENT
        log.info(f"Controller stopped in {time.monotonic() - started:.1f}s")
