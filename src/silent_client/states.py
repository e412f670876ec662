"""
Liveness states and transition requests.

Wire values match what the status endpoint has always reported, so
existing dashboards keep working.
"""

from dataclasses import dataclass
from enum import Enum


# Self-origin markers. Anything carrying one of these came from the
# stand-in agent and must never count as a genuine presence signal.
AGENT_HEADER = "X-Silent-Client-Agent"
AGENT_ORIGIN = "agent"
CLIENT_ORIGIN = "client"
AGENT_WINDOW_FLAG = "isGhostClient"
AGENT_ENV_VAR = "SILENT_CLIENT_AGENT"


class LivenessState(str, Enum):
    """Who currently occupies the tracked service."""

    NO_CLIENT = "NO_CLIENT"
    REAL_ACTIVE = "REAL_ACTIVE"
    GHOST_ACTIVE = "GHOST_ACTIVE"
    TRANSITIONING = "TRANSITIONING"

    @property
    def is_settled(self) -> bool:
        return self is not LivenessState.TRANSITIONING


@dataclass(frozen=True)
class TransitionRequest:
    """A debounced transition armed by the controller.

    Attributes:
        target: Settled state the transition is heading for
        token: Generation number; only the latest minted token is honored
        fire_at: Loop time (seconds) at which the request fires
    """

    target: LivenessState
    token: int
    fire_at: float
