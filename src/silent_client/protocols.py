"""
Protocol definitions for the stand-in agent capability.

The supervisor only depends on these interfaces, so the Playwright-backed
implementation can be swapped for fakes in tests.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class AgentHandle(Protocol):
    """A running stand-in agent."""

    async def close(self) -> None:
        """Release the agent process.

        Raises:
            TeardownFailure: If closing errors or exceeds the teardown timeout
        """
        ...


@runtime_checkable
class AgentLauncher(Protocol):
    """Starts stand-in agents pointed at the tracked service.

    Contract for implementations:
    - Before any of the service's own code runs, the agent exposes a
      read-only self-identity flag and tags every outbound request with
      the self-origin marker.
    - launch() either returns a fully navigated handle or raises
      LaunchFailure after releasing everything it created.
    """

    async def launch(self, url: str) -> AgentHandle:
        """Start an agent and navigate it to url.

        Raises:
            LaunchFailure: If the agent cannot start or reach url in time
        """
        ...
