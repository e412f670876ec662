"""
Unit tests for AgentSupervisor.
"""

import asyncio

import pytest

from silent_client.exceptions import LaunchFailure
from silent_client.rate_limiter import RateLimiter
from silent_client.supervisor import AgentSupervisor, SpawnResult

from tests.fixtures import FakeClock, FakeLauncher


def make_supervisor(launcher=None, max_attempts=3, clock=None):
    launcher = launcher or FakeLauncher()
    limiter = RateLimiter(max_attempts=max_attempts, window=60, clock=clock or FakeClock())
    return AgentSupervisor(launcher, "http://localhost:8000", limiter), launcher


class TestSpawn:
    """Test starting the stand-in."""

    @pytest.mark.asyncio
    async def test_spawn_starts_agent(self):
        supervisor, launcher = make_supervisor()

        result = await supervisor.spawn()

        assert result is SpawnResult.STARTED
        assert supervisor.has_agent is True
        assert launcher.launches == ["http://localhost:8000"]
        assert supervisor.spawn_count == 1

    @pytest.mark.asyncio
    async def test_spawn_noop_when_agent_exists(self):
        supervisor, launcher = make_supervisor()

        await supervisor.spawn()

        assert await supervisor.spawn() is SpawnResult.ALREADY_RUNNING
        assert len(launcher.launches) == 1

    @pytest.mark.asyncio
    async def test_concurrent_spawns_yield_one_agent(self):
        """A spawn issued while another is in flight is a no-op"""
        supervisor, launcher = make_supervisor(FakeLauncher(delay=0.05))

        first = asyncio.ensure_future(supervisor.spawn())
        await asyncio.sleep(0.01)
        assert supervisor.spawning is True
        second = await supervisor.spawn()

        assert await first is SpawnResult.STARTED
        assert second is SpawnResult.IN_FLIGHT
        assert len(launcher.launches) == 1
        assert len(launcher.live_handles) == 1
        assert supervisor.spawning is False

    @pytest.mark.asyncio
    async def test_gathered_spawns_yield_one_agent(self):
        supervisor, launcher = make_supervisor(FakeLauncher(delay=0.02))

        results = await asyncio.gather(*(supervisor.spawn() for _ in range(5)))

        assert results.count(SpawnResult.STARTED) == 1
        assert len(launcher.handles) == 1

    @pytest.mark.asyncio
    async def test_launch_failure_propagates_and_leaves_no_agent(self):
        supervisor, launcher = make_supervisor(FakeLauncher(fail=True))

        with pytest.raises(LaunchFailure):
            await supervisor.spawn()

        assert supervisor.has_agent is False
        assert supervisor.spawning is False
        assert "did not reach" in supervisor.last_error

    @pytest.mark.asyncio
    async def test_rate_limited_spawn_not_attempted(self):
        """Fourth spawn inside the window is rejected without launching"""
        clock = FakeClock()
        supervisor, launcher = make_supervisor(clock=clock)

        results = []
        for _ in range(4):
            results.append(await supervisor.spawn())
            await supervisor.kill()
            clock.advance(2)

        assert results[:3] == [SpawnResult.STARTED] * 3
        assert results[3] is SpawnResult.RATE_LIMITED
        assert len(launcher.launches) == 3
        assert supervisor.rate_limiter.attempts_in_window == 3

    @pytest.mark.asyncio
    async def test_spawn_allowed_again_after_window(self):
        clock = FakeClock()
        supervisor, launcher = make_supervisor(max_attempts=1, clock=clock)

        await supervisor.spawn()
        await supervisor.kill()
        assert await supervisor.spawn() is SpawnResult.RATE_LIMITED

        clock.advance(60)
        assert await supervisor.spawn() is SpawnResult.STARTED

    @pytest.mark.asyncio
    async def test_failed_launch_counts_against_rate_limit(self):
        supervisor, launcher = make_supervisor(FakeLauncher(fail=True), max_attempts=2)

        for _ in range(2):
            with pytest.raises(LaunchFailure):
                await supervisor.spawn()

        assert await supervisor.spawn() is SpawnResult.RATE_LIMITED
        assert len(launcher.launches) == 2

    @pytest.mark.asyncio
    async def test_spawn_during_kill_waits_for_close(self):
        """The next agent starts only after the previous one has closed"""
        supervisor, launcher = make_supervisor(FakeLauncher(close_delay=0.1))
        await supervisor.spawn()

        kill = asyncio.ensure_future(supervisor.kill())
        await asyncio.sleep(0.02)
        assert supervisor.killing is True

        assert await supervisor.spawn() is SpawnResult.STARTED
        assert await kill is True
        assert launcher.live_at_launch == [0, 0]
        assert len(launcher.live_handles) == 1


class TestKill:
    """Test retracting the stand-in."""

    @pytest.mark.asyncio
    async def test_kill_closes_agent(self):
        supervisor, launcher = make_supervisor()
        await supervisor.spawn()

        assert await supervisor.kill() is True
        assert supervisor.has_agent is False
        assert launcher.handles[0].closed is True

    @pytest.mark.asyncio
    async def test_kill_without_agent_is_noop(self):
        supervisor, _ = make_supervisor()
        assert await supervisor.kill() is False

    @pytest.mark.asyncio
    async def test_handle_cleared_before_close(self):
        """Observers see 'no agent' while the close is still running"""
        launcher = FakeLauncher()
        supervisor, _ = make_supervisor(launcher)
        seen = []
        launcher.on_close = lambda handle: seen.append(supervisor.has_agent)

        await supervisor.spawn()
        await supervisor.kill()

        assert seen == [False]

    @pytest.mark.asyncio
    async def test_concurrent_kills_close_once(self):
        supervisor, launcher = make_supervisor()
        await supervisor.spawn()

        results = await asyncio.gather(supervisor.kill(), supervisor.kill())

        assert sorted(results) == [False, True]
        assert launcher.handles[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_teardown_failure_still_clears_handle(self):
        """Close errors are logged, not retried, and the agent counts as gone"""
        supervisor, launcher = make_supervisor(FakeLauncher(fail_close=True))
        await supervisor.spawn()

        assert await supervisor.kill() is True
        assert supervisor.has_agent is False
        assert launcher.handles[0].close_calls == 1
        assert "refused to close" in supervisor.last_error

    @pytest.mark.asyncio
    async def test_kill_during_spawn_retracts_new_agent(self):
        """An agent still launching when kill() arrives is closed, not kept"""
        supervisor, launcher = make_supervisor(FakeLauncher(delay=0.05))

        spawn = asyncio.ensure_future(supervisor.spawn())
        await asyncio.sleep(0.01)
        killed = await supervisor.kill()

        assert killed is True
        assert await spawn is SpawnResult.RETRACTED
        assert supervisor.has_agent is False
        assert len(launcher.handles) == 1
        assert launcher.live_handles == []

    @pytest.mark.asyncio
    async def test_kill_during_failed_spawn(self):
        supervisor, launcher = make_supervisor(FakeLauncher(delay=0.05, fail=True))

        spawn = asyncio.ensure_future(supervisor.spawn())
        await asyncio.sleep(0.01)

        assert await supervisor.kill() is False
        with pytest.raises(LaunchFailure):
            await spawn
        assert supervisor.has_agent is False

    @pytest.mark.asyncio
    async def test_spawn_after_retraction_starts_fresh(self):
        supervisor, launcher = make_supervisor(FakeLauncher(delay=0.02))

        spawn = asyncio.ensure_future(supervisor.spawn())
        await asyncio.sleep(0.005)
        await supervisor.kill()
        await spawn

        assert await supervisor.spawn() is SpawnResult.STARTED
        assert supervisor.has_agent is True


class TestShutdown:
    """Test supervisor shutdown."""

    @pytest.mark.asyncio
    async def test_shutdown_kills_agent_and_blocks_spawns(self):
        supervisor, launcher = make_supervisor()
        await supervisor.spawn()

        await supervisor.shutdown()

        assert await supervisor.spawn() is SpawnResult.SHUT_DOWN
        assert launcher.live_handles == []
        assert len(launcher.launches) == 1

    @pytest.mark.asyncio
    async def test_shutdown_during_spawn_closes_late_agent(self):
        """An agent that finishes launching after shutdown is closed, not kept"""
        supervisor, launcher = make_supervisor(FakeLauncher(delay=0.05))

        spawn = asyncio.ensure_future(supervisor.spawn())
        await asyncio.sleep(0.01)
        await supervisor.shutdown()

        assert launcher.live_handles == []
        assert await spawn is SpawnResult.SHUT_DOWN
        assert supervisor.has_agent is False
        assert len(launcher.handles) == 1
        assert launcher.handles[0].closed is True
