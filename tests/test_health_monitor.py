import asyncio
from unittest.mock import AsyncMock

import pytest

from agent_scheduler.clock import HOUR_MS, MINUTE_MS
from agent_scheduler.health import HealthMonitor, HealthStatus
from agent_scheduler.history import UpdateStatus


@pytest.mark.asyncio
async def test_reply_classification(network, history, clock):
    network.silent = {"quiet-agent"}
    network.failing = {"broken-agent"}
    monitor = HealthMonitor(network, history, clock=clock)

    healthy = await monitor.check_health("ok-agent")
    silent = await monitor.check_health("quiet-agent")
    broken = await monitor.check_health("broken-agent")

    assert healthy.status == HealthStatus.HEALTHY
    assert silent.status == HealthStatus.UNRESPONSIVE
    assert broken.status == HealthStatus.ERROR
    assert "did not answer" in broken.error
    assert broken.needs_update
    assert monitor.get("broken-agent").status == HealthStatus.ERROR


@pytest.mark.asyncio
async def test_staleness_from_history(network, history, clock):
    monitor = HealthMonitor(network, history, clock=clock)
    history.record("fresh", UpdateStatus.SUCCESS, timestamp=clock.now - 10 * MINUTE_MS)
    history.record("lagging", UpdateStatus.SUCCESS, timestamp=clock.now - 45 * MINUTE_MS)
    history.record("stale", UpdateStatus.ERROR, timestamp=clock.now - 2 * HOUR_MS)

    fresh = await monitor.check_health("fresh")
    lagging = await monitor.check_health("lagging")
    stale = await monitor.check_health("stale")

    assert (fresh.is_stale, fresh.needs_update) == (False, False)
    assert (lagging.is_stale, lagging.needs_update) == (False, True)
    assert (stale.is_stale, stale.needs_update) == (True, True)
    assert fresh.time_since_last_update == 10 * MINUTE_MS
    assert fresh.last_seen == clock.now - 10 * MINUTE_MS


@pytest.mark.asyncio
async def test_never_updated_agent_is_stale(network, history, clock):
    monitor = HealthMonitor(network, history, clock=clock)

    snapshot = await monitor.check_health("new-agent")

    assert snapshot.last_seen == 0
    assert snapshot.is_stale
    assert snapshot.needs_update


@pytest.mark.asyncio
async def test_probe_timeout_is_an_error(history, clock):
    async def hang(address):
        await asyncio.sleep(10)

    transport = AsyncMock()
    transport.probe.side_effect = hang
    monitor = HealthMonitor(transport, history, probe_timeout_seconds=0.01, clock=clock)

    snapshot = await monitor.check_health("slow-agent")

    assert snapshot.status == HealthStatus.ERROR
    assert "timed out" in snapshot.error


@pytest.mark.asyncio
async def test_perform_health_check_counts_healthy(network, history, clock, agents):
    network.silent = {"agent-2"}
    network.failing = {"agent-4"}
    monitor = HealthMonitor(network, history, clock=clock)

    healthy = await monitor.perform_health_check(agents)

    assert healthy == 3
    assert monitor.tracked_count == 5
    assert monitor.healthy_count == 3
    assert sorted(network.probes) == sorted(agents)


@pytest.mark.asyncio
async def test_unprobed_agent_is_unknown(network, history, clock):
    monitor = HealthMonitor(network, history, clock=clock)
    assert monitor.get("nobody").status == HealthStatus.UNKNOWN
    assert await monitor.perform_health_check([]) == 0
