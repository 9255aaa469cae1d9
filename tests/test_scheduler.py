import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from agent_scheduler.capabilities import ACTION_GET_AGENT_LIST, InMemoryAgentNetwork
from agent_scheduler.events import (
    ErrorEvent,
    EventSeverity,
    LogEvent,
    StartedEvent,
    StoppedEvent,
    UpdateCompleteEvent,
)
from agent_scheduler.history import UpdateStatus
from agent_scheduler.priority import SortingCriteria
from agent_scheduler.scheduler import (
    AgentUpdateScheduler,
    ConfigurationError,
    SchedulerNotRunningError,
    SchedulerSettings,
    TickOutcome,
)


def _of_type(events, cls):
    return [e for e in events if isinstance(e, cls)]


@pytest.fixture
def scheduler(registry, network, activity, settings, clock):
    return AgentUpdateScheduler(registry, network, activity, settings=settings, clock=clock)


# === Lifecycle ===

@pytest.mark.asyncio
async def test_start_runs_initial_cycle_and_arms_timer(scheduler, network, agents):
    subscription = scheduler.subscribe("host")

    await scheduler.start()

    assert scheduler.is_running
    assert sorted(m.address for m in network.sent) == sorted(agents)
    # One health pass at start; the initial cycle does not probe again
    assert len(network.probes) == len(agents)

    events = subscription.drain()
    completes = _of_type(events, UpdateCompleteEvent)
    assert len(completes) == 1
    assert completes[0].total_agents == 5
    assert completes[0].processed_batches == 1
    assert isinstance(events[-1], StartedEvent)

    await scheduler.close()


@pytest.mark.asyncio
async def test_start_twice_does_not_rerun(scheduler, network, clock):
    await scheduler.start()
    last_update = scheduler.state.last_update
    subscription = scheduler.subscribe("host")

    clock.advance(60_000)
    await scheduler.start()

    assert scheduler.state.last_update == last_update
    assert len(network.sent) == 5
    warnings = [
        e for e in _of_type(subscription.drain(), LogEvent)
        if e.severity == EventSeverity.WARNING
    ]
    assert [e.message for e in warnings] == ["Agent update scheduler already running"]

    await scheduler.close()


@pytest.mark.asyncio
async def test_stop_is_idempotent(scheduler):
    subscription = scheduler.subscribe("host")

    await scheduler.stop()
    await scheduler.start()
    await scheduler.stop()
    await scheduler.stop()

    assert not scheduler.is_running
    assert len(_of_type(subscription.drain(), StoppedEvent)) == 1


@pytest.mark.asyncio
async def test_start_requires_configuration(registry, network, activity):
    scheduler = AgentUpdateScheduler(registry, network, activity)

    with pytest.raises(ConfigurationError):
        await scheduler.start()
    with pytest.raises(ConfigurationError):
        await scheduler.initialize(SchedulerSettings())

    assert scheduler.status().initialized is False


@pytest.mark.asyncio
async def test_initialize_stops_running_scheduler(scheduler, settings):
    await scheduler.start()
    assert len(scheduler.history) == 5

    await scheduler.initialize(settings.with_overrides(max_batch_size=2))

    assert not scheduler.is_running
    assert scheduler.state.max_batch_size == 2
    assert len(scheduler.history) == 0
    await scheduler.close()


@pytest.mark.asyncio
async def test_stop_lets_inflight_cycle_finish(registry, activity, settings, clock, agents):
    network = InMemoryAgentNetwork(latency_seconds=0.01)
    scheduler = AgentUpdateScheduler(registry, network, activity, settings=settings, clock=clock)
    await scheduler.start()

    task = scheduler.trigger_manual_cycle()
    await asyncio.sleep(0)
    await scheduler.stop()
    summary = await task

    assert summary.success_count == len(agents)
    assert len(network.sent) == 2 * len(agents)
    await scheduler.close()


# === Ticks ===

@pytest.mark.asyncio
async def test_tick_runs_cycle_when_interval_unchanged(scheduler, network, agents):
    outcome = await scheduler.tick()

    assert outcome == TickOutcome.CYCLE_RUN
    assert len(network.sent) == len(agents)
    assert len(network.probes) == len(agents)
    assert scheduler.state.update_interval_ms == 300_000


@pytest.mark.asyncio
async def test_tick_that_changes_interval_skips_cycle(scheduler, registry, network):
    registry.status = {"activeProposals": 0, "recentActivity": "quiet"}

    outcome = await scheduler.tick()

    assert outcome == TickOutcome.INTERVAL_CHANGED
    assert scheduler.state.update_interval_ms == 600_000
    assert network.sent == []

    assert await scheduler.tick() == TickOutcome.CYCLE_RUN
    assert len(network.sent) == 5


@pytest.mark.asyncio
async def test_timer_rearms_with_adapted_interval(registry, network, activity, settings, clock):
    scheduler = AgentUpdateScheduler(
        registry, network, activity,
        settings=settings.with_overrides(update_interval_ms=20),
        clock=clock,
    )
    subscription = scheduler.subscribe("host")

    await scheduler.start()
    first_timer = scheduler._timer_task
    await asyncio.sleep(0.1)

    assert scheduler.state.update_interval_ms == 300_000
    assert scheduler._timer_task is not first_timer
    assert first_timer.done()
    # The tick that adapted the interval did not dispatch
    assert len(network.sent) == 5
    messages = [e.message for e in _of_type(subscription.drain(), LogEvent)]
    assert "Update interval adjusted to 300s" in messages

    await scheduler.close()


@pytest.mark.asyncio
async def test_tick_failure_is_reported_not_raised(scheduler):
    subscription = scheduler.subscribe("host")

    with patch.object(
        scheduler.registry_cache, "refresh", AsyncMock(side_effect=RuntimeError("boom"))
    ):
        outcome = await scheduler.tick()

    assert outcome == TickOutcome.FAILED
    errors = _of_type(subscription.drain(), ErrorEvent)
    assert errors[0].error_type == "RuntimeError"
    assert "boom" in errors[0].message


# === Cycles ===

@pytest.mark.asyncio
async def test_cycle_respects_batch_size(scheduler, network):
    await scheduler.reconfigure(max_batch_size=2)
    subscription = scheduler.subscribe("host")

    summary = await scheduler.run_update_cycle()

    assert summary.processed_batches == 3
    assert network.max_in_flight <= 2
    assert _of_type(subscription.drain(), UpdateCompleteEvent)[0].processed_batches == 3


@pytest.mark.asyncio
async def test_intelligent_cycle_updates_unresponsive_agent_first(scheduler, network):
    network.silent = {"agent-4"}
    await scheduler.reconfigure(sorting_criteria="intelligent")

    await scheduler.run_update_cycle()

    records = scheduler.history.records()
    assert records[0].agent_address == "agent-4"
    assert records[0].priority > records[1].priority
    tags = network.messages_for("agent-4")[0].tags
    assert tags["Health-Status"] == "unresponsive"
    assert tags["Priority-Level"] == str(records[0].priority)


@pytest.mark.asyncio
async def test_cycle_payload_carries_registry_context(scheduler, network):
    await scheduler.tick()

    payload = network.messages_for("agent-1")[0].payload

    assert payload["type"] == "oracle-update"
    assert payload["oracle_status"]["active_proposals"] == 2
    assert any("Fund the archive" in p for p in payload["contextual_prompts"])
    assert network.messages_for("agent-1")[0].tags["Oracle-Process"] == "oracle-1"


@pytest.mark.asyncio
async def test_all_sends_failing_reports_error(scheduler, network, agents):
    network.failing = set(agents)
    subscription = scheduler.subscribe("host")

    summary = await scheduler.run_update_cycle()

    assert summary.error_count == 5
    assert all(r.status == UpdateStatus.ERROR for r in scheduler.history.records())
    events = subscription.drain()
    assert _of_type(events, UpdateCompleteEvent)[0].error_count == 5
    assert _of_type(events, ErrorEvent)


@pytest.mark.asyncio
async def test_empty_agent_list_ends_cycle(scheduler, registry):
    registry.agents = []
    subscription = scheduler.subscribe("host")

    assert await scheduler.run_update_cycle() is None

    events = subscription.drain()
    assert not _of_type(events, UpdateCompleteEvent)
    assert not _of_type(events, ErrorEvent)


@pytest.mark.asyncio
async def test_unreachable_registry_reports_error(scheduler, registry):
    registry.failing_actions = {ACTION_GET_AGENT_LIST}
    subscription = scheduler.subscribe("host")

    assert await scheduler.run_update_cycle() is None

    errors = _of_type(subscription.drain(), ErrorEvent)
    assert errors[0].error_type == "RegistryUnavailableError"


# === Host control surface ===

@pytest.mark.asyncio
async def test_manual_trigger_requires_running(scheduler):
    with pytest.raises(SchedulerNotRunningError):
        scheduler.trigger_manual_cycle()


@pytest.mark.asyncio
async def test_manual_trigger_runs_cycle(scheduler, network):
    await scheduler.start()

    summary = await scheduler.trigger_manual_cycle()

    assert summary.success_count == 5
    assert len(network.sent) == 10
    await scheduler.close()


@pytest.mark.asyncio
async def test_reconfigure_validates_and_rearms(scheduler):
    with pytest.raises(ConfigurationError):
        await scheduler.reconfigure(sorting_criteria="alphabetical")
    with pytest.raises(ConfigurationError):
        await scheduler.reconfigure(update_interval_ms=0)
    with pytest.raises(ConfigurationError):
        await scheduler.reconfigure(max_batch_size=0)

    await scheduler.start()
    timer = scheduler._timer_task

    status = await scheduler.reconfigure(
        sorting_criteria=SortingCriteria.SEQUENCE, update_interval_ms=120_000,
    )
    await asyncio.sleep(0.01)

    assert status.sorting_criteria == SortingCriteria.SEQUENCE
    assert status.update_interval_ms == 120_000
    assert scheduler._timer_task is not timer
    assert timer.cancelled()
    await scheduler.close()


def _live_timers():
    return [
        task for task in asyncio.all_tasks()
        if task.get_name() == "agent_update_timer" and not task.done()
    ]


@pytest.mark.asyncio
async def test_reconfigure_during_start_keeps_one_timer(registry, activity, settings, clock):
    network = InMemoryAgentNetwork(latency_seconds=0.05)
    scheduler = AgentUpdateScheduler(registry, network, activity, settings=settings, clock=clock)

    starting = asyncio.create_task(scheduler.start())
    await asyncio.sleep(0.02)
    await scheduler.reconfigure(update_interval_ms=120_000)
    await starting

    assert _live_timers() == [scheduler._timer_task]
    assert scheduler.state.update_interval_ms == 120_000

    await scheduler.stop()
    await asyncio.sleep(0)
    assert _live_timers() == []
    await scheduler.close()


@pytest.mark.asyncio
async def test_restart_during_initial_cycle_keeps_one_timer(registry, activity, settings, clock):
    network = InMemoryAgentNetwork(latency_seconds=0.05)
    scheduler = AgentUpdateScheduler(registry, network, activity, settings=settings, clock=clock)

    first = asyncio.create_task(scheduler.start())
    await asyncio.sleep(0.02)
    await scheduler.stop()
    second = asyncio.create_task(scheduler.start())
    await asyncio.gather(first, second)

    assert scheduler.is_running
    assert _live_timers() == [scheduler._timer_task]

    await scheduler.stop()
    await asyncio.sleep(0)
    assert _live_timers() == []
    await scheduler.close()


@pytest.mark.asyncio
async def test_status_reports_analytics(scheduler, network):
    network.failing = {"agent-5"}
    await scheduler.start()

    status = scheduler.status()

    assert status.initialized
    assert status.is_running
    assert status.oracle_process_id == "oracle-1"
    assert status.processed_agents_count == 5
    assert status.oracle_context.active_proposals == 2
    assert status.analytics.recent_updates_count == 5
    assert status.analytics.success_rate == 80
    assert status.analytics.healthy_agents == 4
    assert status.analytics.total_tracked_agents == 5
    assert [r.agent_address for r in scheduler.recent_updates(2)] == [
        r.agent_address for r in reversed(scheduler.history.records()[-2:])
    ]
    await scheduler.close()


@pytest.mark.asyncio
async def test_status_survives_registry_outage(scheduler, registry):
    registry.failing_actions = {"Get-Community-Status", "Get-Recent-Proposals"}

    await scheduler.tick()
    status = scheduler.status()

    assert "status query failed" in status.oracle_context.error
    assert status.oracle_context.recent_activity.value == "quiet"
