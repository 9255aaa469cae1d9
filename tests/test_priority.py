import random

import pytest

from agent_scheduler.clock import DAY_MS, HOUR_MS
from agent_scheduler.health import HealthMonitor, HealthSnapshot, HealthStatus
from agent_scheduler.history import UpdateStatus
from agent_scheduler.priority import (
    AgentMetadata,
    AgentRecord,
    PriorityEngine,
    SortingCriteria,
    compute_priority,
    is_under_reflective,
    order_agents,
    parse_agent_metadata,
    shuffle_agents,
)
from agent_scheduler.registry import RecentActivity, RegistryContext

NOW = 100 * DAY_MS


def _record(address, **kwargs):
    metadata = AgentMetadata(**kwargs.pop("metadata", {}))
    return AgentRecord(address=address, metadata=metadata, **kwargs)


def test_priority_of_idle_unresponsive_agent():
    metadata = AgentMetadata(last_activity=NOW - 2 * DAY_MS, memory_count=20, journal_count=1)
    health = HealthSnapshot(
        status=HealthStatus.UNRESPONSIVE, is_stale=True, needs_update=True,
    )
    context = RegistryContext(recent_activity=RecentActivity.ACTIVE)

    assert compute_priority(metadata, health, context, NOW) == 100 + 200 + 150 + 50 + 75 + 25


def test_priority_of_fresh_healthy_agent_is_zero():
    metadata = AgentMetadata(last_activity=NOW - HOUR_MS, memory_count=10, journal_count=1)
    health = HealthSnapshot(status=HealthStatus.HEALTHY)

    assert compute_priority(metadata, health, None, NOW) == 0


def test_under_reflective_threshold():
    assert is_under_reflective(AgentMetadata(memory_count=20, journal_count=1))
    assert not is_under_reflective(AgentMetadata(memory_count=10, journal_count=1))
    assert not is_under_reflective(AgentMetadata())


def test_parse_agent_metadata():
    parsed = parse_agent_metadata({"lastActivity": "5", "memoryCount": 3})
    assert parsed.value.last_activity == 5
    assert parsed.value.memory_count == 3
    assert not parsed.degraded

    assert not parse_agent_metadata(None).degraded
    assert parse_agent_metadata({"maxSequence": "lots"}).degraded
    assert parse_agent_metadata([1, 2]).degraded


def test_unresponsive_sorts_before_healthy_under_intelligent():
    healthy = _record(
        "healthy",
        health=HealthSnapshot(status=HealthStatus.HEALTHY),
        metadata={"last_activity": NOW},
    )
    unresponsive = _record(
        "unresponsive",
        health=HealthSnapshot(status=HealthStatus.UNRESPONSIVE),
        metadata={"last_activity": NOW},
    )
    for agent in (healthy, unresponsive):
        agent.priority = compute_priority(agent.metadata, agent.health, None, NOW)

    ordered = order_agents([healthy, unresponsive], SortingCriteria.INTELLIGENT, random.Random())

    assert [a.address for a in ordered] == ["unresponsive", "healthy"]


def test_intelligent_tie_breaks_on_health_then_activity():
    agents = [
        _record("healthy-old", health=HealthSnapshot(status=HealthStatus.HEALTHY),
                metadata={"last_activity": 1}),
        _record("healthy-new", health=HealthSnapshot(status=HealthStatus.HEALTHY),
                metadata={"last_activity": 2}),
        _record("error", health=HealthSnapshot(status=HealthStatus.ERROR)),
        _record("unknown"),
    ]

    ordered = order_agents(agents, SortingCriteria.INTELLIGENT, random.Random())

    assert [a.address for a in ordered] == ["error", "healthy-new", "healthy-old", "unknown"]


def test_simple_orderings():
    agents = [
        _record("a", last_processed=30, metadata={"last_activity": 1000, "max_sequence": 1}),
        _record("b", last_processed=10, metadata={"total_transactions": 2, "max_sequence": 9}),
        _record("c", last_processed=20, metadata={"last_activity": 1500, "max_sequence": 5}),
    ]
    rng = random.Random()

    def addresses(criteria):
        return [a.address for a in order_agents(agents, criteria, rng)]

    assert addresses(SortingCriteria.ACTIVITY) == ["b", "c", "a"]
    assert addresses(SortingCriteria.SEQUENCE) == ["b", "c", "a"]
    assert addresses(SortingCriteria.PRIORITY) == ["b", "c", "a"]
    assert [a.address for a in agents] == ["a", "b", "c"]


def test_seeded_shuffle_is_deterministic():
    agents = [_record(f"agent-{i}") for i in range(20)]

    first = shuffle_agents(agents, random.Random(7))
    second = shuffle_agents(agents, random.Random(7))

    assert [a.address for a in first] == [a.address for a in second]
    assert sorted(a.address for a in first) == sorted(a.address for a in agents)


def test_unknown_criteria_rejected():
    with pytest.raises(ValueError):
        order_agents([], "alphabetical", random.Random())


@pytest.mark.asyncio
async def test_engine_builds_scored_records(activity, network, history, clock, agents):
    activity.failing = {"agent-2"}
    activity.activity["agent-3"] = {"lastActivity": "yesterday"}
    history.record("agent-1", UpdateStatus.SUCCESS, timestamp=clock.now - HOUR_MS)
    monitor = HealthMonitor(network, history, clock=clock)
    engine = PriorityEngine(activity, monitor, history, clock=clock)

    records = await engine.build_records(agents, RegistryContext())

    assert [r.address for r in records] == agents
    assert records[0].last_processed == clock.now - HOUR_MS
    assert records[1].metadata == AgentMetadata()
    assert records[2].metadata == AgentMetadata()
    assert records[0].metadata.memory_count == 4
    # Never-probed health is unknown; agent-2 has no activity for far longer than a day
    assert records[1].priority == 50


@pytest.mark.asyncio
async def test_engine_sort_agents_by_sequence(activity, network, history, clock, agents):
    engine = PriorityEngine(activity, HealthMonitor(network, history, clock=clock), history, clock=clock)

    ordered = await engine.sort_agents(agents, SortingCriteria.SEQUENCE, None)

    assert [r.address for r in ordered] == list(reversed(agents))
