"""
Priority Scoring and Orderings

Pure functions: the additive priority score and one ordering per
SortingCriteria member. All orderings return a new list and are stable,
so agents that tie keep the registry's order.
"""

import random

from agent_scheduler.clock import DAY_MS
from agent_scheduler.health.models import HealthSnapshot, HealthStatus
from agent_scheduler.priority.models import AgentMetadata, AgentRecord, SortingCriteria
from agent_scheduler.registry.context import RecentActivity, RegistryContext


# Score contributions
NEEDS_UPDATE_WEIGHT = 100
UNRESPONSIVE_WEIGHT = 200
STALE_WEIGHT = 150
INACTIVE_WEIGHT = 50
REGISTRY_ACTIVE_WEIGHT = 75
UNDER_REFLECTIVE_WEIGHT = 25

INACTIVE_AFTER_MS = DAY_MS
# Journal entries below this share of memory entries count as under-reflective
JOURNAL_RATIO_THRESHOLD = 0.1


def is_under_reflective(metadata: AgentMetadata) -> bool:
    return metadata.journal_count < metadata.memory_count * JOURNAL_RATIO_THRESHOLD


def compute_priority(
    metadata: AgentMetadata,
    health: HealthSnapshot,
    context: RegistryContext | None,
    now: int,
) -> int:
    """
    Additive, un-normalized urgency score for one agent.

    Args:
        metadata: Agent activity counters
        health: Latest health snapshot
        context: Registry context of the current cycle (None before the first refresh)
        now: Current epoch ms

    Returns:
        Priority score (higher = more urgent)
    """
    priority = 0

    # Health
    if health.needs_update:
        priority += NEEDS_UPDATE_WEIGHT
    if health.status == HealthStatus.UNRESPONSIVE:
        priority += UNRESPONSIVE_WEIGHT
    if health.is_stale:
        priority += STALE_WEIGHT

    # Activity
    if now - metadata.last_activity > INACTIVE_AFTER_MS:
        priority += INACTIVE_WEIGHT

    # Registry context
    if context is not None and context.recent_activity == RecentActivity.ACTIVE:
        priority += REGISTRY_ACTIVE_WEIGHT

    # Journal frequency
    if is_under_reflective(metadata):
        priority += UNDER_REFLECTIVE_WEIGHT

    return priority


def sort_by_activity(agents: list[AgentRecord]) -> list[AgentRecord]:
    """Most active first: last activity plus 1000 per indexed transaction."""
    return sorted(
        agents,
        key=lambda a: a.metadata.last_activity + a.metadata.total_transactions * 1000,
        reverse=True,
    )


def sort_by_sequence(agents: list[AgentRecord]) -> list[AgentRecord]:
    """Highest memory sequence first."""
    return sorted(agents, key=lambda a: a.metadata.max_sequence, reverse=True)


def sort_by_idle_time(agents: list[AgentRecord]) -> list[AgentRecord]:
    """Longest idle (oldest last dispatch) first."""
    return sorted(agents, key=lambda a: a.last_processed)


def sort_by_intelligent_criteria(agents: list[AgentRecord]) -> list[AgentRecord]:
    """
    Priority score descending, then health rank (error > unresponsive >
    healthy > unknown), then most recent activity.
    """
    return sorted(
        agents,
        key=lambda a: (-a.priority, -a.health.rank, -a.metadata.last_activity),
    )


def shuffle_agents(agents: list[AgentRecord], rng: random.Random) -> list[AgentRecord]:
    """Fisher-Yates shuffle driven by `rng`; same seed, same order."""
    shuffled = list(agents)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def order_agents(
    agents: list[AgentRecord],
    criteria: SortingCriteria,
    rng: random.Random,
) -> list[AgentRecord]:
    """
    Order agents with the given strategy.

    Raises:
        ValueError: If criteria is not a SortingCriteria member
    """
    if criteria == SortingCriteria.ACTIVITY:
        return sort_by_activity(agents)
    elif criteria == SortingCriteria.SEQUENCE:
        return sort_by_sequence(agents)
    elif criteria == SortingCriteria.RANDOM:
        return shuffle_agents(agents, rng)
    elif criteria == SortingCriteria.PRIORITY:
        return sort_by_idle_time(agents)
    elif criteria == SortingCriteria.INTELLIGENT:
        return sort_by_intelligent_criteria(agents)
    raise ValueError(f"Unknown sorting criteria: {criteria!r}")
