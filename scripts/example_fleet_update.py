#!/usr/bin/env python3
"""
Fleet Update Example

Runs the agent update scheduler against in-memory capabilities.

Workflow:
1. Settings are read from AGENT_SCHEDULER_* variables (or a .env file)
2. A registry publishes twelve agents, one of which is silent and one broken
3. start() refreshes the registry context, probes every agent and runs
   the first update cycle
4. A manual cycle runs with the intelligent ordering
5. Status analytics and the newest update records are printed

Usage:
    python scripts/example_fleet_update.py
"""

import asyncio
import logging

from agent_scheduler import AgentUpdateScheduler, SortingCriteria, settings_from_env
from agent_scheduler.capabilities import (
    InMemoryActivityIndex,
    InMemoryAgentNetwork,
    InMemoryRegistry,
)
from agent_scheduler.clock import HOUR_MS, epoch_ms
from agent_scheduler.events import SchedulerEventType, create_type_filter

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# =============================================================================
# Simulated fleet
# =============================================================================

AGENTS = [f"agent-{i:02d}" for i in range(1, 13)]


def build_registry() -> InMemoryRegistry:
    return InMemoryRegistry(
        agents=AGENTS,
        status={
            "activeProposals": 7,
            "recentActivity": "active",
            "consensusHealth": "stable",
            "communityMood": "optimistic",
        },
        proposals=[
            {"id": 42, "title": "Expand the archive", "category": "treasury", "status": "active"},
            {"id": 41, "title": "Quarterly review", "category": "governance", "status": "passed"},
        ],
    )


def build_activity_index() -> InMemoryActivityIndex:
    now = epoch_ms()
    return InMemoryActivityIndex({
        address: {
            "lastActivity": now - i * 6 * HOUR_MS,
            "memoryCount": 10 + i * 5,
            "journalCount": i % 3,
            "maxSequence": 100 - i,
            "totalTransactions": i * 2,
        }
        for i, address in enumerate(AGENTS)
    })


# =============================================================================
# Main
# =============================================================================

async def main():
    """Run the scheduler through one start and one manual cycle."""
    settings = settings_from_env().with_overrides(
        oracle_process_id="oracle-demo",
        max_batch_size=4,
        batch_delay_seconds=0.2,
        shuffle_seed=7,
    )

    network = InMemoryAgentNetwork(latency_seconds=0.05)
    network.silent = {"agent-05"}
    network.failing = {"agent-09"}

    scheduler = AgentUpdateScheduler(
        build_registry(),
        network,
        build_activity_index(),
        settings=settings,
    )
    completions = scheduler.subscribe(
        "demo", create_type_filter(SchedulerEventType.UPDATE_COMPLETE)
    )

    logger.info("Fleet Update Example")
    logger.info("=" * 60)

    await scheduler.start()

    await scheduler.reconfigure(sorting_criteria=SortingCriteria.INTELLIGENT)
    await scheduler.trigger_manual_cycle()

    for event in completions.drain():
        logger.info(f"Cycle: {event.message}")

    status = scheduler.status()
    print()
    print(status.model_dump_json(indent=2, exclude={"oracle_context"}))
    print()

    logger.info("Newest updates:")
    for record in scheduler.recent_updates(5):
        logger.info(
            f"  {record.agent_address}: {record.status.value} "
            f"(priority={record.priority}, error={record.error})"
        )

    await scheduler.close()
    logger.info("Example complete!")


if __name__ == "__main__":
    asyncio.run(main())
