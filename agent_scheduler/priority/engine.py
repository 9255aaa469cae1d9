"""
Priority Engine

Builds the per-cycle AgentRecords (metadata, health, last-processed time,
priority score) and orders them under the configured strategy.

Metadata lookups run concurrently. A lookup that fails or returns junk
degrades that agent's metadata to zeros; one bad agent never blocks the
cycle.
"""

import asyncio
import logging
import random

from agent_scheduler.capabilities.ports import ActivityIndex
from agent_scheduler.clock import Clock, epoch_ms
from agent_scheduler.health import HealthMonitor
from agent_scheduler.history import UpdateHistory
from agent_scheduler.priority.models import (
    AgentMetadata,
    AgentRecord,
    SortingCriteria,
    parse_agent_metadata,
)
from agent_scheduler.priority.strategies import compute_priority, order_agents
from agent_scheduler.registry.context import RegistryContext

logger = logging.getLogger(__name__)


class PriorityEngine:
    """
    Scores and orders agents for one cycle.
    """

    def __init__(
        self,
        activity_index: ActivityIndex,
        health_monitor: HealthMonitor,
        history: UpdateHistory,
        rng: random.Random | None = None,
        clock: Clock = epoch_ms,
    ):
        """
        Initialize the engine.

        Args:
            activity_index: Per-agent activity lookup
            health_monitor: Source of health snapshots
            history: Source of last-processed timestamps
            rng: Random source for the random ordering (seed it for reproducible runs)
            clock: Epoch-ms time source
        """
        self._activity_index = activity_index
        self._health = health_monitor
        self._history = history
        self._rng = rng or random.Random()
        self._clock = clock

    async def fetch_metadata(self, address: str) -> AgentMetadata:
        """Look up activity counters, degrading to zeros on any failure."""
        try:
            raw = await self._activity_index.query_activity(address)
        except Exception as e:
            logger.warning(f"Failed to get metadata for agent {address}: {e}")
            return AgentMetadata()

        result = parse_agent_metadata(raw)
        if result.degraded:
            logger.warning(f"Metadata for agent {address} degraded to defaults: {result.reason}")
        return result.value

    async def build_records(
        self,
        addresses: list[str],
        context: RegistryContext | None,
    ) -> list[AgentRecord]:
        """
        Assemble scored AgentRecords in registry order.

        Args:
            addresses: Agent addresses from the registry
            context: Registry context snapshot of this cycle
        """
        metadata_list = await asyncio.gather(
            *(self.fetch_metadata(address) for address in addresses)
        )
        now = self._clock()

        records = []
        for address, metadata in zip(addresses, metadata_list):
            health = self._health.get(address)
            records.append(AgentRecord(
                address=address,
                metadata=metadata,
                health=health,
                last_processed=self._history.last_seen(address),
                priority=compute_priority(metadata, health, context, now),
            ))
        return records

    def sort(
        self,
        agents: list[AgentRecord],
        criteria: SortingCriteria,
    ) -> list[AgentRecord]:
        """Order already-built records with the given strategy."""
        return order_agents(agents, criteria, self._rng)

    async def sort_agents(
        self,
        addresses: list[str],
        criteria: SortingCriteria,
        context: RegistryContext | None,
    ) -> list[AgentRecord]:
        """Build records for `addresses` and order them."""
        records = await self.build_records(addresses, context)
        ordered = self.sort(records, criteria)
        logger.debug(
            f"Sorted {len(ordered)} agents by {criteria.value}"
        )
        return ordered
