"""
Health Monitor

Probes agents for liveness and keeps the latest HealthSnapshot per agent.

Staleness is measured from the update history (when the scheduler last
tried to update the agent), not from the probe itself. A probe failure
marks the agent as needing an update regardless of staleness, so broken
agents are re-engaged rather than forgotten.
"""

import asyncio
import logging

from agent_scheduler.capabilities.ports import AgentTransport
from agent_scheduler.clock import Clock, epoch_ms
from agent_scheduler.health.models import (
    NEEDS_UPDATE_AFTER_MS,
    STALE_AFTER_MS,
    HealthSnapshot,
    HealthStatus,
)
from agent_scheduler.history import UpdateHistory

logger = logging.getLogger(__name__)


class HealthMonitor:
    """
    Owns the address-keyed health map.

    Only this class writes snapshots; everyone else reads copies.
    """

    def __init__(
        self,
        transport: AgentTransport,
        history: UpdateHistory,
        probe_timeout_seconds: float | None = 10.0,
        clock: Clock = epoch_ms,
    ):
        """
        Initialize the monitor.

        Args:
            transport: Agent transport used for liveness probes
            history: Update history used for last-seen lookups
            probe_timeout_seconds: Per-probe timeout (None = no timeout)
            clock: Epoch-ms time source
        """
        self._transport = transport
        self._history = history
        self._probe_timeout = probe_timeout_seconds
        self._clock = clock
        self._snapshots: dict[str, HealthSnapshot] = {}

    async def _probe(self, address: str):
        if self._probe_timeout is None:
            return await self._transport.probe(address)
        return await asyncio.wait_for(
            self._transport.probe(address),
            timeout=self._probe_timeout,
        )

    async def check_health(self, address: str) -> HealthSnapshot:
        """
        Probe one agent and record its snapshot.

        Any non-empty reply counts as healthy, an empty reply as
        unresponsive. Transport errors and timeouts produce an error
        snapshot with needs_update forced on.
        """
        try:
            reply = await self._probe(address)
            error = None
            status = HealthStatus.HEALTHY if reply else HealthStatus.UNRESPONSIVE
        except asyncio.TimeoutError:
            error = f"health probe timed out after {self._probe_timeout}s"
            status = HealthStatus.ERROR
        except Exception as e:
            error = str(e) or type(e).__name__
            status = HealthStatus.ERROR

        now = self._clock()
        last_seen = self._history.last_seen(address)
        elapsed = now - last_seen

        snapshot = HealthSnapshot(
            status=status,
            last_seen=last_seen,
            time_since_last_update=elapsed,
            is_stale=elapsed > STALE_AFTER_MS,
            needs_update=status == HealthStatus.ERROR or elapsed > NEEDS_UPDATE_AFTER_MS,
            error=error,
            checked_at=now,
        )
        self._snapshots[address] = snapshot

        if error:
            logger.debug(f"Health check failed for {address}: {error}")
        return snapshot

    async def perform_health_check(self, addresses: list[str]) -> int:
        """
        Probe all agents concurrently.

        Individual failures are isolated; they never abort the pass.

        Returns:
            Number of agents found healthy
        """
        if not addresses:
            return 0

        logger.info(f"Performing health check on {len(addresses)} agents")

        results = await asyncio.gather(
            *(self.check_health(address) for address in addresses),
            return_exceptions=True,
        )

        healthy = 0
        for address, result in zip(addresses, results):
            if isinstance(result, BaseException):
                logger.error(f"Health check crashed for {address}: {result}")
                continue
            if result.status == HealthStatus.HEALTHY:
                healthy += 1

        logger.info(f"Health check complete: {healthy}/{len(addresses)} agents healthy")
        return healthy

    def get(self, address: str) -> HealthSnapshot:
        """Snapshot for an agent, or an unknown placeholder if never probed."""
        snapshot = self._snapshots.get(address)
        return snapshot.model_copy() if snapshot else HealthSnapshot.unknown()

    def snapshots(self) -> dict[str, HealthSnapshot]:
        return {a: s.model_copy() for a, s in self._snapshots.items()}

    @property
    def tracked_count(self) -> int:
        return len(self._snapshots)

    @property
    def healthy_count(self) -> int:
        return sum(
            1 for s in self._snapshots.values()
            if s.status == HealthStatus.HEALTHY
        )
