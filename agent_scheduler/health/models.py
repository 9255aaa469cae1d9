"""
Health Snapshot Model

The scheduler's cached view of one agent's responsiveness and how long
ago it last received an update.
"""

from enum import Enum

from pydantic import BaseModel, Field

from agent_scheduler.clock import HOUR_MS, MINUTE_MS


# An agent not updated for this long is stale
STALE_AFTER_MS = HOUR_MS
# An agent not updated for this long needs an update
NEEDS_UPDATE_AFTER_MS = 30 * MINUTE_MS


class HealthStatus(str, Enum):
    """Outcome of the last liveness probe."""
    HEALTHY = "healthy"
    UNRESPONSIVE = "unresponsive"
    ERROR = "error"
    UNKNOWN = "unknown"


# Secondary sort rank for the intelligent ordering (higher first)
HEALTH_RANK: dict[HealthStatus, int] = {
    HealthStatus.ERROR: 3,
    HealthStatus.UNRESPONSIVE: 2,
    HealthStatus.HEALTHY: 1,
    HealthStatus.UNKNOWN: 0,
}


class HealthSnapshot(BaseModel):
    """
    Most recent health check result for an agent.

    Never deleted, only overwritten by the next check.
    """

    status: HealthStatus = Field(
        default=HealthStatus.UNKNOWN,
        description="Probe outcome"
    )
    last_seen: int = Field(
        default=0,
        description="Epoch ms of the last recorded update attempt (0 = never)"
    )
    time_since_last_update: int = Field(
        default=0,
        description="Milliseconds between the check and last_seen"
    )
    is_stale: bool = Field(
        default=False,
        description="More than an hour since the last update"
    )
    needs_update: bool = Field(
        default=False,
        description="More than 30 minutes since the last update, or the probe failed"
    )
    error: str | None = Field(
        default=None,
        description="Probe failure message when status is error"
    )
    checked_at: int | None = Field(
        default=None,
        description="Epoch ms of the check"
    )

    @classmethod
    def unknown(cls) -> "HealthSnapshot":
        """Placeholder for agents that were never probed."""
        return cls()

    @property
    def rank(self) -> int:
        return HEALTH_RANK[self.status]
