# Health Monitoring
# Liveness probes and per-agent health snapshots

from agent_scheduler.health.models import (
    HEALTH_RANK,
    NEEDS_UPDATE_AFTER_MS,
    STALE_AFTER_MS,
    HealthSnapshot,
    HealthStatus,
)
from agent_scheduler.health.monitor import HealthMonitor

__all__ = [
    "HEALTH_RANK",
    "NEEDS_UPDATE_AFTER_MS",
    "STALE_AFTER_MS",
    "HealthSnapshot",
    "HealthStatus",
    "HealthMonitor",
]
