"""
Scheduler State

Mutable runtime state of one scheduler instance and the adaptive
interval rule that rewrites its tick period.
"""

from dataclasses import dataclass

from pydantic import BaseModel, Field

from agent_scheduler.priority.models import SortingCriteria
from agent_scheduler.registry.context import RecentActivity, RegistryContext

# More than this many open proposals counts as high activity
BUSY_PROPOSAL_THRESHOLD = 5


@dataclass
class SchedulerState:
    """
    Runtime state of a scheduler.

    Written only by the scheduler itself: the loop (adaptive interval,
    last_update) and reconfigure() (config fields).
    """
    is_running: bool = False
    update_interval_ms: int = 300_000
    sorting_criteria: SortingCriteria = SortingCriteria.ACTIVITY
    max_batch_size: int = 10
    last_update: int | None = None

    def reset(self) -> None:
        """Return to idle. Config fields are kept for status reporting."""
        self.is_running = False


def calculate_adaptive_interval(
    context: RegistryContext | None,
    current_interval_ms: int,
    base_interval_ms: int = 300_000,
    min_interval_ms: int = 60_000,
    max_interval_ms: int = 900_000,
) -> int:
    """
    Tick period suited to the registry's activity level.

    High activity (active, or more than five open proposals) halves the
    base, a quiet registry with no proposals doubles it, anything else
    uses the base. The result is clamped to [min, max]. Without a
    context the current interval is kept.
    """
    if context is None:
        return current_interval_ms

    if (
        context.recent_activity == RecentActivity.ACTIVE
        or context.active_proposals > BUSY_PROPOSAL_THRESHOLD
    ):
        interval = base_interval_ms // 2
    elif (
        context.recent_activity == RecentActivity.QUIET
        and context.active_proposals == 0
    ):
        interval = base_interval_ms * 2
    else:
        interval = base_interval_ms

    return max(min_interval_ms, min(interval, max_interval_ms))


class SchedulerAnalytics(BaseModel):
    """Health and delivery figures reported by status()."""
    recent_updates_count: int = 0
    success_rate: int = Field(default=0, description="Percent of successful updates in the last hour")
    avg_priority: int = 0
    healthy_agents: int = 0
    total_tracked_agents: int = 0


class SchedulerStatus(BaseModel):
    """Point-in-time status snapshot; always available, even mid-failure."""
    initialized: bool = True
    is_running: bool = False
    last_update: int | None = None
    processed_agents_count: int = 0
    oracle_process_id: str | None = None
    sorting_criteria: SortingCriteria = SortingCriteria.ACTIVITY
    update_interval_ms: int = 300_000
    max_batch_size: int = 10
    oracle_context: RegistryContext | None = None
    analytics: SchedulerAnalytics = Field(default_factory=SchedulerAnalytics)
