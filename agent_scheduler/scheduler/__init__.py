# Adaptive Scheduler Loop
# Lifecycle, timer, adaptive interval and the host control surface

from agent_scheduler.scheduler.errors import (
    SchedulerError,
    ConfigurationError,
    SchedulerNotRunningError,
)
from agent_scheduler.scheduler.config import (
    SchedulerSettings,
    parse_sorting_criteria,
    settings_from_env,
)
from agent_scheduler.scheduler.state import (
    SchedulerAnalytics,
    SchedulerState,
    SchedulerStatus,
    calculate_adaptive_interval,
)
from agent_scheduler.scheduler.loop import AgentUpdateScheduler, TickOutcome

__all__ = [
    "SchedulerError",
    "ConfigurationError",
    "SchedulerNotRunningError",
    "SchedulerSettings",
    "parse_sorting_criteria",
    "settings_from_env",
    "SchedulerAnalytics",
    "SchedulerState",
    "SchedulerStatus",
    "calculate_adaptive_interval",
    "AgentUpdateScheduler",
    "TickOutcome",
]
