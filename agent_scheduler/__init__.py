# Oracle Agent Scheduler
# Periodic, prioritized context-refresh delivery to a registry-published agent fleet

__version__ = "0.1.0"

# Re-export commonly used components for convenience
from agent_scheduler.scheduler import (
    AgentUpdateScheduler,
    SchedulerSettings,
    SchedulerStatus,
    ConfigurationError,
    SchedulerNotRunningError,
    settings_from_env,
)
from agent_scheduler.priority import SortingCriteria

# External capabilities
from agent_scheduler.capabilities import (
    RegistryClient,
    AgentTransport,
    ActivityIndex,
)

# Events
from agent_scheduler.events import (
    EventFilter,
    SchedulerEvent,
    SchedulerEventType,
)

__all__ = [
    "__version__",
    # Scheduler
    "AgentUpdateScheduler",
    "SchedulerSettings",
    "SchedulerStatus",
    "ConfigurationError",
    "SchedulerNotRunningError",
    "settings_from_env",
    "SortingCriteria",
    # Capabilities
    "RegistryClient",
    "AgentTransport",
    "ActivityIndex",
    # Events
    "EventFilter",
    "SchedulerEvent",
    "SchedulerEventType",
]
