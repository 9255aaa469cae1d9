# Event Streaming Module
# Typed scheduler events delivered to host subscribers

from agent_scheduler.events.models import (
    SchedulerEventType,
    EventSeverity,
    SchedulerEvent,
    StartedEvent,
    StoppedEvent,
    UpdateCompleteEvent,
    LogEvent,
    ErrorEvent,
    create_started,
    create_stopped,
    create_update_complete,
    create_log,
    create_error,
)
from agent_scheduler.events.stream import (
    EventStream,
    EventSubscription,
    EventFilter,
    SubscriptionStats,
    StreamStats,
    create_type_filter,
    create_severity_filter,
)

__all__ = [
    # Event Models
    "SchedulerEventType",
    "EventSeverity",
    "SchedulerEvent",
    "StartedEvent",
    "StoppedEvent",
    "UpdateCompleteEvent",
    "LogEvent",
    "ErrorEvent",
    "create_started",
    "create_stopped",
    "create_update_complete",
    "create_log",
    "create_error",
    # Event Stream
    "EventStream",
    "EventSubscription",
    "EventFilter",
    "create_type_filter",
    "create_severity_filter",
    "SubscriptionStats",
    "StreamStats",
]
