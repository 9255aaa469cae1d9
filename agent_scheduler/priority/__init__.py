# Priority Engine
# Per-agent urgency scoring and the five selectable orderings

from agent_scheduler.priority.models import (
    AgentMetadata,
    AgentRecord,
    SortingCriteria,
    parse_agent_metadata,
)
from agent_scheduler.priority.strategies import (
    compute_priority,
    is_under_reflective,
    order_agents,
    shuffle_agents,
    sort_by_activity,
    sort_by_idle_time,
    sort_by_intelligent_criteria,
    sort_by_sequence,
)
from agent_scheduler.priority.engine import PriorityEngine

__all__ = [
    "AgentMetadata",
    "AgentRecord",
    "SortingCriteria",
    "parse_agent_metadata",
    "compute_priority",
    "is_under_reflective",
    "order_agents",
    "shuffle_agents",
    "sort_by_activity",
    "sort_by_idle_time",
    "sort_by_intelligent_criteria",
    "sort_by_sequence",
    "PriorityEngine",
]
