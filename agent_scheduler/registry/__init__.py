# Registry Context
# Cached registry activity signals and agent list retrieval

from agent_scheduler.registry.context import (
    Proposal,
    RecentActivity,
    RegistryContext,
    RegistryStatus,
    decode_payload,
    parse_agent_list,
    parse_proposals,
    parse_status,
)
from agent_scheduler.registry.cache import RegistryContextCache

__all__ = [
    "Proposal",
    "RecentActivity",
    "RegistryContext",
    "RegistryStatus",
    "RegistryContextCache",
    "decode_payload",
    "parse_agent_list",
    "parse_proposals",
    "parse_status",
]
