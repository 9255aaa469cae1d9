"""
External Capabilities

Ports for the registry query, per-agent messaging and activity lookup
the scheduler depends on, plus in-memory adapters for tests and demos.
"""

from agent_scheduler.capabilities.ports import (
    ACTION_GET_AGENT_LIST,
    ACTION_GET_STATUS,
    ACTION_GET_RECENT_PROPOSALS,
    ParseResult,
    RegistryClient,
    AgentTransport,
    ActivityIndex,
    CapabilityError,
    RegistryUnavailableError,
    AgentUnreachableError,
)
from agent_scheduler.capabilities.memory import (
    InMemoryRegistry,
    InMemoryAgentNetwork,
    InMemoryActivityIndex,
    SentMessage,
)

__all__ = [
    # Registry actions
    "ACTION_GET_AGENT_LIST",
    "ACTION_GET_STATUS",
    "ACTION_GET_RECENT_PROPOSALS",
    # Ports
    "ParseResult",
    "RegistryClient",
    "AgentTransport",
    "ActivityIndex",
    # Exceptions
    "CapabilityError",
    "RegistryUnavailableError",
    "AgentUnreachableError",
    # In-memory adapters
    "InMemoryRegistry",
    "InMemoryAgentNetwork",
    "InMemoryActivityIndex",
    "SentMessage",
]
