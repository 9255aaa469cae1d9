"""
Capability Port Interfaces

Abstract base classes for the three external capabilities the scheduler
consumes. The scheduler never talks to the network directly; a transport
or SDK layer implements these ports and is injected at construction time.

These ports follow the hexagonal architecture pattern:
- Scheduler code depends only on these interfaces
- Adapters (in-memory, SDK-backed) implement these interfaces
- Implementations are injected via dependency inversion

Failures surface as raised exceptions, never as special return values.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


# Registry actions understood by the oracle
ACTION_GET_AGENT_LIST = "Get-Agent-Process-List"
ACTION_GET_STATUS = "Get-Community-Status"
ACTION_GET_RECENT_PROPOSALS = "Get-Recent-Proposals"


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """
    Outcome of parsing an external response.

    A degraded result carries a default (or partially salvaged) value and
    the reason the response could not be used as-is. Callers decide how
    to report the degradation.
    """
    value: T
    degraded: bool = False
    reason: str | None = None

    @classmethod
    def ok(cls, value: T) -> "ParseResult[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> "ParseResult[T]":
        return cls(value=value, degraded=True, reason=reason)


class RegistryClient(ABC):
    """
    Read access to the registry (oracle) process.
    """

    @abstractmethod
    async def query(
        self,
        action: str,
        tags: dict[str, str] | None = None,
    ) -> Any:
        """
        Issue a read-only query against the registry.

        Args:
            action: Registry action name (e.g. "Get-Community-Status")
            tags: Additional query tags (e.g. {"Limit": "5"})

        Returns:
            The response payload: decoded JSON, raw JSON text, or None
            when the registry produced no reply

        Raises:
            RegistryUnavailableError: If the registry cannot be reached
        """
        ...


class AgentTransport(ABC):
    """
    Message delivery to individual agents.
    """

    @abstractmethod
    async def probe(self, address: str) -> Any:
        """
        Send a liveness probe to an agent.

        Returns:
            Whatever the agent replied with; None or an empty payload
            means the agent did not answer

        Raises:
            AgentUnreachableError: On transport failure
        """
        ...

    @abstractmethod
    async def send(
        self,
        address: str,
        tags: dict[str, str],
        payload: dict[str, Any],
    ) -> str:
        """
        Deliver a message to an agent and wait for acceptance.

        Args:
            address: Target agent address
            tags: Action tags attached to the message
            payload: JSON-serializable message body

        Returns:
            The transport-assigned message ID

        Raises:
            AgentUnreachableError: On transport failure
        """
        ...


class ActivityIndex(ABC):
    """
    Read-only lookup of per-agent activity counters from the indexed ledger.
    """

    @abstractmethod
    async def query_activity(self, address: str) -> dict[str, Any] | None:
        """
        Fetch activity counters for an agent.

        Returns:
            Mapping with lastActivity, memoryCount, journalCount,
            maxSequence, totalTransactions; None when nothing is indexed
        """
        ...


# =============================================================================
# Exceptions
# =============================================================================

class CapabilityError(Exception):
    """Base exception for external capability failures."""
    pass


class RegistryUnavailableError(CapabilityError):
    """The registry could not be queried."""
    pass


class AgentUnreachableError(CapabilityError):
    """An agent could not be probed or messaged."""
    def __init__(self, address: str, reason: str = "unreachable"):
        self.address = address
        self.reason = reason
        super().__init__(f"Agent {address} {reason}")
