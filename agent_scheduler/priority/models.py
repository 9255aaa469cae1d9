"""
Priority Models

Per-cycle view of an agent: identity plus the activity metadata, health
snapshot and priority score the engine derived for it. These records are
rebuilt from scratch every cycle and never persisted.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from agent_scheduler.capabilities.ports import ParseResult
from agent_scheduler.health.models import HealthSnapshot


class SortingCriteria(str, Enum):
    """Selectable agent orderings."""
    ACTIVITY = "activity"        # Most active first
    SEQUENCE = "sequence"        # Highest memory sequence first
    RANDOM = "random"            # Uniform shuffle
    PRIORITY = "priority"        # Longest idle first
    INTELLIGENT = "intelligent"  # Computed priority, then health, then activity


class AgentMetadata(BaseModel):
    """Activity counters from the indexed ledger."""
    last_activity: int = Field(default=0, description="Epoch ms of the newest indexed entry")
    memory_count: int = Field(default=0, ge=0)
    journal_count: int = Field(default=0, ge=0)
    max_sequence: int = Field(default=0, ge=0)
    total_transactions: int = Field(default=0, ge=0)


# Wire keys reported by the activity index
_METADATA_KEYS = {
    "lastActivity": "last_activity",
    "memoryCount": "memory_count",
    "journalCount": "journal_count",
    "maxSequence": "max_sequence",
    "totalTransactions": "total_transactions",
}


def parse_agent_metadata(raw: Any) -> ParseResult[AgentMetadata]:
    """
    Parse an activity index reply.

    A missing reply is not an error: it yields zero defaults without
    marking the result degraded. Malformed replies degrade to zeros.
    """
    if raw is None:
        return ParseResult.ok(AgentMetadata())

    if not isinstance(raw, dict):
        return ParseResult.fallback(AgentMetadata(), "activity reply is not an object")

    values: dict[str, int] = {}
    for wire_key, field_name in _METADATA_KEYS.items():
        value = raw.get(wire_key, raw.get(field_name, 0))
        try:
            values[field_name] = max(int(value or 0), 0)
        except (TypeError, ValueError):
            return ParseResult.fallback(
                AgentMetadata(),
                f"{wire_key} is not a number: {value!r}"
            )

    return ParseResult.ok(AgentMetadata(**values))


class AgentRecord(BaseModel):
    """
    One agent as seen by a single scheduling cycle.
    """
    address: str = Field(..., description="Opaque agent address")
    metadata: AgentMetadata = Field(default_factory=AgentMetadata)
    health: HealthSnapshot = Field(default_factory=HealthSnapshot.unknown)
    last_processed: int = Field(
        default=0,
        description="Epoch ms of the last dispatch attempt (0 = never)"
    )
    priority: int = Field(default=0, description="Priority score for this cycle")
