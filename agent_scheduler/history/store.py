"""
Update History

Append-only log of dispatch attempts, kept as a bounded ring buffer.

Used for:
- Last-seen lookups per agent (feeds health staleness)
- Status analytics (success rate, average priority over the last hour)
- Recent-updates listings for the host

Records are immutable; the oldest records fall off the head once the
buffer is full.
"""

import logging
from collections import deque
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from agent_scheduler.clock import HOUR_MS

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 1000


class UpdateStatus(str, Enum):
    """Outcome of one dispatch attempt."""
    SUCCESS = "success"
    ERROR = "error"


class UpdateRecord(BaseModel):
    """One dispatch attempt."""
    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(..., description="Epoch ms of the attempt")
    agent_address: str = Field(..., description="Target agent")
    status: UpdateStatus = Field(..., description="Attempt outcome")
    priority: int = Field(default=0, description="Priority score the agent had in its cycle")
    message_id: str | None = Field(default=None, description="Transport message ID on success")
    error: str | None = Field(default=None, description="Failure message on error")


class HistoryAnalytics(BaseModel):
    """Aggregates over a recent window of the history."""
    recent_updates_count: int = 0
    success_rate: int = Field(default=0, description="Percent, rounded")
    avg_priority: int = Field(default=0, description="Mean priority, rounded")


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class UpdateHistory:
    """
    Bounded ring buffer of UpdateRecords plus a per-agent latest index.

    The latest-record index is not bounded by the ring size, so agents
    keep their last-seen time even after their records are pruned.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS):
        """
        Initialize the history.

        Args:
            max_records: Ring buffer capacity
        """
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        self._max_records = max_records
        self._records: deque[UpdateRecord] = deque(maxlen=max_records)
        self._latest: dict[str, UpdateRecord] = {}

    @property
    def max_records(self) -> int:
        return self._max_records

    def __len__(self) -> int:
        return len(self._records)

    def append(self, record: UpdateRecord) -> UpdateRecord:
        """Append a record, evicting the oldest when full."""
        self._records.append(record)
        self._latest[record.agent_address] = record
        return record

    def record(
        self,
        agent_address: str,
        status: UpdateStatus,
        timestamp: int,
        priority: int = 0,
        message_id: str | None = None,
        error: str | None = None,
    ) -> UpdateRecord:
        """Create and append a record."""
        return self.append(UpdateRecord(
            timestamp=timestamp,
            agent_address=agent_address,
            status=status,
            priority=priority,
            message_id=message_id,
            error=error,
        ))

    def records(self) -> list[UpdateRecord]:
        """All retained records, oldest first."""
        return list(self._records)

    def recent(self, limit: int = 20) -> list[UpdateRecord]:
        """The newest `limit` records, newest first."""
        if limit <= 0:
            return []
        return list(reversed(self._records))[:limit]

    def last_processed(self, agent_address: str) -> UpdateRecord | None:
        return self._latest.get(agent_address)

    def last_seen(self, agent_address: str) -> int:
        """Epoch ms of the agent's last dispatch attempt, 0 if never."""
        record = self._latest.get(agent_address)
        return record.timestamp if record else 0

    @property
    def processed_agents_count(self) -> int:
        return len(self._latest)

    def analytics(self, now: int, window_ms: int = HOUR_MS) -> HistoryAnalytics:
        """
        Aggregate the records from the last `window_ms` milliseconds.

        Args:
            now: Current epoch ms
            window_ms: Window length

        Returns:
            HistoryAnalytics (all zero when the window is empty)
        """
        recent = [r for r in self._records if now - r.timestamp < window_ms]
        if not recent:
            return HistoryAnalytics()

        successes = sum(1 for r in recent if r.status == UpdateStatus.SUCCESS)
        total_priority = sum(r.priority for r in recent)
        return HistoryAnalytics(
            recent_updates_count=len(recent),
            success_rate=_round_half_up(successes / len(recent) * 100),
            avg_priority=_round_half_up(total_priority / len(recent)),
        )
