"""
Scheduler Event Models

Typed events the scheduler publishes for its host:
- scheduler.started / scheduler.stopped - lifecycle transitions
- cycle.completed - one update cycle finished dispatching
- scheduler.log - mirror of scheduler-level log lines
- scheduler.error - a cycle or tick failed (the loop keeps running)

Design Principles:
- Events are immutable records
- Each event class has a well-defined payload structure
- Hosts match on the event class (or event_type), never on free strings
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


class SchedulerEventType(str, Enum):
    """Categories of scheduler events."""
    STARTED = "scheduler.started"
    STOPPED = "scheduler.stopped"
    UPDATE_COMPLETE = "cycle.completed"
    LOG = "scheduler.log"
    ERROR = "scheduler.error"


class EventSeverity(str, Enum):
    """Severity levels for events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


SEVERITY_ORDER: dict[EventSeverity, int] = {
    EventSeverity.DEBUG: 0,
    EventSeverity.INFO: 1,
    EventSeverity.WARNING: 2,
    EventSeverity.ERROR: 3,
}


class SchedulerEvent(BaseModel):
    """
    Base class for all scheduler events.

    Provides common identification, timing, and payload fields.
    """
    model_config = ConfigDict(frozen=True)

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    event_type: SchedulerEventType = Field(
        ...,
        description="Type/category of the event"
    )

    # Timing
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred"
    )

    # Classification
    severity: EventSeverity = Field(
        default=EventSeverity.INFO,
        description="Event severity level"
    )

    # Payload
    message: str = Field(
        default="",
        description="Human-readable event description"
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific structured data"
    )

    def to_payload(self) -> dict[str, Any]:
        """Convert to a JSON-ready dict."""
        return self.model_dump(mode="json")


class StartedEvent(SchedulerEvent):
    """The scheduler entered the running state."""
    event_type: SchedulerEventType = SchedulerEventType.STARTED


class StoppedEvent(SchedulerEvent):
    """The scheduler returned to idle."""
    event_type: SchedulerEventType = SchedulerEventType.STOPPED


class UpdateCompleteEvent(SchedulerEvent):
    """An update cycle dispatched every batch."""
    event_type: SchedulerEventType = SchedulerEventType.UPDATE_COMPLETE

    total_agents: int = Field(..., ge=0)
    processed_batches: int = Field(..., ge=0)
    success_count: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    cycle_timestamp: int = Field(..., description="Epoch ms the cycle finished")


class LogEvent(SchedulerEvent):
    """A scheduler-level log line."""
    event_type: SchedulerEventType = SchedulerEventType.LOG


class ErrorEvent(SchedulerEvent):
    """A cycle or tick failed."""
    event_type: SchedulerEventType = SchedulerEventType.ERROR
    severity: EventSeverity = EventSeverity.ERROR

    error_type: str = Field(..., description="Exception class name")


# =============================================================================
# Factories
# =============================================================================

def create_started(oracle_process_id: str, update_interval_ms: int) -> StartedEvent:
    """Create a scheduler.started event."""
    return StartedEvent(
        message=f"Scheduler started for registry {oracle_process_id}",
        data={
            "oracle_process_id": oracle_process_id,
            "update_interval_ms": update_interval_ms,
        },
    )


def create_stopped(oracle_process_id: str | None) -> StoppedEvent:
    """Create a scheduler.stopped event."""
    return StoppedEvent(
        message="Scheduler stopped",
        data={"oracle_process_id": oracle_process_id},
    )


def create_update_complete(
    total_agents: int,
    processed_batches: int,
    success_count: int,
    error_count: int,
    cycle_timestamp: int,
) -> UpdateCompleteEvent:
    """Create a cycle.completed event."""
    return UpdateCompleteEvent(
        message=(
            f"Update cycle completed: {total_agents} agents in {processed_batches} batches "
            f"({success_count} success, {error_count} errors)"
        ),
        total_agents=total_agents,
        processed_batches=processed_batches,
        success_count=success_count,
        error_count=error_count,
        cycle_timestamp=cycle_timestamp,
    )


def create_log(
    severity: EventSeverity,
    message: str,
    data: dict[str, Any] | None = None,
) -> LogEvent:
    """Create a scheduler.log event."""
    return LogEvent(severity=severity, message=message, data=data or {})


def create_error(
    error: BaseException,
    message: str,
    data: dict[str, Any] | None = None,
) -> ErrorEvent:
    """Create a scheduler.error event from an exception."""
    return ErrorEvent(
        message=f"{message}: {error}",
        error_type=type(error).__name__,
        data=data or {},
    )
