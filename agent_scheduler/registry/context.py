"""
Registry Context Models

The scheduler's cached view of the registry (oracle): aggregate activity
signals and the newest proposals. Replaced wholesale on every refresh.

Also holds the parsers that turn raw registry replies into typed values.
Parsers never raise; they return a ParseResult whose `degraded` flag tells
the caller that a default was applied.
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agent_scheduler.capabilities.ports import ParseResult


class RecentActivity(str, Enum):
    """Registry activity level as reported by the oracle."""
    ACTIVE = "active"
    QUIET = "quiet"
    UNKNOWN = "unknown"


# Defaults applied when the registry gives no usable status
DEFAULT_ACTIVE_PROPOSALS = 0
DEFAULT_RECENT_ACTIVITY = RecentActivity.QUIET
DEFAULT_CONSENSUS_HEALTH = "stable"
DEFAULT_COMMUNITY_MOOD = "neutral"


class Proposal(BaseModel):
    """A governance proposal published by the registry."""
    model_config = ConfigDict(extra="allow")

    id: str | int | None = None
    title: str = Field(default="untitled", description="Proposal title")
    category: str = Field(default="general", description="Proposal category")
    status: str = Field(default="unknown", description="Proposal lifecycle status")


class RegistryStatus(BaseModel):
    """Aggregate activity signals from the registry status query."""
    active_proposals: int = DEFAULT_ACTIVE_PROPOSALS
    recent_activity: RecentActivity = DEFAULT_RECENT_ACTIVITY
    consensus_health: str = DEFAULT_CONSENSUS_HEALTH
    community_mood: str = DEFAULT_COMMUNITY_MOOD


class RegistryContext(BaseModel):
    """
    Snapshot of registry state used for one scheduling cycle.
    """

    # === Activity signals ===
    active_proposals: int = Field(
        default=DEFAULT_ACTIVE_PROPOSALS,
        ge=0,
        description="Number of proposals currently open"
    )
    recent_activity: RecentActivity = Field(
        default=DEFAULT_RECENT_ACTIVITY,
        description="Registry activity level"
    )
    consensus_health: str = Field(
        default=DEFAULT_CONSENSUS_HEALTH,
        description="Registry-reported consensus health"
    )
    community_mood: str = Field(
        default=DEFAULT_COMMUNITY_MOOD,
        description="Registry-reported community mood"
    )

    # === Proposals ===
    recent_proposals: list[Proposal] = Field(
        default_factory=list,
        description="Most recent proposals, newest first"
    )

    # === Refresh bookkeeping ===
    last_refresh: int | None = Field(
        default=None,
        description="Epoch ms of the refresh that produced this context"
    )
    error: str | None = Field(
        default=None,
        description="Why the last refresh fell back to cached or default values"
    )

    @property
    def status(self) -> RegistryStatus:
        return RegistryStatus(
            active_proposals=self.active_proposals,
            recent_activity=self.recent_activity,
            consensus_health=self.consensus_health,
            community_mood=self.community_mood,
        )


# =============================================================================
# Response parsers
# =============================================================================

def decode_payload(raw: Any) -> ParseResult[Any]:
    """Decode JSON text replies; pass decoded values through."""
    if raw is None:
        return ParseResult.fallback(None, "empty reply")

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")

    if isinstance(raw, str):
        if not raw.strip():
            return ParseResult.fallback(None, "empty reply")
        try:
            return ParseResult.ok(json.loads(raw))
        except json.JSONDecodeError as e:
            return ParseResult.fallback(None, f"invalid JSON: {e.msg}")

    return ParseResult.ok(raw)


def parse_agent_list(raw: Any) -> ParseResult[list[str]]:
    """
    Parse the registry's agent list reply.

    Accepts a bare list of addresses or an object with a `processes` list.
    Non-string entries are dropped, duplicates keep their first position.
    """
    decoded = decode_payload(raw)
    if decoded.degraded:
        return ParseResult.fallback([], decoded.reason or "empty reply")

    data = decoded.value
    if isinstance(data, dict):
        data = data.get("processes")

    if not isinstance(data, list):
        return ParseResult.fallback([], "agent list is not a list")

    addresses: list[str] = []
    seen: set[str] = set()
    dropped = 0
    for entry in data:
        if not isinstance(entry, str) or not entry:
            dropped += 1
            continue
        if entry in seen:
            continue
        seen.add(entry)
        addresses.append(entry)

    if dropped:
        return ParseResult.fallback(addresses, f"dropped {dropped} malformed agent entries")
    return ParseResult.ok(addresses)


def _coerce_activity(value: Any) -> RecentActivity:
    try:
        return RecentActivity(str(value).lower())
    except ValueError:
        return RecentActivity.UNKNOWN


def parse_status(raw: Any) -> ParseResult[RegistryStatus]:
    """Parse the registry status reply into RegistryStatus."""
    decoded = decode_payload(raw)
    if decoded.degraded:
        return ParseResult.fallback(RegistryStatus(), decoded.reason or "empty reply")

    data = decoded.value
    if not isinstance(data, dict):
        return ParseResult.fallback(RegistryStatus(), "status reply is not an object")

    try:
        active = int(data.get("activeProposals", DEFAULT_ACTIVE_PROPOSALS))
    except (TypeError, ValueError):
        return ParseResult.fallback(
            RegistryStatus(),
            f"activeProposals is not a number: {data.get('activeProposals')!r}"
        )

    status = RegistryStatus(
        active_proposals=max(active, 0),
        recent_activity=_coerce_activity(
            data.get("recentActivity", DEFAULT_RECENT_ACTIVITY.value)
        ),
        consensus_health=str(data.get("consensusHealth", DEFAULT_CONSENSUS_HEALTH)),
        community_mood=str(data.get("communityMood", DEFAULT_COMMUNITY_MOOD)),
    )
    return ParseResult.ok(status)


def parse_proposals(raw: Any) -> ParseResult[list[Proposal]]:
    """Parse the recent-proposals reply, skipping malformed entries."""
    decoded = decode_payload(raw)
    if decoded.degraded:
        return ParseResult.fallback([], decoded.reason or "empty reply")

    data = decoded.value
    if isinstance(data, dict):
        data = data.get("proposals")

    if not isinstance(data, list):
        return ParseResult.fallback([], "proposals reply is not a list")

    proposals: list[Proposal] = []
    skipped = 0
    for entry in data:
        if not isinstance(entry, dict):
            skipped += 1
            continue
        try:
            proposals.append(Proposal.model_validate(entry))
        except ValidationError:
            skipped += 1

    if skipped:
        return ParseResult.fallback(proposals, f"skipped {skipped} malformed proposals")
    return ParseResult.ok(proposals)
