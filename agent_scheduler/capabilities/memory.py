"""
In-Memory Capability Implementations

Scriptable stand-ins for the registry, agent transport and activity index.
Suitable for development, testing, and local demonstrations.

Features:
- Configurable replies per registry action
- Per-agent failure and silence injection
- Optional artificial latency
- Full record of delivered messages
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from agent_scheduler.capabilities.ports import (
    ACTION_GET_AGENT_LIST,
    ACTION_GET_RECENT_PROPOSALS,
    ACTION_GET_STATUS,
    ActivityIndex,
    AgentTransport,
    AgentUnreachableError,
    RegistryClient,
    RegistryUnavailableError,
)

logger = logging.getLogger(__name__)


class InMemoryRegistry(RegistryClient):
    """
    Registry double backed by plain Python values.

    Replies are returned as decoded JSON. Setting an action in
    `failing_actions` makes that query raise RegistryUnavailableError.
    """

    def __init__(
        self,
        agents: list[str] | None = None,
        status: dict[str, Any] | None = None,
        proposals: list[dict[str, Any]] | None = None,
    ):
        self.agents: list[str] = list(agents or [])
        self.status: dict[str, Any] = dict(status or {})
        self.proposals: list[dict[str, Any]] = list(proposals or [])
        self.failing_actions: set[str] = set()
        self.queries: list[tuple[str, dict[str, str]]] = []

    async def query(
        self,
        action: str,
        tags: dict[str, str] | None = None,
    ) -> Any:
        self.queries.append((action, dict(tags or {})))

        if action in self.failing_actions:
            raise RegistryUnavailableError(f"Registry query {action} failed")

        if action == ACTION_GET_AGENT_LIST:
            return {"processes": list(self.agents)}
        if action == ACTION_GET_STATUS:
            return dict(self.status)
        if action == ACTION_GET_RECENT_PROPOSALS:
            limit = int((tags or {}).get("Limit", len(self.proposals)))
            return list(self.proposals[:limit])

        logger.debug(f"Unknown registry action: {action}")
        return None


@dataclass
class SentMessage:
    """A message accepted by the in-memory transport."""
    message_id: str
    address: str
    tags: dict[str, str]
    payload: dict[str, Any]
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryAgentNetwork(AgentTransport):
    """
    Agent transport double.

    Every known agent answers probes unless it is listed in `silent`
    (empty reply) or `failing` (raises). Sends to failing agents raise
    AgentUnreachableError; all others are recorded in `sent`.
    """

    def __init__(self, latency_seconds: float = 0.0):
        self._latency = latency_seconds
        self.silent: set[str] = set()
        self.failing: set[str] = set()
        self.sent: list[SentMessage] = []
        self.probes: list[str] = []
        self._in_flight = 0
        self.max_in_flight = 0

    async def _simulate_latency(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)

    async def probe(self, address: str) -> Any:
        self.probes.append(address)
        await self._simulate_latency()
        if address in self.failing:
            raise AgentUnreachableError(address, "did not answer health probe")
        if address in self.silent:
            return None
        return {"Action": "Health-Response", "status": "ok"}

    async def send(
        self,
        address: str,
        tags: dict[str, str],
        payload: dict[str, Any],
    ) -> str:
        self._in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            await self._simulate_latency()
            if address in self.failing:
                raise AgentUnreachableError(address, "rejected update message")
            message = SentMessage(
                message_id=str(uuid4()),
                address=address,
                tags=dict(tags),
                payload=payload,
            )
            self.sent.append(message)
            return message.message_id
        finally:
            self._in_flight -= 1

    def messages_for(self, address: str) -> list[SentMessage]:
        """All messages delivered to one agent, oldest first."""
        return [m for m in self.sent if m.address == address]


class InMemoryActivityIndex(ActivityIndex):
    """Activity index double keyed by agent address."""

    def __init__(self, activity: dict[str, dict[str, Any]] | None = None):
        self.activity: dict[str, dict[str, Any]] = dict(activity or {})
        self.failing: set[str] = set()

    async def query_activity(self, address: str) -> dict[str, Any] | None:
        if address in self.failing:
            raise RuntimeError(f"Activity lookup failed for {address}")
        record = self.activity.get(address)
        return dict(record) if record is not None else None
