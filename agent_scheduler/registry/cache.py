"""
Registry Context Cache

Queries the registry for aggregate activity signals and caches them for
one scheduling cycle. Also fetches the authoritative agent list.

Stale-tolerant: a failed refresh keeps the previous values (or
documented defaults) and never raises, so one bad refresh cannot stop
the loop.
"""

import asyncio
import logging
from typing import Any

from agent_scheduler.capabilities.ports import (
    ACTION_GET_AGENT_LIST,
    ACTION_GET_RECENT_PROPOSALS,
    ACTION_GET_STATUS,
    ParseResult,
    RegistryClient,
)
from agent_scheduler.clock import Clock, epoch_ms
from agent_scheduler.registry.context import (
    Proposal,
    RegistryContext,
    RegistryStatus,
    parse_agent_list,
    parse_proposals,
    parse_status,
)

logger = logging.getLogger(__name__)


class RegistryContextCache:
    """
    Holds the most recent RegistryContext.

    The context is replaced wholesale on refresh; readers always get a
    deep copy so an in-progress refresh never leaks into a running cycle.
    """

    def __init__(
        self,
        registry: RegistryClient,
        proposals_limit: int = 5,
        clock: Clock = epoch_ms,
    ):
        """
        Initialize the cache.

        Args:
            registry: Registry query capability
            proposals_limit: How many recent proposals to request
            clock: Epoch-ms time source
        """
        self._registry = registry
        self._proposals_limit = proposals_limit
        self._clock = clock
        self._context: RegistryContext | None = None

    @property
    def has_context(self) -> bool:
        return self._context is not None

    def snapshot(self) -> RegistryContext | None:
        """Return a private copy of the cached context (None before first refresh)."""
        if self._context is None:
            return None
        return self._context.model_copy(deep=True)

    async def _query(self, action: str, tags: dict[str, str] | None = None) -> Any:
        return await self._registry.query(action, tags)

    async def _fetch_status(self) -> ParseResult[RegistryStatus]:
        try:
            raw = await self._query(ACTION_GET_STATUS)
        except Exception as e:
            return ParseResult.fallback(RegistryStatus(), f"status query failed: {e}")
        return parse_status(raw)

    async def _fetch_proposals(self) -> ParseResult[list[Proposal]]:
        try:
            raw = await self._query(
                ACTION_GET_RECENT_PROPOSALS,
                {"Limit": str(self._proposals_limit)},
            )
        except Exception as e:
            return ParseResult.fallback([], f"proposals query failed: {e}")
        return parse_proposals(raw)

    async def refresh(self) -> RegistryContext:
        """
        Refresh the cached context from the registry.

        Status and proposals are queried concurrently. A field whose query
        failed or could not be parsed keeps its previous cached value, or
        the documented default when there is none.

        Returns:
            A copy of the new context
        """
        status_result, proposals_result = await asyncio.gather(
            self._fetch_status(),
            self._fetch_proposals(),
        )
        previous = self._context
        errors: list[str] = []

        if status_result.degraded:
            errors.append(status_result.reason or "status unavailable")
            status = previous.status if previous else status_result.value
        else:
            status = status_result.value

        if proposals_result.degraded and not proposals_result.value:
            errors.append(proposals_result.reason or "proposals unavailable")
            proposals = list(previous.recent_proposals) if previous else []
        else:
            if proposals_result.degraded:
                errors.append(proposals_result.reason or "proposals partially parsed")
            proposals = proposals_result.value

        self._context = RegistryContext(
            active_proposals=status.active_proposals,
            recent_activity=status.recent_activity,
            consensus_health=status.consensus_health,
            community_mood=status.community_mood,
            recent_proposals=proposals,
            last_refresh=self._clock(),
            error="; ".join(errors) if errors else None,
        )

        if errors:
            logger.warning(f"Registry context refreshed with fallbacks: {self._context.error}")
        else:
            logger.debug(
                f"Registry context refreshed: activeProposals={status.active_proposals}, "
                f"recentActivity={status.recent_activity.value}"
            )

        return self._context.model_copy(deep=True)

    async def fetch_agent_list(self) -> ParseResult[list[str]]:
        """
        Fetch the current agent addresses from the registry.

        Returns:
            ParseResult with the address list; degraded (possibly empty)
            when the registry was unreachable or replied with junk
        """
        try:
            raw = await self._query(ACTION_GET_AGENT_LIST)
        except Exception as e:
            logger.error(f"Failed to fetch agent list: {e}")
            return ParseResult.fallback([], f"agent list query failed: {e}")

        result = parse_agent_list(raw)
        if result.degraded:
            logger.warning(f"Agent list degraded: {result.reason}")
        return result
