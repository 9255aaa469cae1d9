"""
Batch Dispatcher

Splits the ordered agent list into contiguous batches and delivers the
update message to each batch.

Concurrency model:
- Agents within a batch are sent to concurrently and all outcomes are
  awaited; one failing agent never cancels or blocks its siblings
- Batches run sequentially with a pacing delay between them, so at most
  `batch_size` sends are in flight at once
- No delay after the final batch
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from agent_scheduler.capabilities.ports import AgentTransport
from agent_scheduler.clock import Clock, epoch_ms
from agent_scheduler.dispatch.payload import build_update_payload, build_update_tags
from agent_scheduler.history import UpdateHistory, UpdateRecord, UpdateStatus
from agent_scheduler.priority.models import AgentRecord, SortingCriteria
from agent_scheduler.registry.context import RegistryContext

logger = logging.getLogger(__name__)

DEFAULT_BATCH_DELAY_SECONDS = 2.0

Sleep = Callable[[float], Awaitable[None]]


def create_batches(agents: list[AgentRecord], batch_size: int) -> list[list[AgentRecord]]:
    """
    Contiguous chunking that preserves order.

    Batch i holds agents[i * batch_size:(i + 1) * batch_size].

    Raises:
        ValueError: If batch_size < 1
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    return [agents[i:i + batch_size] for i in range(0, len(agents), batch_size)]


@dataclass
class BatchResult:
    """Outcome of one batch."""
    success_count: int = 0
    error_count: int = 0
    records: list[UpdateRecord] = field(default_factory=list)


@dataclass
class DispatchSummary:
    """Outcome of dispatching a whole cycle."""
    total_agents: int = 0
    processed_batches: int = 0
    success_count: int = 0
    error_count: int = 0


class BatchDispatcher:
    """
    Sends update messages batch by batch and records every attempt.
    """

    def __init__(
        self,
        transport: AgentTransport,
        history: UpdateHistory,
        oracle_process_id: str,
        batch_delay_seconds: float = DEFAULT_BATCH_DELAY_SECONDS,
        send_timeout_seconds: float | None = 30.0,
        clock: Clock = epoch_ms,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the dispatcher.

        Args:
            transport: Agent transport used for sends
            history: Update history receiving one record per attempt
            oracle_process_id: Registry address stamped on each message
            batch_delay_seconds: Pause between consecutive batches
            send_timeout_seconds: Per-send timeout (None = no timeout)
            clock: Epoch-ms time source
            sleep: Awaitable sleep used for pacing
        """
        self._transport = transport
        self._history = history
        self._oracle_process_id = oracle_process_id
        self._batch_delay = batch_delay_seconds
        self._send_timeout = send_timeout_seconds
        self._clock = clock
        self._sleep = sleep

    async def update_agent(
        self,
        agent: AgentRecord,
        context: RegistryContext | None,
        sorting_criteria: SortingCriteria,
        last_update: int | None = None,
    ) -> str:
        """
        Send one update message.

        Returns:
            The transport message ID

        Raises:
            Whatever the transport raises, or TimeoutError
        """
        payload = build_update_payload(
            agent, context, sorting_criteria, last_update, self._clock()
        )
        send = self._transport.send(
            agent.address,
            build_update_tags(self._oracle_process_id, agent),
            payload.to_message(),
        )
        if self._send_timeout is None:
            return await send
        return await asyncio.wait_for(send, timeout=self._send_timeout)

    async def process_batch(
        self,
        batch: list[AgentRecord],
        context: RegistryContext | None,
        sorting_criteria: SortingCriteria,
        last_update: int | None = None,
    ) -> BatchResult:
        """
        Send to every agent in the batch concurrently and wait for all.

        Records one UpdateRecord per agent in batch order.
        """
        outcomes = await asyncio.gather(
            *(
                self.update_agent(agent, context, sorting_criteria, last_update)
                for agent in batch
            ),
            return_exceptions=True,
        )

        result = BatchResult()
        # Every agent of the batch is recorded before a cancellation propagates
        cancelled: asyncio.CancelledError | None = None
        for agent, outcome in zip(batch, outcomes):
            now = self._clock()
            if isinstance(outcome, asyncio.CancelledError) and cancelled is None:
                cancelled = outcome
            if isinstance(outcome, BaseException):
                error = str(outcome) or type(outcome).__name__
                logger.error(f"Failed to update agent {agent.address}: {error}")
                record = self._history.record(
                    agent.address,
                    UpdateStatus.ERROR,
                    timestamp=now,
                    priority=agent.priority,
                    error=error,
                )
                result.error_count += 1
            else:
                logger.debug(
                    f"Update sent to agent {agent.address} "
                    f"(messageId={outcome}, priority={agent.priority}, "
                    f"health={agent.health.status.value})"
                )
                record = self._history.record(
                    agent.address,
                    UpdateStatus.SUCCESS,
                    timestamp=now,
                    priority=agent.priority,
                    message_id=str(outcome),
                )
                result.success_count += 1
            result.records.append(record)

        logger.info(
            f"Batch completed: {result.success_count} success, {result.error_count} errors"
        )
        if cancelled is not None:
            raise cancelled
        return result

    async def dispatch(
        self,
        agents: list[AgentRecord],
        batch_size: int,
        context: RegistryContext | None,
        sorting_criteria: SortingCriteria,
        last_update: int | None = None,
    ) -> DispatchSummary:
        """
        Dispatch all agents batch by batch, pacing between batches.
        """
        batches = create_batches(agents, batch_size)
        summary = DispatchSummary(total_agents=len(agents))

        for index, batch in enumerate(batches):
            logger.info(
                f"Processing batch {index + 1}/{len(batches)} with {len(batch)} agents"
            )
            result = await self.process_batch(batch, context, sorting_criteria, last_update)
            summary.processed_batches += 1
            summary.success_count += result.success_count
            summary.error_count += result.error_count

            if index < len(batches) - 1 and self._batch_delay > 0:
                await self._sleep(self._batch_delay)

        return summary
