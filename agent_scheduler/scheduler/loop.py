"""
Agent Update Scheduler

Top-level driver: on a timer, refreshes the registry context, adapts the
tick period to registry activity, and runs update cycles
(fetch agents -> probe health -> score and order -> batch -> dispatch).

Lifecycle: idle -> running -> idle. stop() is unconditional and
idempotent; there is no paused state.

Failure policy:
- Control operations (initialize, start, stop, reconfigure, manual
  trigger) raise to the caller
- Anything failing inside a tick or cycle is logged, published as an
  ErrorEvent, and never tears down the timer
- stop() cancels the timer but lets in-flight cycles finish, so no agent
  is left with a half-recorded update

All shared state (health map, update history, config fields) is owned by
this instance and written from its own tasks only; cycles are serialized
by a lock.
"""

import asyncio
import logging
import random
from enum import Enum
from typing import Any

from agent_scheduler.capabilities.ports import (
    ActivityIndex,
    AgentTransport,
    RegistryClient,
    RegistryUnavailableError,
)
from agent_scheduler.clock import Clock, epoch_ms
from agent_scheduler.dispatch import BatchDispatcher, DispatchSummary
from agent_scheduler.dispatch.dispatcher import Sleep
from agent_scheduler.events import (
    EventFilter,
    EventSeverity,
    EventStream,
    EventSubscription,
    create_error,
    create_log,
    create_started,
    create_stopped,
    create_update_complete,
)
from agent_scheduler.health import HealthMonitor
from agent_scheduler.history import UpdateHistory, UpdateRecord
from agent_scheduler.priority import PriorityEngine, SortingCriteria
from agent_scheduler.registry import RegistryContext, RegistryContextCache
from agent_scheduler.scheduler.config import SchedulerSettings, parse_sorting_criteria
from agent_scheduler.scheduler.errors import ConfigurationError, SchedulerNotRunningError
from agent_scheduler.scheduler.state import (
    SchedulerAnalytics,
    SchedulerState,
    SchedulerStatus,
    calculate_adaptive_interval,
)

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    EventSeverity.DEBUG: logging.DEBUG,
    EventSeverity.INFO: logging.INFO,
    EventSeverity.WARNING: logging.WARNING,
    EventSeverity.ERROR: logging.ERROR,
}


class TickOutcome(str, Enum):
    """What a periodic tick did."""
    CYCLE_RUN = "cycle_run"
    INTERVAL_CHANGED = "interval_changed"
    FAILED = "failed"


class AgentUpdateScheduler:
    """
    Periodically pushes context-refresh messages to the registry's agents.

    The three external capabilities are injected, so a scheduler can run
    against in-memory doubles as easily as a real transport.
    """

    def __init__(
        self,
        registry: RegistryClient,
        transport: AgentTransport,
        activity_index: ActivityIndex,
        settings: SchedulerSettings | None = None,
        events: EventStream | None = None,
        clock: Clock = epoch_ms,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Create a scheduler.

        Args:
            registry: Registry query capability
            transport: Agent probe/send capability
            activity_index: Agent activity lookup capability
            settings: Initial configuration (or call initialize() later)
            events: Event stream to publish on (a private one by default)
            clock: Epoch-ms time source
            sleep: Awaitable sleep used for inter-batch pacing
        """
        self._registry = registry
        self._transport = transport
        self._activity_index = activity_index
        self._events = events or EventStream()
        self._clock = clock
        self._sleep = sleep

        self._settings: SchedulerSettings | None = None
        self._state = SchedulerState()

        # Built by _configure()
        self._history: UpdateHistory | None = None
        self._cache: RegistryContextCache | None = None
        self._health: HealthMonitor | None = None
        self._priority: PriorityEngine | None = None
        self._dispatcher: BatchDispatcher | None = None

        # Timer and in-flight work
        self._timer_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()
        self._cycle_lock = asyncio.Lock()
        # Bumped by every start(); a start that no longer matches must not arm
        self._start_generation = 0

        if settings is not None:
            self._configure(settings)

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def events(self) -> EventStream:
        return self._events

    @property
    def settings(self) -> SchedulerSettings | None:
        return self._settings

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def history(self) -> UpdateHistory:
        self._require_initialized()
        return self._history

    @property
    def health_monitor(self) -> HealthMonitor:
        self._require_initialized()
        return self._health

    @property
    def registry_cache(self) -> RegistryContextCache:
        self._require_initialized()
        return self._cache

    def subscribe(
        self,
        subscription_id: str | None = None,
        filter: EventFilter | None = None,
        max_queue_size: int = 1000,
    ) -> EventSubscription:
        """Subscribe to this scheduler's events."""
        return self._events.subscribe(subscription_id, filter, max_queue_size)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _require_initialized(self) -> SchedulerSettings:
        if self._settings is None:
            raise ConfigurationError(
                "Scheduler not initialized; call initialize() with an oracle process ID"
            )
        return self._settings

    def _configure(self, settings: SchedulerSettings) -> None:
        settings.validate()
        self._settings = settings

        self._history = UpdateHistory(max_records=settings.history_size)
        self._cache = RegistryContextCache(
            self._registry,
            proposals_limit=settings.proposals_limit,
            clock=self._clock,
        )
        self._health = HealthMonitor(
            self._transport,
            self._history,
            probe_timeout_seconds=settings.probe_timeout_seconds,
            clock=self._clock,
        )
        self._priority = PriorityEngine(
            self._activity_index,
            self._health,
            self._history,
            rng=random.Random(settings.shuffle_seed),
            clock=self._clock,
        )
        self._dispatcher = BatchDispatcher(
            self._transport,
            self._history,
            oracle_process_id=settings.oracle_process_id,
            batch_delay_seconds=settings.batch_delay_seconds,
            send_timeout_seconds=settings.send_timeout_seconds,
            clock=self._clock,
            sleep=self._sleep,
        )
        self._state = SchedulerState(
            update_interval_ms=settings.update_interval_ms,
            sorting_criteria=settings.sorting_criteria,
            max_batch_size=settings.max_batch_size,
        )

        self._log(EventSeverity.INFO, "Agent update scheduler initialized", {
            "oracle_process_id": settings.oracle_process_id,
            "update_interval_ms": settings.update_interval_ms,
            "sorting_criteria": settings.sorting_criteria.value,
        })

    async def initialize(self, settings: SchedulerSettings) -> None:
        """
        (Re)configure the scheduler with fresh state.

        A running scheduler is stopped first; call start() again afterwards.

        Raises:
            ConfigurationError: If the settings are invalid
        """
        settings.validate()
        if self._state.is_running:
            await self.stop()
        self._configure(settings)

    # ------------------------------------------------------------------
    # Logging and events
    # ------------------------------------------------------------------

    def _log(
        self,
        severity: EventSeverity,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        """Log through the module logger and mirror onto the event stream."""
        if data:
            logger.log(_LOG_LEVELS[severity], f"{message} {data}")
        else:
            logger.log(_LOG_LEVELS[severity], message)
        self._events.publish(create_log(severity, message, data))

    def _report_error(
        self,
        error: BaseException,
        message: str,
        data: dict[str, Any] | None = None,
    ) -> None:
        logger.error(f"{message}: {error}", exc_info=error)
        self._events.publish(create_error(error, message, data))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Start the scheduler.

        Refreshes the registry context, probes every known agent, runs one
        update cycle immediately, then arms the periodic timer. Does
        nothing (beyond a warning) if already running.

        Raises:
            ConfigurationError: If no oracle process ID is configured
        """
        settings = self._require_initialized()
        if not settings.oracle_process_id:
            raise ConfigurationError("Oracle process ID is required")

        if self._state.is_running:
            self._log(EventSeverity.WARNING, "Agent update scheduler already running")
            return

        self._log(EventSeverity.INFO, "Starting agent update scheduler")
        self._state.is_running = True
        self._state.last_update = self._clock()
        self._start_generation += 1
        generation = self._start_generation

        await self._cache.refresh()

        agent_list = await self._cache.fetch_agent_list()
        await self._health.perform_health_check(agent_list.value)

        await self.run_update_cycle(probe_health=False)

        # stop(), or stop() followed by another start(), may have run meanwhile
        if not self._state.is_running or generation != self._start_generation:
            return

        if self._timer_task is None or self._timer_task.done():
            self._arm_timer()
        self._events.publish(create_started(
            settings.oracle_process_id, self._state.update_interval_ms
        ))

    async def stop(self) -> None:
        """
        Stop the periodic timer and return to idle.

        In-flight cycles are not interrupted. Safe to call repeatedly.
        """
        if not self._state.is_running:
            return

        self._state.reset()
        await self._cancel_timer()

        self._log(EventSeverity.INFO, "Agent update scheduler stopped")
        self._events.publish(create_stopped(
            self._settings.oracle_process_id if self._settings else None
        ))

    async def close(self) -> None:
        """Stop, wait for in-flight cycles, and close all subscriptions."""
        await self.stop()
        await self.wait_for_inflight()
        self._events.close_all()

    async def wait_for_inflight(self) -> None:
        """Wait until every in-flight cycle has finished."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _arm_timer(self) -> None:
        """Arm the timer, cancelling any live one so at most one exists."""
        previous = self._timer_task
        if previous is not None and not previous.done():
            previous.cancel()
        self._timer_task = asyncio.create_task(
            self._timer_loop(),
            name="agent_update_timer",
        )

    def _restart_timer(self) -> None:
        """
        Re-arm the timer with the current period.

        Before start() has armed its first timer there is nothing to
        restart; start() picks up the new period when it arms.
        """
        if self._timer_task is None:
            return
        self._arm_timer()

    async def _cancel_timer(self) -> None:
        task, self._timer_task = self._timer_task, None
        if task is None or task.done():
            return
        task.cancel()
        if task is asyncio.current_task():
            return
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _timer_loop(self) -> None:
        """Sleep one period, tick, repeat until cancelled."""
        while True:
            await asyncio.sleep(self._state.update_interval_ms / 1000)
            await self.tick()

    async def tick(self) -> TickOutcome:
        """
        Run one periodic tick.

        Refreshes the registry context and recomputes the adaptive
        interval. If the interval changed, the timer is re-armed with the
        new period and no cycle runs on this tick; otherwise a full
        update cycle runs.
        """
        settings = self._require_initialized()
        try:
            context = await self._cache.refresh()

            adaptive_interval = calculate_adaptive_interval(
                context,
                self._state.update_interval_ms,
                base_interval_ms=settings.base_interval_ms,
                min_interval_ms=settings.min_interval_ms,
                max_interval_ms=settings.max_interval_ms,
            )
            if adaptive_interval != self._state.update_interval_ms:
                self._state.update_interval_ms = adaptive_interval
                if self._state.is_running:
                    self._restart_timer()
                self._log(
                    EventSeverity.INFO,
                    f"Update interval adjusted to {adaptive_interval / 1000:g}s",
                )
                return TickOutcome.INTERVAL_CHANGED

            await self._run_cycle_shielded()
            return TickOutcome.CYCLE_RUN

        except Exception as e:
            self._report_error(e, "Error in scheduled agent update")
            return TickOutcome.FAILED

    def _spawn_cycle(self, probe_health: bool | None = None) -> asyncio.Task:
        task = asyncio.create_task(
            self.run_update_cycle(probe_health=probe_health),
            name="agent_update_cycle",
        )
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _run_cycle_shielded(self) -> DispatchSummary | None:
        # Cancelling the timer must not cancel a cycle that already started
        return await asyncio.shield(self._spawn_cycle())

    # ------------------------------------------------------------------
    # Update cycle
    # ------------------------------------------------------------------

    async def run_update_cycle(
        self,
        probe_health: bool | None = None,
    ) -> DispatchSummary | None:
        """
        Fetch, order and update every agent once.

        Args:
            probe_health: Probe agent health before ordering
                (None = use settings.health_check_each_cycle)

        Returns:
            Dispatch totals, or None when there was nothing to do or the
            cycle failed
        """
        settings = self._require_initialized()
        if probe_health is None:
            probe_health = settings.health_check_each_cycle

        async with self._cycle_lock:
            try:
                return await self._run_update_cycle(probe_health)
            except Exception as e:
                self._report_error(e, "Error processing agent updates")
                return None

    async def _run_update_cycle(self, probe_health: bool) -> DispatchSummary | None:
        self._log(EventSeverity.INFO, "Starting agent update cycle")

        agent_list = await self._cache.fetch_agent_list()
        addresses = agent_list.value
        if not addresses:
            if agent_list.degraded:
                self._report_error(
                    RegistryUnavailableError(agent_list.reason or "no reply"),
                    "Agent list unavailable",
                )
            self._log(EventSeverity.WARNING, "No agents found in registry agent list")
            return None

        self._log(EventSeverity.INFO, f"Found {len(addresses)} agents to process")

        # Same-cycle snapshot: the refresh that preceded this cycle is what we score against
        context: RegistryContext | None = self._cache.snapshot()

        if probe_health:
            await self._health.perform_health_check(addresses)

        criteria = self._state.sorting_criteria
        ordered = await self._priority.sort_agents(addresses, criteria, context)

        summary = await self._dispatcher.dispatch(
            ordered,
            self._state.max_batch_size,
            context,
            criteria,
            last_update=self._state.last_update,
        )

        self._state.last_update = self._clock()
        self._events.publish(create_update_complete(
            total_agents=summary.total_agents,
            processed_batches=summary.processed_batches,
            success_count=summary.success_count,
            error_count=summary.error_count,
            cycle_timestamp=self._state.last_update,
        ))

        if summary.success_count == 0 and summary.error_count > 0:
            self._report_error(
                RuntimeError(f"all {summary.error_count} agent updates failed"),
                "Update cycle delivered nothing",
            )

        return summary

    def trigger_manual_cycle(self) -> asyncio.Task:
        """
        Schedule an update cycle outside the timer.

        Returns:
            The cycle task; awaiting it is optional

        Raises:
            ConfigurationError: If the scheduler was never initialized
            SchedulerNotRunningError: If the scheduler is idle
        """
        self._require_initialized()
        if not self._state.is_running:
            raise SchedulerNotRunningError(
                "Scheduler not running; start it before triggering a cycle"
            )
        self._log(EventSeverity.INFO, "Manual update cycle triggered")
        return self._spawn_cycle()

    # ------------------------------------------------------------------
    # Reconfiguration and status
    # ------------------------------------------------------------------

    async def reconfigure(
        self,
        sorting_criteria: SortingCriteria | str | None = None,
        update_interval_ms: int | None = None,
        max_batch_size: int | None = None,
    ) -> SchedulerStatus:
        """
        Change configuration at runtime.

        A new interval on a running scheduler re-arms the timer; an
        in-flight cycle is not interrupted.

        Raises:
            ConfigurationError: If a value is invalid or the scheduler is uninitialized
        """
        self._require_initialized()

        criteria = (
            parse_sorting_criteria(sorting_criteria)
            if sorting_criteria is not None else None
        )
        if update_interval_ms is not None and update_interval_ms <= 0:
            raise ConfigurationError(
                f"update_interval_ms must be positive, got {update_interval_ms}"
            )
        if max_batch_size is not None and max_batch_size < 1:
            raise ConfigurationError(
                f"max_batch_size must be at least 1, got {max_batch_size}"
            )

        if criteria is not None:
            self._state.sorting_criteria = criteria
        if max_batch_size is not None:
            self._state.max_batch_size = max_batch_size
        if (
            update_interval_ms is not None
            and update_interval_ms != self._state.update_interval_ms
        ):
            self._state.update_interval_ms = update_interval_ms
            if self._state.is_running:
                self._restart_timer()

        self._log(EventSeverity.INFO, "Scheduler configuration updated", {
            "sorting_criteria": self._state.sorting_criteria.value,
            "update_interval_ms": self._state.update_interval_ms,
            "max_batch_size": self._state.max_batch_size,
        })
        return self.status()

    def status(self) -> SchedulerStatus:
        """Snapshot of state and analytics. Never raises."""
        if self._settings is None:
            return SchedulerStatus(initialized=False)

        analytics = self._history.analytics(self._clock())
        return SchedulerStatus(
            is_running=self._state.is_running,
            last_update=self._state.last_update,
            processed_agents_count=self._history.processed_agents_count,
            oracle_process_id=self._settings.oracle_process_id,
            sorting_criteria=self._state.sorting_criteria,
            update_interval_ms=self._state.update_interval_ms,
            max_batch_size=self._state.max_batch_size,
            oracle_context=self._cache.snapshot(),
            analytics=SchedulerAnalytics(
                recent_updates_count=analytics.recent_updates_count,
                success_rate=analytics.success_rate,
                avg_priority=analytics.avg_priority,
                healthy_agents=self._health.healthy_count,
                total_tracked_agents=self._health.tracked_count,
            ),
        )

    def recent_updates(self, limit: int = 20) -> list[UpdateRecord]:
        """Newest update records first."""
        if self._history is None:
            return []
        return self._history.recent(limit)
