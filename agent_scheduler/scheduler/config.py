"""
Scheduler Settings

Configuration for the agent update scheduler, built directly or from
environment variables. A `.env` file in the working directory is loaded
before the environment is read.

Environment variables:
    AGENT_SCHEDULER_ORACLE_PROCESS_ID: Registry address to query (required to start)
    AGENT_SCHEDULER_UPDATE_INTERVAL_MS: Initial tick period (default: 300000)
    AGENT_SCHEDULER_MAX_BATCH_SIZE: Concurrent sends per batch (default: 10)
    AGENT_SCHEDULER_SORTING_CRITERIA: activity, sequence, random, priority, intelligent
    AGENT_SCHEDULER_BATCH_DELAY_SECONDS: Pause between batches (default: 2.0)
    AGENT_SCHEDULER_PROBE_TIMEOUT_SECONDS: Health probe timeout (default: 10.0)
    AGENT_SCHEDULER_SEND_TIMEOUT_SECONDS: Update send timeout (default: 30.0)
    AGENT_SCHEDULER_HISTORY_SIZE: Update history capacity (default: 1000)
    AGENT_SCHEDULER_PROPOSALS_LIMIT: Recent proposals to request (default: 5)
    AGENT_SCHEDULER_BASE_INTERVAL_MS: Adaptive interval base (default: 300000)
    AGENT_SCHEDULER_MIN_INTERVAL_MS: Adaptive interval floor (default: 60000)
    AGENT_SCHEDULER_MAX_INTERVAL_MS: Adaptive interval ceiling (default: 900000)
    AGENT_SCHEDULER_SHUFFLE_SEED: Seed for the random ordering (default: unseeded)
    AGENT_SCHEDULER_HEALTH_CHECK_EACH_CYCLE: "false" to probe only at start
"""

import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv

from agent_scheduler.priority.models import SortingCriteria
from agent_scheduler.scheduler.errors import ConfigurationError

ENV_PREFIX = "AGENT_SCHEDULER_"

DEFAULT_UPDATE_INTERVAL_MS = 300_000
DEFAULT_MAX_BATCH_SIZE = 10
DEFAULT_MIN_INTERVAL_MS = 60_000
DEFAULT_MAX_INTERVAL_MS = 900_000


def parse_sorting_criteria(value: "str | SortingCriteria") -> SortingCriteria:
    """
    Coerce a strategy name to SortingCriteria.

    Raises:
        ConfigurationError: If the name is not one of the five strategies
    """
    if isinstance(value, SortingCriteria):
        return value
    try:
        return SortingCriteria(str(value).strip().lower())
    except ValueError:
        valid = ", ".join(c.value for c in SortingCriteria)
        raise ConfigurationError(
            f"Unknown sorting criteria: {value!r}. Valid options: {valid}"
        ) from None


@dataclass
class SchedulerSettings:
    """
    Configuration for the agent update scheduler.

    Attributes:
        oracle_process_id: Registry address to query
        update_interval_ms: Initial tick period; later overridden adaptively
        max_batch_size: Concurrent-dispatch ceiling per batch
        sorting_criteria: Ordering strategy
        batch_delay_seconds: Pause between consecutive batches
        probe_timeout_seconds: Per-probe timeout (None = no timeout)
        send_timeout_seconds: Per-send timeout (None = no timeout)
        history_size: Update history ring buffer capacity
        proposals_limit: Recent proposals requested per refresh
        base_interval_ms: Adaptive interval base
        min_interval_ms: Adaptive interval floor
        max_interval_ms: Adaptive interval ceiling
        shuffle_seed: Seed for the random ordering (None = nondeterministic)
        health_check_each_cycle: Probe agent health at the start of every cycle
    """
    oracle_process_id: str | None = None
    update_interval_ms: int = DEFAULT_UPDATE_INTERVAL_MS
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    sorting_criteria: SortingCriteria = SortingCriteria.ACTIVITY
    batch_delay_seconds: float = 2.0
    probe_timeout_seconds: float | None = 10.0
    send_timeout_seconds: float | None = 30.0
    history_size: int = 1000
    proposals_limit: int = 5
    base_interval_ms: int = DEFAULT_UPDATE_INTERVAL_MS
    min_interval_ms: int = DEFAULT_MIN_INTERVAL_MS
    max_interval_ms: int = DEFAULT_MAX_INTERVAL_MS
    shuffle_seed: int | None = None
    health_check_each_cycle: bool = True

    def __post_init__(self) -> None:
        self.sorting_criteria = parse_sorting_criteria(self.sorting_criteria)

    def validate(self, require_oracle: bool = True) -> "SchedulerSettings":
        """
        Check the settings for consistency.

        Args:
            require_oracle: Whether a missing oracle_process_id is an error

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: On the first invalid field
        """
        if require_oracle and not self.oracle_process_id:
            raise ConfigurationError("Oracle process ID is required")
        if self.update_interval_ms <= 0:
            raise ConfigurationError(
                f"update_interval_ms must be positive, got {self.update_interval_ms}"
            )
        if self.max_batch_size < 1:
            raise ConfigurationError(
                f"max_batch_size must be at least 1, got {self.max_batch_size}"
            )
        if self.batch_delay_seconds < 0:
            raise ConfigurationError("batch_delay_seconds cannot be negative")
        if self.history_size < 1:
            raise ConfigurationError("history_size must be at least 1")
        if not 0 < self.min_interval_ms <= self.max_interval_ms:
            raise ConfigurationError(
                f"Interval bounds are inconsistent: "
                f"min={self.min_interval_ms}, max={self.max_interval_ms}"
            )
        return self

    def with_overrides(self, **overrides) -> "SchedulerSettings":
        """Copy with some fields replaced."""
        return replace(self, **overrides)


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _optional_float(value: str | None, default: float | None) -> float | None:
    if value is None:
        return default
    if value.strip().lower() in ("", "none", "off"):
        return None
    return float(value)


def settings_from_env(dotenv_path: str | None = None) -> SchedulerSettings:
    """
    Create SchedulerSettings from environment variables.

    Args:
        dotenv_path: Explicit .env file (default: search from the working directory)

    Raises:
        ConfigurationError: If a variable cannot be parsed
    """
    load_dotenv(dotenv_path)

    try:
        seed = _env("SHUFFLE_SEED")
        return SchedulerSettings(
            oracle_process_id=_env("ORACLE_PROCESS_ID"),
            update_interval_ms=int(_env("UPDATE_INTERVAL_MS", str(DEFAULT_UPDATE_INTERVAL_MS))),
            max_batch_size=int(_env("MAX_BATCH_SIZE", str(DEFAULT_MAX_BATCH_SIZE))),
            sorting_criteria=parse_sorting_criteria(_env("SORTING_CRITERIA", "activity")),
            batch_delay_seconds=float(_env("BATCH_DELAY_SECONDS", "2.0")),
            probe_timeout_seconds=_optional_float(_env("PROBE_TIMEOUT_SECONDS"), 10.0),
            send_timeout_seconds=_optional_float(_env("SEND_TIMEOUT_SECONDS"), 30.0),
            history_size=int(_env("HISTORY_SIZE", "1000")),
            proposals_limit=int(_env("PROPOSALS_LIMIT", "5")),
            base_interval_ms=int(_env("BASE_INTERVAL_MS", str(DEFAULT_UPDATE_INTERVAL_MS))),
            min_interval_ms=int(_env("MIN_INTERVAL_MS", str(DEFAULT_MIN_INTERVAL_MS))),
            max_interval_ms=int(_env("MAX_INTERVAL_MS", str(DEFAULT_MAX_INTERVAL_MS))),
            shuffle_seed=int(seed) if seed else None,
            health_check_each_cycle=(
                _env("HEALTH_CHECK_EACH_CYCLE", "true").lower() != "false"
            ),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid scheduler environment: {e}") from e
