# Update History
# Bounded log of dispatch attempts with per-agent last-seen lookups

from agent_scheduler.history.store import (
    DEFAULT_MAX_RECORDS,
    HistoryAnalytics,
    UpdateHistory,
    UpdateRecord,
    UpdateStatus,
)

__all__ = [
    "DEFAULT_MAX_RECORDS",
    "HistoryAnalytics",
    "UpdateHistory",
    "UpdateRecord",
    "UpdateStatus",
]
