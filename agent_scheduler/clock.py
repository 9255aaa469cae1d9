"""Wall-clock helpers. All scheduler timestamps are epoch milliseconds."""

import time
from datetime import datetime, timezone
from typing import Callable

# Returns the current time in epoch milliseconds
Clock = Callable[[], int]

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def epoch_ms() -> int:
    return int(time.time() * 1000)


def ms_to_iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()
