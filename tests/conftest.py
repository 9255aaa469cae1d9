import pytest

from agent_scheduler.capabilities import (
    InMemoryActivityIndex,
    InMemoryAgentNetwork,
    InMemoryRegistry,
)
from agent_scheduler.clock import DAY_MS
from agent_scheduler.history import UpdateHistory
from agent_scheduler.scheduler import SchedulerSettings

# 2026-01-01T00:00:00Z
START_MS = 1_767_225_600_000


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def agents():
    return [f"agent-{i}" for i in range(1, 6)]


@pytest.fixture
def registry(agents):
    return InMemoryRegistry(
        agents=agents,
        status={"activeProposals": 2, "recentActivity": "moderate"},
        proposals=[
            {"id": 7, "title": "Fund the archive", "category": "treasury", "status": "active"},
            {"id": 6, "title": "Rename the council", "category": "governance", "status": "passed"},
        ],
    )


@pytest.fixture
def network():
    return InMemoryAgentNetwork()


@pytest.fixture
def activity(agents, clock):
    return InMemoryActivityIndex({
        address: {
            "lastActivity": clock.now - DAY_MS // 2,
            "memoryCount": 4,
            "journalCount": 1,
            "maxSequence": i,
            "totalTransactions": 5,
        }
        for i, address in enumerate(agents, start=1)
    })


@pytest.fixture
def history():
    return UpdateHistory()


@pytest.fixture
def settings():
    return SchedulerSettings(
        oracle_process_id="oracle-1",
        batch_delay_seconds=0,
        probe_timeout_seconds=1.0,
        send_timeout_seconds=1.0,
        shuffle_seed=42,
    )
