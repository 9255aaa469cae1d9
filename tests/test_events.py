import pytest

from agent_scheduler.events import (
    ErrorEvent,
    EventSeverity,
    EventStream,
    SchedulerEventType,
    UpdateCompleteEvent,
    create_error,
    create_log,
    create_severity_filter,
    create_started,
    create_type_filter,
    create_update_complete,
)


def test_update_complete_payload():
    event = create_update_complete(
        total_agents=12, processed_batches=3, success_count=11, error_count=1,
        cycle_timestamp=1000,
    )

    payload = event.to_payload()

    assert isinstance(event, UpdateCompleteEvent)
    assert payload["event_type"] == "cycle.completed"
    assert payload["total_agents"] == 12
    assert payload["processed_batches"] == 3
    assert "11 success, 1 errors" in payload["message"]


def test_error_event_names_exception():
    event = create_error(RuntimeError("registry down"), "Update cycle failed")

    assert isinstance(event, ErrorEvent)
    assert event.severity == EventSeverity.ERROR
    assert event.error_type == "RuntimeError"
    assert event.message == "Update cycle failed: registry down"


def test_publish_respects_filters():
    stream = EventStream()
    everything = stream.subscribe("all")
    lifecycle = stream.subscribe("lifecycle", create_type_filter(SchedulerEventType.STARTED))
    problems = stream.subscribe("problems", create_severity_filter(EventSeverity.WARNING))

    stream.publish(create_started("oracle-1", 300_000))
    stream.publish(create_log(EventSeverity.INFO, "Cycle skipped"))
    stream.publish(create_error(ValueError("bad"), "Tick failed"))

    assert len(everything.drain()) == 3
    assert [e.event_type for e in lifecycle.drain()] == [SchedulerEventType.STARTED]
    assert [e.event_type for e in problems.drain()] == [SchedulerEventType.ERROR]
    assert stream.stats.published == 3
    assert stream.stats.delivered == 5


def test_full_queue_drops_for_that_subscriber_only():
    stream = EventStream()
    small = stream.subscribe("small", max_queue_size=1)
    large = stream.subscribe("large")

    stream.publish(create_log(EventSeverity.INFO, "one"))
    stream.publish(create_log(EventSeverity.INFO, "two"))

    assert small.stats.dropped == 1
    assert small.stats.pending == 1
    assert len(large.drain()) == 2


def test_subscription_limits():
    stream = EventStream(max_subscribers=1)
    stream.subscribe("a")

    with pytest.raises(ValueError):
        stream.subscribe("a")
    with pytest.raises(ValueError):
        stream.subscribe("b")

    assert stream.unsubscribe("a")
    assert not stream.unsubscribe("a")
    assert stream.subscribe().subscription_id == "subscriber-1"


@pytest.mark.asyncio
async def test_async_iteration_ends_on_close():
    stream = EventStream()
    subscription = stream.subscribe("host")
    stream.publish(create_log(EventSeverity.INFO, "first"))
    stream.publish(create_log(EventSeverity.INFO, "second"))
    stream.close_all()

    messages = [event.message async for event in subscription]

    assert messages == ["first", "second"]
    assert subscription.is_closed
    assert await subscription.next_event(timeout=0.01) is None
