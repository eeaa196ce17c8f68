"""Event bus and pipeline metrics."""
from mitr.pipeline.events import (
    EventType, PipelineEventBus, PipelineMetrics, RequestCompletedEvent, RequestFailedEvent,
    RequestStartedEvent, StageDegradedEvent,
)


def test_subscribers_receive_events():
    bus = PipelineEventBus()
    seen, everything = [], []
    bus.subscribe(EventType.REQUEST_STARTED, seen.append)
    bus.subscribe_all(everything.append)

    bus.emit(RequestStartedEvent("r1", "fast", ["text"]))
    bus.emit(StageDegradedEvent("r1", "context_management", "ModelCallError", "timeout"))

    assert [e.event_type for e in seen] == [EventType.REQUEST_STARTED]
    assert len(everything) == 2
    assert seen[0].data == {"flow": "fast", "modalities": ["text"]}


def test_failing_handler_does_not_break_emit():
    bus = PipelineEventBus()
    received = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe_all(broken)
    bus.subscribe_all(received.append)
    bus.emit(RequestStartedEvent("r1", "fast"))
    assert len(received) == 1


def test_unsubscribe_and_clear():
    bus = PipelineEventBus()
    received = []
    bus.subscribe(EventType.REQUEST_STARTED, received.append)
    bus.unsubscribe(EventType.REQUEST_STARTED, received.append)
    bus.emit(RequestStartedEvent("r1", "fast"))
    assert received == []

    bus.subscribe_all(received.append)
    bus.clear_handlers()
    bus.emit(RequestStartedEvent("r1", "fast"))
    assert received == []


def test_metrics_counts_and_stats():
    metrics = PipelineMetrics()
    metrics.handle_event(RequestStartedEvent("r1", "fast"))
    metrics.handle_event(RequestCompletedEvent("r1", "fast", 100.0))
    metrics.handle_event(RequestCompletedEvent("r2", "fast", 0.0, cache_hit=True))
    metrics.handle_event(RequestFailedEvent("r3", "fast", 300.0, "response_generation", "ModelCallError", "x"))

    snapshot = metrics.get_metrics()
    assert snapshot["requests_started"] == 1
    assert snapshot["requests_completed"] == 2
    assert snapshot["requests_failed"] == 1

    stats = metrics.get_stats("fast")
    assert stats["total_operations"] == 3
    assert stats["fastest_time_ms"] == 0.0
    assert stats["slowest_time_ms"] == 300.0
    assert round(stats["success_rate"], 1) == 66.7
    assert round(stats["cache_hit_rate"], 1) == 33.3


def test_empty_stats():
    assert PipelineMetrics().get_stats()["total_operations"] == 0


def test_trends_need_ten_records():
    metrics = PipelineMetrics()
    for duration in (500, 500, 500, 500, 500):
        metrics.record("fast", duration, True)
    assert metrics.get_trends()["improving"] is False

    for duration in (100, 100, 100, 100, 100):
        metrics.record("fast", duration, True)
    trends = metrics.get_trends()
    assert trends["improving"] is True
    assert trends["recent_average_ms"] == 100
    assert trends["previous_average_ms"] == 500


def test_history_is_bounded():
    metrics = PipelineMetrics(max_records=3)
    for i in range(5):
        metrics.record("fast", i, True)
    assert metrics.get_stats()["total_operations"] == 3
    metrics.reset()
    assert metrics.get_stats()["total_operations"] == 0
