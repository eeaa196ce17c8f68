"""
Event-driven observability for the therapeutic pipeline.
"""
import logging
import time
from abc import ABC
from collections import deque
from typing import Dict, Any, List, Callable, Optional, Deque
from dataclasses import dataclass
from enum import Enum

from ..config import METRICS_HISTORY

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of pipeline events."""
    REQUEST_STARTED = "request_started"
    STAGE_COMPLETED = "stage_completed"
    STAGE_DEGRADED = "stage_degraded"
    STAGE_SKIPPED = "stage_skipped"
    REQUEST_COMPLETED = "request_completed"
    REQUEST_FAILED = "request_failed"
    CRITICAL_RISK_DETECTED = "critical_risk_detected"
    CACHE_HIT = "cache_hit"


@dataclass
class PipelineEvent(ABC):
    """Base class for all pipeline events."""
    event_type: EventType
    request_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class RequestStartedEvent(PipelineEvent):
    """Event fired when a flow begins processing a request."""
    def __init__(self, request_id: str, flow: str, modalities: Optional[List[str]] = None):
        super().__init__(
            event_type=EventType.REQUEST_STARTED,
            request_id=request_id,
            timestamp=time.time(),
            data={"flow": flow, "modalities": modalities or []}
        )


@dataclass
class StageCompletedEvent(PipelineEvent):
    """Event fired when a pipeline stage finishes successfully."""
    def __init__(self, request_id: str, stage: str, duration_ms: float):
        super().__init__(
            event_type=EventType.STAGE_COMPLETED,
            request_id=request_id,
            timestamp=time.time(),
            data={"stage": stage, "duration_ms": duration_ms}
        )


@dataclass
class StageDegradedEvent(PipelineEvent):
    """Event fired when a stage failed and defaults were substituted."""
    def __init__(self, request_id: str, stage: str, error_type: str, error_message: str):
        super().__init__(
            event_type=EventType.STAGE_DEGRADED,
            request_id=request_id,
            timestamp=time.time(),
            data={
                "stage": stage,
                "error_type": error_type,
                "error_message": error_message
            }
        )


@dataclass
class StageSkippedEvent(PipelineEvent):
    """Event fired when a stage is skipped because its input is absent."""
    def __init__(self, request_id: str, stage: str, reason: str):
        super().__init__(
            event_type=EventType.STAGE_SKIPPED,
            request_id=request_id,
            timestamp=time.time(),
            data={"stage": stage, "reason": reason}
        )


@dataclass
class RequestCompletedEvent(PipelineEvent):
    """Event fired when a flow returns its result."""
    def __init__(self, request_id: str, flow: str, duration_ms: float,
                 risk_level: Optional[str] = None, cache_hit: bool = False):
        super().__init__(
            event_type=EventType.REQUEST_COMPLETED,
            request_id=request_id,
            timestamp=time.time(),
            data={
                "flow": flow,
                "duration_ms": duration_ms,
                "risk_level": risk_level,
                "cache_hit": cache_hit
            }
        )


@dataclass
class RequestFailedEvent(PipelineEvent):
    """Event fired when a flow raises."""
    def __init__(self, request_id: str, flow: str, duration_ms: float, stage: Optional[str],
                 error_type: str, error_message: str):
        super().__init__(
            event_type=EventType.REQUEST_FAILED,
            request_id=request_id,
            timestamp=time.time(),
            data={
                "flow": flow,
                "duration_ms": duration_ms,
                "stage": stage,
                "error_type": error_type,
                "error_message": error_message
            }
        )


@dataclass
class CriticalRiskDetectedEvent(PipelineEvent):
    """Event fired when the authoritative risk level requires an immediate alert."""
    def __init__(self, request_id: str, risk_level: str, concerns: List[str], source: str):
        super().__init__(
            event_type=EventType.CRITICAL_RISK_DETECTED,
            request_id=request_id,
            timestamp=time.time(),
            data={
                "risk_level": risk_level,
                "concerns": concerns,
                "source": source
            }
        )


@dataclass
class CacheHitEvent(PipelineEvent):
    """Event fired when a flow result is served from the analysis cache."""
    def __init__(self, request_id: str, flow: str, cache_key: str):
        super().__init__(
            event_type=EventType.CACHE_HIT,
            request_id=request_id,
            timestamp=time.time(),
            data={"flow": flow, "cache_key": cache_key}
        )


EventHandler = Callable[[PipelineEvent], None]


class PipelineEventBus:
    """Event bus for pipeline communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from specific event type."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: PipelineEvent) -> None:
        """
        Emit an event to all subscribers.

        A failing handler is logged and never breaks the request.
        """
        logger.debug(f"Emitting event: {event.event_type} for request {event.request_id}")

        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: PipelineEvent) -> None:
        """Log event details."""
        level = logging.INFO
        if event.event_type in (EventType.STAGE_DEGRADED, EventType.CRITICAL_RISK_DETECTED):
            level = logging.WARNING
        elif event.event_type == EventType.REQUEST_FAILED:
            level = logging.ERROR
        self.logger.log(level, f"Event: {event.event_type.value} | Request: {event.request_id} | Data: {event.data}")


@dataclass
class PerformanceRecord:
    """One timed operation."""
    operation: str
    duration_ms: float
    success: bool
    cache_hit: bool = False


class PipelineMetrics:
    """Collects counters and flow timings from pipeline events."""

    def __init__(self, max_records: int = METRICS_HISTORY):
        self.max_records = max_records
        self.records: Deque[PerformanceRecord] = deque(maxlen=max_records)
        self.reset()

    def handle_event(self, event: PipelineEvent) -> None:
        """Update metrics based on event."""
        data = event.data
        if event.event_type == EventType.REQUEST_STARTED:
            self.requests_started += 1
        elif event.event_type == EventType.REQUEST_COMPLETED:
            self.requests_completed += 1
            self.record(data["flow"], data["duration_ms"], True, data.get("cache_hit", False))
        elif event.event_type == EventType.REQUEST_FAILED:
            self.requests_failed += 1
            self.record(data["flow"], data["duration_ms"], False)
        elif event.event_type == EventType.STAGE_COMPLETED:
            self.record(f"stage:{data['stage']}", data["duration_ms"], True)
        elif event.event_type == EventType.STAGE_DEGRADED:
            self.stages_degraded += 1
        elif event.event_type == EventType.STAGE_SKIPPED:
            self.stages_skipped += 1
        elif event.event_type == EventType.CRITICAL_RISK_DETECTED:
            self.critical_alerts += 1
        elif event.event_type == EventType.CACHE_HIT:
            self.cache_hits += 1

    def record(self, operation: str, duration_ms: float, success: bool, cache_hit: bool = False) -> None:
        self.records.append(PerformanceRecord(operation, float(duration_ms), success, cache_hit))

    def get_stats(self, operation: Optional[str] = None) -> Dict[str, float]:
        """Timing statistics, optionally for one operation."""
        relevant = [r for r in self.records if operation is None or r.operation == operation]
        if not relevant:
            return {
                "total_operations": 0,
                "average_time_ms": 0.0,
                "success_rate": 0.0,
                "cache_hit_rate": 0.0,
                "fastest_time_ms": 0.0,
                "slowest_time_ms": 0.0,
            }
        durations = [r.duration_ms for r in relevant]
        return {
            "total_operations": len(relevant),
            "average_time_ms": sum(durations) / len(durations),
            "success_rate": 100.0 * sum(1 for r in relevant if r.success) / len(relevant),
            "cache_hit_rate": 100.0 * sum(1 for r in relevant if r.cache_hit) / len(relevant),
            "fastest_time_ms": min(durations),
            "slowest_time_ms": max(durations),
        }

    def get_trends(self) -> Dict[str, Any]:
        """Compare the newer half of the records with the older half."""
        if len(self.records) < 10:
            return {"improving": False, "recent_average_ms": 0.0, "previous_average_ms": 0.0}
        records = list(self.records)
        half = len(records) // 2
        recent = records[-half:]
        previous = records[:half]
        recent_avg = sum(r.duration_ms for r in recent) / len(recent)
        previous_avg = sum(r.duration_ms for r in previous) / len(previous)
        return {
            "improving": recent_avg < previous_avg,
            "recent_average_ms": recent_avg,
            "previous_average_ms": previous_avg,
        }

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics snapshot."""
        return {
            "requests_started": self.requests_started,
            "requests_completed": self.requests_completed,
            "requests_failed": self.requests_failed,
            "stages_degraded": self.stages_degraded,
            "stages_skipped": self.stages_skipped,
            "critical_alerts": self.critical_alerts,
            "cache_hits": self.cache_hits,
            "performance": self.get_stats(),
            "trends": self.get_trends(),
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.requests_started = 0
        self.requests_completed = 0
        self.requests_failed = 0
        self.stages_degraded = 0
        self.stages_skipped = 0
        self.critical_alerts = 0
        self.cache_hits = 0
        self.records.clear()
