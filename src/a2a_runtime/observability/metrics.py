"""Prometheus metrics for task orchestration and push delivery.

This module tracks event folding, rejected state transitions, event queue
overflows and webhook delivery outcomes.
"""

from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, generate_latest

task_events_total = Counter(
    "a2a_task_events_total",
    "Total number of events folded into tasks",
    labelnames=["kind"],
)

task_transitions_rejected_total = Counter(
    "a2a_task_transitions_rejected_total",
    "Total number of status updates rejected as invalid transitions",
)

event_queue_overflows_total = Counter(
    "a2a_event_queue_overflows_total",
    "Total number of events dropped from bounded event queues",
)

live_event_queues = Gauge(
    "a2a_live_event_queues",
    "Number of event queues currently owned by the queue manager",
)

push_delivery_attempts_total = Counter(
    "a2a_push_delivery_attempts_total",
    "Total number of individual webhook POST attempts",
    labelnames=["outcome"],
)

push_deliveries_total = Counter(
    "a2a_push_deliveries_total",
    "Total number of push notifications by final status",
    labelnames=["status"],
)

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


class MetricsCollector:
    """Records runtime metrics and exposes them in Prometheus format."""

    def record_task_event(self, kind: str) -> None:
        """Record an event folded into a task.

        Args:
            kind: Event kind discriminator (status-update, artifact-update, message)

        Example:
            >>> get_metrics_collector().record_task_event("status-update")
        """
        task_events_total.labels(kind=kind).inc()

    def record_rejected_transition(self) -> None:
        """Record a status update rejected by the task state machine."""
        task_transitions_rejected_total.inc()

    def record_queue_overflow(self) -> None:
        """Record an event dropped by a bounded event queue."""
        event_queue_overflows_total.inc()

    def set_live_queues(self, count: int) -> None:
        """Set the number of live event queues."""
        live_event_queues.set(count)

    def record_push_attempt(self, outcome: str) -> None:
        """Record a single webhook POST attempt.

        Args:
            outcome: "success" or "failure"
        """
        push_delivery_attempts_total.labels(outcome=outcome).inc()

    def record_push_delivery(self, status: str) -> None:
        """Record the final outcome of a push notification.

        Args:
            status: "delivered" or "dropped"
        """
        push_deliveries_total.labels(status=status).inc()

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status_code: int,
        duration_seconds: float,
    ) -> None:
        """Record an HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: Request endpoint path
            status_code: HTTP status code
            duration_seconds: Request duration in seconds
        """
        http_requests_total.labels(
            method=method,
            endpoint=endpoint,
            status_code=status_code,
        ).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(
            duration_seconds
        )

    def generate_metrics(self) -> bytes:
        """Generate Prometheus metrics in text exposition format."""
        return generate_latest()


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global MetricsCollector instance.

    Returns:
        Singleton MetricsCollector instance
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector
