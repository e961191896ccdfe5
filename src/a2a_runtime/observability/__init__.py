"""Observability for the A2A runtime.

This module provides:
- Structured logging with correlation IDs
- Prometheus metrics for task events, queues and push delivery
"""

from a2a_runtime.observability.logging import get_logger, setup_logging
from a2a_runtime.observability.metrics import MetricsCollector, get_metrics_collector

__all__ = [
    "setup_logging",
    "get_logger",
    "MetricsCollector",
    "get_metrics_collector",
]
