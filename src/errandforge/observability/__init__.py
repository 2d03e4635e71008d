"""Observability module for logging, metrics and tracing.

This module provides:
- Structured logging with session IDs
- Prometheus metrics for monitoring
- Span tracing for nested agent and tool executions
"""

from errandforge.observability.logging import get_logger, setup_logging
from errandforge.observability.metrics import MetricsCollector, get_metrics_collector
from errandforge.observability.tracing import Span, Tracer

__all__ = [
    "setup_logging",
    "get_logger",
    "MetricsCollector",
    "get_metrics_collector",
    "Span",
    "Tracer",
]
