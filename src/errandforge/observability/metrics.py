"""Prometheus metrics collection for monitoring.

This module provides Prometheus metrics for tracking agent executions,
work item outcomes, tool calls, memory usage and message relay.

Each MetricsCollector owns its own CollectorRegistry, so several errand
systems can live in one process (tests, embedded use) without their
metric names clashing in the global default registry.
"""

from typing import Any, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

NAMESPACE = "errandforge"


class MetricsCollector:
    """Collects and exposes Prometheus metrics.

    Provides methods for recording agent executions, work item status
    changes, tool calls, memory operations, relayed messages, payments and
    subscription actions, plus read-back helpers for inspecting values.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """Initialize the collector and register its metrics.

        Args:
            registry: Registry to register metrics in (a fresh one by default)
        """
        self.registry = registry or CollectorRegistry()

        self.agent_executions_total = Counter(
            "agent_executions",
            "Total number of agent executions",
            labelnames=["agent_id", "status"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.agent_execution_duration_seconds = Histogram(
            "agent_execution_duration_seconds",
            "Agent execution duration in seconds",
            labelnames=["agent_id"],
            namespace=NAMESPACE,
            registry=self.registry,
            buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
        )
        self.work_items_total = Counter(
            "work_items",
            "Work items that reached a status, by category",
            labelnames=["category", "status"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.tool_calls_total = Counter(
            "tool_calls",
            "Total number of tool calls",
            labelnames=["tool", "status"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.memory_records_stored_total = Counter(
            "memory_records_stored",
            "Memory records written to the memory store",
            labelnames=["memory_type"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.memory_records_retrieved = Gauge(
            "memory_records_retrieved",
            "Number of memory records returned by the last retrieval",
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.messages_relayed_total = Counter(
            "messages_relayed",
            "Messages consumed by the dispatcher relay",
            labelnames=["message_type"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.payments_total = Counter(
            "payments",
            "Bill payments attempted",
            labelnames=["status"],
            namespace=NAMESPACE,
            registry=self.registry,
        )
        self.subscriptions_total = Counter(
            "subscriptions",
            "Subscription tracking events",
            labelnames=["action"],
            namespace=NAMESPACE,
            registry=self.registry,
        )

    def record_agent_execution(
        self, agent_id: str, status: str, duration_seconds: Optional[float] = None
    ) -> None:
        """Record an agent execution event.

        Args:
            agent_id: Agent identifier
            status: Result status (completed, awaiting_input, failed) or error
            duration_seconds: Execution duration, observed only when given

        Example:
            >>> collector = MetricsCollector()
            >>> collector.record_agent_execution("bill-agent", "completed", 0.02)
        """
        self.agent_executions_total.labels(agent_id=agent_id, status=status).inc()
        if duration_seconds is not None:
            self.agent_execution_duration_seconds.labels(agent_id=agent_id).observe(
                duration_seconds
            )

    def record_work_item(self, category: str, status: str) -> None:
        """Record a work item reaching a status."""
        self.work_items_total.labels(category=category, status=status).inc()

    def record_tool_call(self, tool: str, status: str) -> None:
        """Record a tool call outcome (success, failure)."""
        self.tool_calls_total.labels(tool=tool, status=status).inc()

    def record_memory_stored(self, memory_type: str) -> None:
        """Record a memory record being stored."""
        self.memory_records_stored_total.labels(memory_type=memory_type).inc()

    def set_memory_retrieved(self, count: int) -> None:
        """Set the number of records returned by the last retrieval."""
        self.memory_records_retrieved.set(count)

    def record_message_relayed(self, message_type: str) -> None:
        """Record a message consumed by the relay."""
        self.messages_relayed_total.labels(message_type=message_type).inc()

    def record_payment(self, status: str) -> None:
        """Record a payment attempt (success, failure)."""
        self.payments_total.labels(status=status).inc()

    def record_subscription(self, action: str) -> None:
        """Record a subscription event (added, cancelled, paused, reminded)."""
        self.subscriptions_total.labels(action=action).inc()

    def _samples(self, sample_name: str, labels: dict[str, str]) -> list[float]:
        values = []
        for family in self.registry.collect():
            for sample in family.samples:
                if sample.name != sample_name:
                    continue
                if all(sample.labels.get(key) == value for key, value in labels.items()):
                    values.append(sample.value)
        return values

    def get_counter(self, name: str, **labels: str) -> float:
        """Read a counter value, summed over series matching the given labels.

        Args:
            name: Counter name without namespace or _total suffix
            **labels: Label values to filter on (unspecified labels are summed)

        Returns:
            Counter value, 0.0 if no series matches

        Example:
            >>> collector.get_counter("agent_executions", agent_id="bill-agent")
            1.0
        """
        return float(sum(self._samples(f"{NAMESPACE}_{name}_total", labels)))

    def get_gauge(self, name: str, **labels: str) -> float:
        """Read a gauge value, 0.0 if it has never been set."""
        return float(sum(self._samples(f"{NAMESPACE}_{name}", labels)))

    def get_timing_stats(self, agent_id: Optional[str] = None) -> dict[str, Any]:
        """Summarize agent execution durations.

        Args:
            agent_id: Restrict to one agent (all agents when None)

        Returns:
            Dictionary with count, sum_seconds and avg_seconds
        """
        labels = {"agent_id": agent_id} if agent_id else {}
        base = f"{NAMESPACE}_agent_execution_duration_seconds"
        count = sum(self._samples(f"{base}_count", labels))
        total = sum(self._samples(f"{base}_sum", labels))
        return {
            "count": int(count),
            "sum_seconds": total,
            "avg_seconds": total / count if count else 0.0,
        }

    def generate_metrics(self) -> bytes:
        """Generate Prometheus metrics in text format.

        Returns:
            Metrics in Prometheus exposition format
        """
        return generate_latest(self.registry)


# Singleton instance
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
