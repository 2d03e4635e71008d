"""Tests for Prometheus metrics collection."""

from errandforge.observability.metrics import MetricsCollector, get_metrics_collector


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_collectors_are_isolated(self) -> None:
        """Two collectors should not share counter values."""
        first = MetricsCollector()
        second = MetricsCollector()

        first.record_agent_execution("bill-agent", "completed", 0.01)

        assert first.get_counter("agent_executions", agent_id="bill-agent") == 1.0
        assert second.get_counter("agent_executions", agent_id="bill-agent") == 0.0

    def test_counter_filters_by_labels(self, metrics: MetricsCollector) -> None:
        """Counters should be summed over series matching the labels."""
        metrics.record_agent_execution("bill-agent", "completed")
        metrics.record_agent_execution("bill-agent", "failed")
        metrics.record_agent_execution("deadline-agent", "completed")

        assert metrics.get_counter("agent_executions") == 3.0
        assert metrics.get_counter("agent_executions", agent_id="bill-agent") == 2.0
        assert metrics.get_counter("agent_executions", status="completed") == 2.0
        assert (
            metrics.get_counter("agent_executions", agent_id="bill-agent", status="failed")
            == 1.0
        )

    def test_unknown_series_is_zero(self, metrics: MetricsCollector) -> None:
        """Reading a series that never fired should give 0.0."""
        assert metrics.get_counter("tool_calls", tool="email_scanner") == 0.0

    def test_domain_counters(self, metrics: MetricsCollector) -> None:
        """Every record_* helper should increment its counter."""
        metrics.record_work_item("bill_scan", "completed")
        metrics.record_tool_call("email_scanner", "success")
        metrics.record_memory_stored("bill")
        metrics.record_message_relayed("reminder_set")
        metrics.record_payment("success")
        metrics.record_subscription("added")

        assert metrics.get_counter("work_items", category="bill_scan") == 1.0
        assert metrics.get_counter("tool_calls", status="success") == 1.0
        assert metrics.get_counter("memory_records_stored", memory_type="bill") == 1.0
        assert metrics.get_counter("messages_relayed", message_type="reminder_set") == 1.0
        assert metrics.get_counter("payments", status="success") == 1.0
        assert metrics.get_counter("subscriptions", action="added") == 1.0

    def test_retrieval_gauge(self, metrics: MetricsCollector) -> None:
        """The retrieval gauge should hold the last value set."""
        metrics.set_memory_retrieved(4)
        metrics.set_memory_retrieved(2)
        assert metrics.get_gauge("memory_records_retrieved") == 2.0

    def test_timing_stats(self, metrics: MetricsCollector) -> None:
        """Timing stats should aggregate observed durations."""
        metrics.record_agent_execution("bill-agent", "completed", 0.2)
        metrics.record_agent_execution("bill-agent", "completed", 0.4)
        metrics.record_agent_execution("deadline-agent", "completed")

        stats = metrics.get_timing_stats("bill-agent")

        assert stats["count"] == 2
        assert abs(stats["sum_seconds"] - 0.6) < 1e-9
        assert abs(stats["avg_seconds"] - 0.3) < 1e-9
        assert metrics.get_timing_stats("deadline-agent")["avg_seconds"] == 0.0

    def test_generate_metrics(self, metrics: MetricsCollector) -> None:
        """Exposition output should contain namespaced metric names."""
        metrics.record_payment("failure")
        output = metrics.generate_metrics()
        assert isinstance(output, bytes)
        assert b"errandforge_payments_total" in output

    def test_global_collector_is_singleton(self) -> None:
        """get_metrics_collector should return same instance each time."""
        assert get_metrics_collector() is get_metrics_collector()
