"""Tests for span tracing."""

import time

import pytest

from errandforge.observability.tracing import Tracer, current_span_id


class TestTracerSpans:
    """Tests for span lifecycle."""

    def test_root_span_starts_new_trace(self, tracer: Tracer) -> None:
        """A span without parent should start its own trace."""
        first = tracer.start_span("dispatch:bill_scan", "dispatcher")
        second = tracer.start_span("dispatch:bill_scan", "dispatcher")

        assert tracer.get_span(first).trace_id != tracer.get_span(second).trace_id
        assert tracer.get_span(first).parent_span_id is None
        assert tracer.get_span(first).status == "running"

    def test_child_joins_parent_trace(self, tracer: Tracer) -> None:
        """A child span should share the trace and be listed in the parent."""
        root = tracer.start_span("dispatch:bill_scan", "dispatcher")
        child = tracer.start_span("bill:bill_scan", "bill-agent", parent_span_id=root)

        assert tracer.get_span(child).trace_id == tracer.get_span(root).trace_id
        assert tracer.get_span(child).parent_span_id == root
        assert tracer.get_span(root).children == [child]

    def test_unknown_parent_becomes_root(self, tracer: Tracer) -> None:
        """A span whose parent is unknown should become a new root."""
        span_id = tracer.start_span("orphan", "bill-agent", parent_span_id="span-missing")
        assert tracer.get_span(span_id).parent_span_id is None

    def test_duration_matches_timestamps(self, tracer: Tracer) -> None:
        """Duration should equal end minus start in milliseconds."""
        span_id = tracer.start_span("tool:email_scanner", "bill-agent")
        time.sleep(0.01)
        tracer.end_span(span_id)

        span = tracer.get_span(span_id)
        expected = (span.end_time - span.start_time).total_seconds() * 1000
        assert span.duration_ms == pytest.approx(expected)
        assert span.duration_ms >= 10
        assert span.status == "completed"

    def test_ended_span_is_immutable(self, tracer: Tracer) -> None:
        """Ending twice or adding metadata after the end should be ignored."""
        span_id = tracer.start_span("tool:payment", "bill-agent")
        tracer.end_span(span_id, "error", {"error": "declined"})
        ended = tracer.get_span(span_id)

        tracer.end_span(span_id, "completed")
        tracer.add_span_metadata(span_id, {"late": True})

        span = tracer.get_span(span_id)
        assert span.status == "error"
        assert span.end_time == ended.end_time
        assert span.metadata == {"error": "declined"}

    def test_get_span_returns_copy(self, tracer: Tracer) -> None:
        """Mutating a returned span should not change the tracer."""
        span_id = tracer.start_span("dispatch:bill_scan", "dispatcher")
        tracer.get_span(span_id).metadata["x"] = 1
        assert tracer.get_span(span_id).metadata == {}

    def test_active_and_root_spans(self, tracer: Tracer) -> None:
        """Active spans should drop out once ended."""
        root = tracer.start_span("dispatch:bill_scan", "dispatcher")
        child = tracer.start_span("bill:bill_scan", "bill-agent", parent_span_id=root)
        tracer.end_span(child)

        assert [s.span_id for s in tracer.get_active_spans()] == [root]
        assert [s.span_id for s in tracer.get_root_spans()] == [root]

    def test_unknown_span_lookups(self, tracer: Tracer) -> None:
        """Unknown ids should give None or be ignored."""
        assert tracer.get_span("span-missing") is None
        tracer.end_span("span-missing")
        assert tracer.export() == []


class TestSpanContextManager:
    """Tests for Tracer.span."""

    def test_nests_under_current_span(self, tracer: Tracer) -> None:
        """Nested blocks should form a parent/child chain."""
        with tracer.span("bill:bill_scan", "bill-agent") as outer:
            assert current_span_id.get() == outer
            with tracer.span("tool:email_scanner", "bill-agent") as inner:
                pass

        assert tracer.get_span(inner).parent_span_id == outer
        assert tracer.get_span(outer).status == "completed"
        assert current_span_id.get() is None

    def test_error_ends_span_and_propagates(self, tracer: Tracer) -> None:
        """An exception should end the span with error and re-raise."""
        with pytest.raises(RuntimeError, match="mailbox down"):
            with tracer.span("tool:email_scanner", "bill-agent") as span_id:
                raise RuntimeError("mailbox down")

        span = tracer.get_span(span_id)
        assert span.status == "error"
        assert span.metadata["error"] == "mailbox down"
        assert span.is_ended


class TestTraceViews:
    """Tests for hierarchy and diagram rendering."""

    def _build(self, tracer: Tracer) -> str:
        root = tracer.start_span("dispatch:bill_scan", "dispatcher")
        agent = tracer.start_span("bill:bill_scan", "bill-agent", parent_span_id=root)
        tool = tracer.start_span("tool:email_scanner", "bill-agent", parent_span_id=agent)
        tracer.end_span(tool)
        tracer.end_span(agent, "error")
        return tracer.get_span(root).trace_id

    def test_hierarchy(self, tracer: Tracer) -> None:
        """The hierarchy should nest children under their parents."""
        trace_id = self._build(tracer)

        tree = tracer.get_trace_hierarchy(trace_id)

        assert tree["name"] == "dispatch:bill_scan"
        assert tree["children"][0]["name"] == "bill:bill_scan"
        assert tree["children"][0]["children"][0]["name"] == "tool:email_scanner"
        assert len(tracer.get_trace(trace_id)) == 3

    def test_diagram_indentation(self, tracer: Tracer) -> None:
        """Each depth level should add two spaces of indentation."""
        trace_id = self._build(tracer)

        lines = tracer.render_diagram(trace_id).splitlines()

        assert len(lines) == 3
        assert lines[0].startswith("⏳ dispatch:bill_scan (dispatcher) - running")
        assert lines[1].startswith("  ❌ bill:bill_scan (bill-agent) - ")
        assert lines[1].endswith("ms")
        assert lines[2].startswith("    ✅ tool:email_scanner (bill-agent) - ")

    def test_unknown_trace(self, tracer: Tracer) -> None:
        """Unknown traces should render a placeholder."""
        assert tracer.render_diagram("trace-missing") == "Trace not found"
        assert tracer.get_trace_hierarchy("trace-missing") is None

    def test_export_and_clear(self, tracer: Tracer) -> None:
        """Export should serialize every span; clear should drop them."""
        self._build(tracer)

        exported = tracer.export()
        assert {span["name"] for span in exported} == {
            "dispatch:bill_scan",
            "bill:bill_scan",
            "tool:email_scanner",
        }
        assert all(isinstance(span["start_time"], str) for span in exported)

        tracer.clear()
        assert tracer.export() == []
        assert tracer.get_active_spans() == []
