"""Span-based tracing for nested agent and tool executions.

This module records the causal and timing relationships of an errand run:
the dispatcher opens a root span per work item, agents open child spans
for their execution and tool calls nest below those. Traces can be
inspected as flat lists, as a hierarchy, or rendered as a text diagram.
"""

import copy
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterator, Optional

from errandforge.observability.logging import get_logger

logger = get_logger(__name__)

# Context variable holding the span that new spans nest under by default
current_span_id: ContextVar[Optional[str]] = ContextVar("current_span_id", default=None)

_STATUS_GLYPHS = {"running": "⏳", "completed": "✅", "error": "❌"}


@dataclass
class Span:
    """A single timed operation within a trace.

    Attributes:
        span_id: Unique span identifier
        trace_id: Identifier shared by every span of one trace
        name: Operation name (e.g. "dispatch:bill_scan")
        agent_id: Agent (or "dispatcher") that owns the operation
        start_time: Span start timestamp
        parent_span_id: Parent span identifier (None for root spans)
        work_item_id: Work item the operation belongs to
        end_time: Span end timestamp (None while running)
        duration_ms: Duration in milliseconds (None while running)
        status: Span status (running, completed, error)
        metadata: Free-form span attributes
        children: Identifiers of child spans in start order
    """

    span_id: str
    trace_id: str
    name: str
    agent_id: str
    start_time: datetime
    parent_span_id: Optional[str] = None
    work_item_id: Optional[str] = None
    end_time: Optional[datetime] = None
    duration_ms: Optional[float] = None
    status: str = "running"
    metadata: dict[str, Any] = field(default_factory=dict)
    children: list[str] = field(default_factory=list)

    @property
    def is_ended(self) -> bool:
        return self.end_time is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert span to dictionary for serialization.

        Returns:
            Dictionary representation of the span
        """
        return {
            "span_id": self.span_id,
            "parent_span_id": self.parent_span_id,
            "trace_id": self.trace_id,
            "name": self.name,
            "agent_id": self.agent_id,
            "work_item_id": self.work_item_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration_ms": self.duration_ms,
            "status": self.status,
            "metadata": copy.deepcopy(self.metadata),
            "children": list(self.children),
        }


class Tracer:
    """Records spans and their parent/child relationships.

    Spans are kept in memory for the lifetime of the tracer. A span is
    mutable only while running; ending it freezes its timing, status and
    metadata.

    Example:
        >>> tracer = Tracer()
        >>> root = tracer.start_span("dispatch:bill_scan", "dispatcher")
        >>> child = tracer.start_span("bill:bill_scan", "bill-agent", parent_span_id=root)
        >>> tracer.end_span(child)
        >>> tracer.end_span(root)
        >>> print(tracer.render_diagram(tracer.get_span(root).trace_id))
    """

    def __init__(self) -> None:
        self._spans: dict[str, Span] = {}
        self._active: set[str] = set()

    def start_span(
        self,
        name: str,
        agent_id: str,
        work_item_id: Optional[str] = None,
        parent_span_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """Start a new span.

        A span with a known parent joins the parent's trace and is appended
        to its children; otherwise it starts a new trace.

        Args:
            name: Operation name
            agent_id: Owner of the operation
            work_item_id: Work item the operation belongs to
            parent_span_id: Parent span, None for a root span
            metadata: Initial span attributes

        Returns:
            Identifier of the new span
        """
        parent = self._spans.get(parent_span_id) if parent_span_id else None
        if parent_span_id and parent is None:
            logger.warning("span_parent_not_found", parent_span_id=parent_span_id, name=name)

        span = Span(
            span_id=f"span-{uuid.uuid4().hex[:12]}",
            trace_id=parent.trace_id if parent else f"trace-{uuid.uuid4().hex[:12]}",
            name=name,
            agent_id=agent_id,
            start_time=datetime.now(timezone.utc),
            parent_span_id=parent.span_id if parent else None,
            work_item_id=work_item_id,
            metadata=dict(metadata or {}),
        )
        self._spans[span.span_id] = span
        self._active.add(span.span_id)
        if parent is not None:
            parent.children.append(span.span_id)

        logger.debug("span_started", span_id=span.span_id, name=name, trace_id=span.trace_id)
        return span.span_id

    def end_span(
        self,
        span_id: str,
        status: str = "completed",
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        """End a running span.

        Unknown or already-ended spans are logged as a warning and left
        untouched.

        Args:
            span_id: Span to end
            status: Final status (completed, error)
            metadata: Attributes merged into the span metadata
        """
        span = self._spans.get(span_id)
        if span is None:
            logger.warning("span_not_found", span_id=span_id)
            return
        if span.is_ended:
            logger.warning("span_already_ended", span_id=span_id, name=span.name)
            return

        span.end_time = datetime.now(timezone.utc)
        span.duration_ms = (span.end_time - span.start_time).total_seconds() * 1000
        span.status = status
        if metadata:
            span.metadata.update(metadata)
        self._active.discard(span_id)

        logger.debug(
            "span_ended",
            span_id=span_id,
            name=span.name,
            duration_ms=round(span.duration_ms, 3),
            status=status,
        )

    def add_span_metadata(self, span_id: str, metadata: dict[str, Any]) -> None:
        """Merge attributes into a running span."""
        span = self._spans.get(span_id)
        if span is None or span.is_ended:
            logger.warning("span_metadata_ignored", span_id=span_id)
            return
        span.metadata.update(metadata)

    def get_span(self, span_id: str) -> Optional[Span]:
        """Get a copy of a span by id, None if unknown."""
        span = self._spans.get(span_id)
        return copy.deepcopy(span) if span else None

    def get_trace(self, trace_id: str) -> list[Span]:
        """Get every span of a trace in start order."""
        return [copy.deepcopy(s) for s in self._spans.values() if s.trace_id == trace_id]

    def get_root_spans(self) -> list[Span]:
        """Get every span without a parent."""
        return [copy.deepcopy(s) for s in self._spans.values() if s.parent_span_id is None]

    def get_active_spans(self) -> list[Span]:
        """Get every span that has not been ended yet."""
        return [copy.deepcopy(self._spans[span_id]) for span_id in self._active]

    def get_trace_hierarchy(self, trace_id: str) -> Optional[dict[str, Any]]:
        """Build the nested span tree of a trace.

        Args:
            trace_id: Trace to build

        Returns:
            Root span dictionary whose "children" hold nested span
            dictionaries, or None if the trace has no root span
        """
        root = self._find_root(trace_id)
        if root is None:
            return None
        return self._to_tree(root)

    def render_diagram(self, trace_id: str) -> str:
        """Render a trace as an indented text diagram.

        Each span is one line: two spaces of indentation per depth, the
        status glyph, the span name, the owning agent and its duration (or
        "running" while the span is open).

        Args:
            trace_id: Trace to render

        Returns:
            Diagram text, or "Trace not found" for an unknown trace
        """
        root = self._find_root(trace_id)
        if root is None:
            return "Trace not found"

        lines: list[str] = []
        self._render(root, 0, lines)
        return "\n".join(lines) + "\n"

    def export(self) -> list[dict[str, Any]]:
        """Export every recorded span as dictionaries."""
        return [span.to_dict() for span in self._spans.values()]

    def clear(self) -> None:
        """Drop every recorded span."""
        self._spans.clear()
        self._active.clear()

    @contextmanager
    def span(
        self,
        name: str,
        agent_id: str,
        work_item_id: Optional[str] = None,
        parent_span_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Iterator[str]:
        """Open a span for the duration of a block.

        The span nests under ``parent_span_id`` or, when omitted, under the
        current span of this context. While the block runs the new span is
        the current one. The span ends ``completed`` on normal exit and
        ``error`` (with the exception message) when the block raises; the
        exception propagates.

        Example:
            >>> with tracer.span("tool:email_scanner", "bill-agent") as span_id:
            ...     tracer.add_span_metadata(span_id, {"emails": 3})
        """
        span_id = self.start_span(
            name,
            agent_id,
            work_item_id=work_item_id,
            parent_span_id=parent_span_id or current_span_id.get(),
            metadata=metadata,
        )
        token = current_span_id.set(span_id)
        try:
            yield span_id
        except BaseException as exc:
            self.end_span(span_id, "error", {"error": str(exc)})
            raise
        else:
            self.end_span(span_id, "completed")
        finally:
            current_span_id.reset(token)

    def _find_root(self, trace_id: str) -> Optional[Span]:
        for span in self._spans.values():
            if span.trace_id == trace_id and span.parent_span_id is None:
                return span
        return None

    def _to_tree(self, span: Span) -> dict[str, Any]:
        node = span.to_dict()
        node["children"] = [
            self._to_tree(self._spans[child]) for child in span.children if child in self._spans
        ]
        return node

    def _render(self, span: Span, depth: int, lines: list[str]) -> None:
        duration = f"{span.duration_ms:.1f}ms" if span.duration_ms is not None else "running"
        glyph = _STATUS_GLYPHS.get(span.status, "?")
        lines.append(f"{'  ' * depth}{glyph} {span.name} ({span.agent_id}) - {duration}")
        for child in span.children:
            if child in self._spans:
                self._render(self._spans[child], depth + 1, lines)
