"""Base abstract class for all errand agents.

This module defines the BaseAgent abstract class that every agent extends.
It provides the observed-execution wrapper (trace span, metrics and session
state reporting around ``execute``), the agent-local outbox and inbox used
for messaging, and helpers for tool calls and memory access.
"""

import time
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, ValidationError

from errandforge.agents.errors import InvalidWorkItemError
from errandforge.agents.messages import Message, MessageType, PayloadT
from errandforge.agents.results import AgentResult, AgentResultStatus
from errandforge.config import ErrandConfig, get_default_config
from errandforge.memory.models import MemoryRecord, MemoryType
from errandforge.memory.store import MemoryStore
from errandforge.observability.logging import get_logger, session_scope
from errandforge.observability.metrics import MetricsCollector
from errandforge.observability.tracing import Tracer
from errandforge.sessions.models import AgentState, AgentStatus
from errandforge.sessions.store import SessionStore
from errandforge.tasks.models import WorkItem, WorkItemCategory
from errandforge.tools.base import BaseTool, ToolResult

logger = get_logger(__name__)

CategoryHandler = Callable[[WorkItem, str], Awaitable[AgentResult]]


class BaseAgent(ABC):
    """Abstract base class for all errand agents.

    Every agent handles a fixed set of work item categories and talks to
    other agents only through messages. Subclasses define the class
    attributes below and implement ``execute``.

    Class Attributes:
        agent_id: Unique agent identifier (e.g. "bill-agent")
        agent_type: Agent type, selects the memory types visible to the agent
        categories: Work item categories the agent handles

    Example:
        >>> class EchoAgent(BaseAgent):
        ...     agent_id = "echo-agent"
        ...     agent_type = "echo"
        ...     categories = frozenset({WorkItemCategory.DEADLINE_TRACKING})
        ...
        ...     async def execute(self, item, session_id):
        ...         return AgentResult.completed(echo=item.title)
    """

    agent_id: str
    agent_type: str
    categories: frozenset[WorkItemCategory]

    def __init__(
        self,
        memory: MemoryStore,
        sessions: SessionStore,
        tracer: Tracer,
        metrics: MetricsCollector,
        config: Optional[ErrandConfig] = None,
    ) -> None:
        """Initialize the agent with its collaborators.

        Args:
            memory: Long-term memory shared by all agents
            sessions: Session store the agent reports its state to
            tracer: Tracer for execution spans
            metrics: Metrics collector
            config: Configuration (defaults when None)
        """
        self.memory = memory
        self.sessions = sessions
        self.tracer = tracer
        self.metrics = metrics
        self.config = config or get_default_config()
        self._outboxes: dict[str, list[Message]] = defaultdict(list)
        self._inboxes: dict[str, list[Message]] = defaultdict(list)

    @abstractmethod
    async def execute(self, item: WorkItem, session_id: str) -> AgentResult:
        """Execute a work item.

        Args:
            item: Work item of one of the agent's categories
            session_id: Session the work belongs to

        Returns:
            The execution result

        Raises:
            InvalidWorkItemError: If the item's category or request payload is invalid
        """
        pass

    async def execute_with_observability(
        self, item: WorkItem, session_id: str, parent_span_id: Optional[str] = None
    ) -> AgentResult:
        """Execute a work item inside a trace span with state and metrics reporting.

        Reports ``running`` with a compacted memory snapshot, runs
        ``execute``, then reports ``idle`` (or ``waiting`` when the result
        awaits user input). If ``execute`` raises, the agent reports
        ``error``, the span ends with status error and the exception is
        re-raised unchanged.

        Args:
            item: Work item to execute
            session_id: Session the work belongs to
            parent_span_id: Span to nest under (the dispatcher's span)

        Returns:
            The execution result
        """
        started = time.perf_counter()
        span_name = f"{self.agent_type}:{item.category.value}"

        with self.tracer.span(
            span_name, self.agent_id, work_item_id=item.id, parent_span_id=parent_span_id
        ) as span_id:
            snapshot = await self.memory.compact_context_for_agent(
                self.agent_type, self.config.state_snapshot_size
            )
            await self._report_state(session_id, AgentStatus.RUNNING, item, snapshot)

            try:
                result = await self.execute(item, session_id)
            except Exception as exc:
                duration = time.perf_counter() - started
                await self._report_state(
                    session_id, AgentStatus.ERROR, item, snapshot, {"error": str(exc)}
                )
                self.metrics.record_agent_execution(self.agent_id, "error", duration)
                logger.error(
                    "agent_execution_failed",
                    agent_id=self.agent_id,
                    work_item_id=item.id,
                    session_id=session_id,
                    error=str(exc),
                )
                raise

            self.tracer.add_span_metadata(
                span_id, {"result_status": result.status.value, "success": result.success}
            )

        duration = time.perf_counter() - started
        final_status = (
            AgentStatus.WAITING
            if result.status == AgentResultStatus.AWAITING_INPUT
            else AgentStatus.IDLE
        )
        await self._report_state(
            session_id, final_status, item, snapshot, {"result_status": result.status.value}
        )
        self.metrics.record_agent_execution(self.agent_id, result.status.value, duration)

        logger.info(
            "agent_execution_finished",
            agent_id=self.agent_id,
            work_item_id=item.id,
            session_id=session_id,
            status=result.status.value,
            duration_ms=round(duration * 1000, 3),
        )
        return result

    def send_message(
        self,
        session_id: str,
        message_type: MessageType,
        recipient: str,
        payload: Union[BaseModel, dict[str, Any]],
        correlation_id: Optional[str] = None,
    ) -> Message:
        """Append a message to this agent's outbox for a session.

        The message is only delivered when the dispatcher relays the session.

        Returns:
            The queued message
        """
        body = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload)
        message = Message(
            type=message_type,
            sender=self.agent_id,
            recipient=recipient,
            payload=body,
            correlation_id=correlation_id,
        )
        self._outboxes[session_id].append(message)
        logger.debug(
            "message_queued",
            agent_id=self.agent_id,
            session_id=session_id,
            message_type=message_type.value,
            recipient=recipient,
        )
        return message

    def drain_outbox(self, session_id: str) -> list[Message]:
        """Remove and return every queued outgoing message of a session."""
        return self._outboxes.pop(session_id, [])

    def deliver(self, session_id: str, message: Message) -> None:
        """Put a relayed message into this agent's inbox for a session."""
        self._inboxes[session_id].append(message)

    def receive_messages(
        self, session_id: str, message_type: Optional[MessageType] = None
    ) -> list[Message]:
        """Consume inbox messages of a session, optionally only of one type.

        Consumed messages are removed; messages of other types stay queued.
        """
        inbox = self._inboxes.get(session_id, [])
        taken = [m for m in inbox if message_type is None or m.type == message_type]
        remaining = [m for m in inbox if not (message_type is None or m.type == message_type)]
        if remaining:
            self._inboxes[session_id] = remaining
        else:
            self._inboxes.pop(session_id, None)
        return taken

    def discard_session(self, session_id: str) -> int:
        """Drop the inbox and outbox of a session.

        Returns:
            Number of messages dropped
        """
        dropped = self._outboxes.pop(session_id, [])
        dropped += self._inboxes.pop(session_id, [])
        return len(dropped)

    async def call_tool(self, tool: BaseTool, params: dict[str, Any]) -> ToolResult:
        """Call a tool inside a child span and record the outcome.

        A tool reporting ``success=False`` is returned as is.
        """
        with self.tracer.span(f"tool:{tool.name}", self.agent_id) as span_id:
            result = await tool.execute(params)
            self.tracer.add_span_metadata(span_id, {"success": result.success})

        self.metrics.record_tool_call(tool.name, "success" if result.success else "failure")
        if not result.success:
            logger.warning(
                "tool_call_failed", agent_id=self.agent_id, tool=tool.name, error=result.error
            )
        return result

    async def store_memory(
        self,
        memory_type: MemoryType,
        content: Any,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """Store a memory record tagged with this agent as its source."""
        return await self.memory.store(
            memory_type, content, {"agent_id": self.agent_id, **(metadata or {})}
        )

    async def find_memory(
        self, memory_type: MemoryType, content_id: str
    ) -> Optional[MemoryRecord]:
        """Find a record of a type whose content ``id`` matches."""
        return await self.memory.find_by_content_id(memory_type, content_id)

    def parse_request(self, model: type[PayloadT], item: WorkItem) -> PayloadT:
        """Validate a work item's request payload.

        Raises:
            InvalidWorkItemError: If a required key is missing or invalid
        """
        try:
            return model.model_validate(item.metadata)
        except ValidationError as exc:
            raise InvalidWorkItemError(
                f"Invalid {item.category.value} request: {exc.errors()[0]['msg']} "
                f"({'.'.join(str(p) for p in exc.errors()[0]['loc'])})",
                agent_id=self.agent_id,
                work_item_id=item.id,
            ) from exc

    async def _run_category(
        self,
        item: WorkItem,
        session_id: str,
        handlers: dict[WorkItemCategory, CategoryHandler],
    ) -> AgentResult:
        handler = handlers.get(item.category)
        if handler is None:
            raise InvalidWorkItemError(
                f"Agent '{self.agent_id}' does not handle category '{item.category.value}'",
                agent_id=self.agent_id,
                work_item_id=item.id,
            )
        return await handler(item, session_id)

    async def _report_state(
        self,
        session_id: str,
        status: AgentStatus,
        item: WorkItem,
        snapshot: list[MemoryRecord],
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        stored = await self.sessions.update_agent_state(
            session_id,
            AgentState(
                agent_id=self.agent_id,
                status=status,
                current_work_item=item,
                memory_snapshot=snapshot,
                metadata=metadata or {},
            ),
        )
        if not stored:
            logger.warning(
                "agent_state_not_stored", agent_id=self.agent_id, session_id=session_id
            )


class ScanningAgent(BaseAgent):
    """Agent with a periodic scan category that can run on a schedule.

    Class Attributes:
        scan_category: Category run by ``run_periodic_scan``
    """

    scan_category: WorkItemCategory

    async def run_periodic_scan(self) -> Optional[AgentResult]:
        """Run the agent's scan in a fresh session.

        The session is always ended. Messages the scan emitted are written
        to the session log (there is no dispatcher to relay them). Errors
        are logged and reported as a None result so a scheduler keeps going.

        Returns:
            The scan result, or None if the scan failed
        """
        session_id = await self.sessions.create()
        with session_scope(session_id):
            return await self._periodic_scan(session_id)

    async def _periodic_scan(self, session_id: str) -> Optional[AgentResult]:
        item = WorkItem(category=self.scan_category, title=f"Periodic {self.scan_category.value}")
        logger.info("periodic_scan_started", agent_id=self.agent_id)

        try:
            await self.sessions.add_work_item(session_id, item)
            await self.sessions.update_work_item(session_id, item.id, status="in_progress")
            result = await self.execute_with_observability(item, session_id)
            await self.sessions.update_work_item(
                session_id,
                item.id,
                status="completed" if result.success else "failed",
                error=result.error,
            )
            logger.info(
                "periodic_scan_completed",
                agent_id=self.agent_id,
                status=result.status.value,
            )
            return result
        except Exception as exc:
            logger.error(
                "periodic_scan_failed",
                agent_id=self.agent_id,
                error=str(exc),
            )
            return None
        finally:
            for message in self.drain_outbox(session_id):
                await self.sessions.add_message(session_id, message)
            self.discard_session(session_id)
            await self.sessions.end(session_id)
