"""Dispatcher: routes work items to agents and relays their messages.

The dispatcher is the only component that sees every agent. It resolves
the agent for each work item through the registry, drives the work item
through its lifecycle in the session store, wraps each execution in a
root trace span and, after every execution, relays the messages the
agents emitted.
"""

import asyncio
import time
from collections import defaultdict, deque
from typing import Awaitable, Callable, Optional

from pydantic import ValidationError

from errandforge.agents.base import BaseAgent
from errandforge.agents.errors import (
    ErrandError,
    HandlerFault,
    SessionNotFoundError,
    WorkItemNotFoundError,
    WorkItemStateError,
)
from errandforge.agents.messages import (
    DISPATCHER_ID,
    AgentQueryPayload,
    DeadlineUpcomingPayload,
    FormCompletedPayload,
    Message,
    MessageType,
    PayloadT,
    PaymentRequiredPayload,
    ReminderPayload,
    TaskCompletedPayload,
)
from errandforge.agents.registry import AgentRegistry
from errandforge.agents.results import AgentResult, AgentResultStatus
from errandforge.observability.logging import get_logger, session_scope
from errandforge.observability.metrics import MetricsCollector
from errandforge.observability.tracing import Tracer
from errandforge.orchestration.models import ExecutionOutcome, Notice
from errandforge.sessions.store import SessionStore
from errandforge.tasks.models import WorkItem, WorkItemStatus

logger = get_logger(__name__)

MessageHandler = Callable[[str, Message], Awaitable[None]]


class Dispatcher:
    """Routes work items to agents and relays inter-agent messages.

    Each session has its own live message queue. Relaying drains every
    agent's outbox for the session into that queue, then consumes it:
    messages for a registered agent go to that agent's inbox, everything
    else is handled by the dispatcher's message table. Every relayed
    message is appended to the session log exactly once.

    Example:
        >>> dispatcher = Dispatcher(registry, sessions, tracer, metrics)
        >>> outcome = await dispatcher.execute_one(
        ...     WorkItem(category=WorkItemCategory.BILL_SCAN), session_id
        ... )
        >>> outcome.status
        <WorkItemStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        registry: AgentRegistry,
        sessions: SessionStore,
        tracer: Tracer,
        metrics: MetricsCollector,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            registry: Agents available for routing
            sessions: Session store tracking work item progress
            tracer: Tracer for dispatch spans
            metrics: Metrics collector
        """
        self.registry = registry
        self.sessions = sessions
        self.tracer = tracer
        self.metrics = metrics
        self._queues: dict[str, deque[Message]] = defaultdict(deque)
        self._notices: dict[str, list[Notice]] = defaultdict(list)
        self._awaiting_input: dict[str, set[str]] = defaultdict(set)
        self._message_table: dict[MessageType, MessageHandler] = {
            MessageType.PAYMENT_REQUIRED: self._on_payment_required,
            MessageType.DEADLINE_UPCOMING: self._on_deadline_upcoming,
            MessageType.FORM_COMPLETED: self._on_form_completed,
            MessageType.REMINDER_SET: self._on_reminder_set,
            MessageType.AGENT_QUERY: self._on_agent_query,
            MessageType.TASK_COMPLETED: self._on_task_completed,
        }

    def route(self, item: WorkItem) -> BaseAgent:
        """Select the agent for a work item by its category.

        Raises:
            RoutingError: If no agent handles the category
        """
        return self.registry.get_for_category(item.category)

    async def execute_one(self, item: WorkItem, session_id: str) -> ExecutionOutcome:
        """Execute a single work item.

        The item is added to the session if it is not there yet and moved
        to ``in_progress``. After the agent returns, the item becomes
        ``completed`` or ``failed``; an item awaiting user input stays
        ``in_progress`` until it is resumed. Messages emitted during the
        execution are relayed before returning.

        Args:
            item: Work item to execute
            session_id: Session to run in

        Returns:
            Outcome of the execution

        Raises:
            RoutingError: If no agent handles the category (session untouched)
            SessionNotFoundError: If the session does not exist
            WorkItemStateError: If the item is already finished
            HandlerFault: If the agent raised; the original error is chained
        """
        agent = self.route(item)

        with session_scope(session_id):
            if await self.sessions.get_work_item(session_id, item.id) is None:
                await self.sessions.add_work_item(session_id, item)
            current = await self.sessions.update_work_item(
                session_id,
                item.id,
                status=WorkItemStatus.IN_PROGRESS,
                assigned_agent=agent.agent_id,
            )
            logger.info(
                "work_item_dispatched",
                work_item_id=item.id,
                category=item.category.value,
                agent_id=agent.agent_id,
            )
            return await self._run(agent, current, session_id)

    async def execute_batch_concurrent(
        self, items: list[WorkItem], session_id: str
    ) -> list[ExecutionOutcome]:
        """Execute work items concurrently.

        A failure of one item becomes a failed outcome for that item only;
        this call never raises.

        Returns:
            One outcome per item, in input order
        """
        results = await asyncio.gather(
            *(self.execute_one(item, session_id) for item in items), return_exceptions=True
        )
        outcomes = [
            self._failed_outcome(item, result) if isinstance(result, BaseException) else result
            for item, result in zip(items, results)
        ]
        self._log_batch("concurrent", session_id, outcomes)
        return outcomes

    async def execute_batch_sequential(
        self, items: list[WorkItem], session_id: str
    ) -> list[ExecutionOutcome]:
        """Execute work items one after another.

        Each item starts only after the previous one, its memory writes and
        its message relay have finished, so later items see earlier results.
        Failures are captured per item like in the concurrent batch.

        Returns:
            One outcome per item, in input order
        """
        outcomes: list[ExecutionOutcome] = []
        for item in items:
            try:
                outcomes.append(await self.execute_one(item, session_id))
            except Exception as exc:
                outcomes.append(self._failed_outcome(item, exc))
        self._log_batch("sequential", session_id, outcomes)
        return outcomes

    async def post_message(self, session_id: str, message: Message) -> None:
        """Put a message on a session's live queue.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        if not await self.sessions.exists(session_id):
            raise SessionNotFoundError(session_id)
        self._queues[session_id].append(message)

    async def relay_messages(self, session_id: str) -> int:
        """Relay every pending message of a session.

        Returns:
            Number of messages processed
        """
        queue = self._queues[session_id]
        for agent in self.registry.list_all():
            queue.extend(agent.drain_outbox(session_id))

        processed = 0
        while queue:
            message = queue.popleft()
            await self.sessions.add_message(session_id, message)
            self.metrics.record_message_relayed(message.type.value)
            processed += 1

            if message.recipient != DISPATCHER_ID and message.recipient in self.registry:
                self.registry.get(message.recipient).deliver(session_id, message)
                continue
            if message.recipient != DISPATCHER_ID:
                logger.debug(
                    "message_recipient_unknown",
                    message_id=message.id,
                    recipient=message.recipient,
                )

            handler = self._message_table.get(message.type)
            if handler is None:
                logger.warning(
                    "message_type_unhandled",
                    message_id=message.id,
                    message_type=message.type.value,
                    sender=message.sender,
                )
                continue
            await handler(session_id, message)

        self._queues.pop(session_id, None)
        if processed:
            logger.debug("messages_relayed", session_id=session_id, count=processed)
        return processed

    def get_notices(self, session_id: str, needs_input: Optional[bool] = None) -> list[Notice]:
        """Notices surfaced for a session, optionally only those needing input."""
        return [
            notice.model_copy(deep=True)
            for notice in self._notices.get(session_id, [])
            if needs_input is None or notice.needs_input == needs_input
        ]

    def is_awaiting_input(self, session_id: str, work_item_id: str) -> bool:
        return work_item_id in self._awaiting_input.get(session_id, set())

    def discard_session(self, session_id: str) -> None:
        """Drop everything kept in memory for a session.

        Removes the live queue, notices and paused items of the session and
        every agent's inbox and outbox for it. Messages that were never
        relayed are lost.
        """
        dropped = len(self._queues.pop(session_id, ()))
        self._notices.pop(session_id, None)
        self._awaiting_input.pop(session_id, None)
        for agent in self.registry.list_all():
            dropped += agent.discard_session(session_id)
        logger.debug("session_discarded", session_id=session_id, unrelayed_messages=dropped)

    async def resume(
        self, session_id: str, work_item_id: str, input_data: dict[str, object]
    ) -> ExecutionOutcome:
        """Re-run a work item that is waiting for user input.

        The supplied data is merged into the item's ``additional_data``
        metadata before the agent runs again.

        Raises:
            WorkItemNotFoundError: If the item is not in the session
            WorkItemStateError: If the item is already finished
            ValueError: If the item is not waiting for input
        """
        item = await self.sessions.get_work_item(session_id, work_item_id)
        if item is None:
            raise WorkItemNotFoundError(work_item_id, session_id)
        if item.status.is_terminal():
            raise WorkItemStateError(
                work_item_id, item.status.value, WorkItemStatus.IN_PROGRESS.value
            )
        if not self.is_awaiting_input(session_id, work_item_id):
            raise ValueError(f"Work item '{work_item_id}' is not awaiting input")

        metadata = dict(item.metadata)
        metadata["additional_data"] = {**metadata.get("additional_data", {}), **input_data}
        updated = await self.sessions.update_work_item(session_id, work_item_id, metadata=metadata)
        self._awaiting_input[session_id].discard(work_item_id)

        with session_scope(session_id):
            logger.info(
                "work_item_resumed", work_item_id=work_item_id, fields=sorted(input_data)
            )
            return await self._run(self.route(updated), updated, session_id)

    async def _run(self, agent: BaseAgent, item: WorkItem, session_id: str) -> ExecutionOutcome:
        started = time.perf_counter()
        root_span = self.tracer.start_span(
            f"dispatch:{item.category.value}", DISPATCHER_ID, work_item_id=item.id
        )
        trace_id = self.tracer.get_span(root_span).trace_id

        try:
            result = await agent.execute_with_observability(
                item, session_id, parent_span_id=root_span
            )
        except Exception as exc:
            self.tracer.end_span(root_span, "error", {"error": str(exc)})
            await self._finish(session_id, item.id, WorkItemStatus.FAILED, error=str(exc))
            self.metrics.record_work_item(item.category.value, WorkItemStatus.FAILED.value)
            await self.relay_messages(session_id)
            logger.error(
                "work_item_failed",
                work_item_id=item.id,
                agent_id=agent.agent_id,
                error=str(exc),
            )
            if isinstance(exc, HandlerFault):
                raise
            raise HandlerFault(
                f"Agent '{agent.agent_id}' failed on work item '{item.id}': {exc}",
                agent_id=agent.agent_id,
                work_item_id=item.id,
            ) from exc

        if result.status == AgentResultStatus.AWAITING_INPUT:
            status = WorkItemStatus.IN_PROGRESS
            self._awaiting_input[session_id].add(item.id)
        elif result.success:
            status = await self._finish(session_id, item.id, WorkItemStatus.COMPLETED)
        else:
            status = await self._finish(
                session_id, item.id, WorkItemStatus.FAILED, error=result.error
            )

        self.tracer.end_span(
            root_span, "completed", {"result_status": result.status.value, "success": result.success}
        )
        self.metrics.record_work_item(item.category.value, status.value)
        relayed = await self.relay_messages(session_id)

        return ExecutionOutcome(
            work_item_id=item.id,
            category=item.category,
            status=status,
            success=result.success,
            agent_id=agent.agent_id,
            result=result,
            error=result.error,
            error_code=result.error_code,
            trace_id=trace_id,
            messages_relayed=relayed,
            duration_ms=(time.perf_counter() - started) * 1000,
        )

    async def _finish(
        self,
        session_id: str,
        work_item_id: str,
        status: WorkItemStatus,
        error: Optional[str] = None,
    ) -> WorkItemStatus:
        """Move an item to a final status; returns the status it ends up in.

        A concurrent relay may already have completed the item.
        """
        try:
            updated = await self.sessions.update_work_item(
                session_id, work_item_id, status=status, error=error
            )
        except WorkItemStateError as exc:
            logger.info(
                "work_item_already_finished",
                work_item_id=work_item_id,
                status=exc.current_status,
            )
            return WorkItemStatus(exc.current_status)
        return updated.status

    def _failed_outcome(self, item: WorkItem, exc: BaseException) -> ExecutionOutcome:
        agent_id = exc.agent_id if isinstance(exc, HandlerFault) else None
        return ExecutionOutcome(
            work_item_id=item.id,
            category=item.category,
            status=WorkItemStatus.FAILED,
            success=False,
            agent_id=agent_id,
            result=AgentResult.failed(str(exc), error_code=_error_code(exc)),
            error=str(exc),
            error_code=_error_code(exc),
        )

    def _log_batch(self, mode: str, session_id: str, outcomes: list[ExecutionOutcome]) -> None:
        logger.info(
            "batch_completed",
            mode=mode,
            session_id=session_id,
            total=len(outcomes),
            succeeded=sum(1 for o in outcomes if o.success),
        )

    def _notify(self, session_id: str, message: Message, summary: str, **fields: object) -> None:
        notice = Notice(
            message_id=message.id,
            type=message.type,
            sender=message.sender,
            summary=summary,
            payload=message.payload,
            **fields,
        )
        self._notices[session_id].append(notice)
        logger.info(
            "notice_created",
            notice_id=notice.id,
            message_type=message.type.value,
            needs_input=notice.needs_input,
        )

    async def _on_payment_required(self, session_id: str, message: Message) -> None:
        payload = _parse(message, PaymentRequiredPayload)
        if payload is None:
            return
        self._notify(
            session_id,
            message,
            f"Payment of ${payload.amount:.2f} to {payload.provider} due "
            f"{payload.due_date.date().isoformat()}",
        )

    async def _on_deadline_upcoming(self, session_id: str, message: Message) -> None:
        payload = _parse(message, DeadlineUpcomingPayload)
        if payload is None:
            return
        self._notify(session_id, message, f"{payload.title} due in {payload.days_until} days")

    async def _on_form_completed(self, session_id: str, message: Message) -> None:
        payload = _parse(message, FormCompletedPayload)
        if payload is None:
            return
        self._notify(
            session_id,
            message,
            f"Renewal form for {payload.document_id} is ready for submission",
            work_item_id=payload.work_item_id,
        )

    async def _on_reminder_set(self, session_id: str, message: Message) -> None:
        payload = _parse(message, ReminderPayload)
        if payload is None:
            return
        self._notify(session_id, message, payload.message)

    async def _on_agent_query(self, session_id: str, message: Message) -> None:
        payload = _parse(message, AgentQueryPayload)
        if payload is None:
            return
        summary = payload.question
        if payload.missing_fields:
            summary += f" (missing: {', '.join(payload.missing_fields)})"
        self._notify(
            session_id,
            message,
            summary,
            needs_input=True,
            work_item_id=payload.work_item_id,
        )

    async def _on_task_completed(self, session_id: str, message: Message) -> None:
        payload = _parse(message, TaskCompletedPayload)
        if payload is None:
            return
        item = await self.sessions.get_work_item(session_id, payload.work_item_id)
        if item is None:
            logger.warning(
                "completed_work_item_not_found", work_item_id=payload.work_item_id
            )
            return
        if item.status.is_terminal():
            return
        if item.status == WorkItemStatus.PENDING:
            await self.sessions.update_work_item(
                session_id, item.id, status=WorkItemStatus.IN_PROGRESS
            )
        await self._finish(session_id, item.id, WorkItemStatus.COMPLETED)
        self._awaiting_input[session_id].discard(item.id)


def _parse(message: Message, model: type[PayloadT]) -> Optional[PayloadT]:
    try:
        return message.parse_payload(model)
    except ValidationError as exc:
        logger.warning(
            "message_payload_invalid",
            message_id=message.id,
            message_type=message.type.value,
            error=str(exc),
        )
        return None


def _error_code(exc: BaseException) -> str:
    return exc.code if isinstance(exc, ErrandError) else "handler_fault"
