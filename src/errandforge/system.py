"""Public entry point of the errand agent system.

ErrandSystem wires the stores, observability, agents and dispatcher of one
independent system together and exposes the operations CLI, API or cron
callers use.
"""

from collections import Counter
from typing import Any, Optional, Union

from errandforge.agents.appointment import AppointmentAgent
from errandforge.agents.base import BaseAgent, ScanningAgent
from errandforge.agents.bill import BillAgent
from errandforge.agents.deadline import DeadlineAgent
from errandforge.agents.document import DocumentAgent
from errandforge.agents.errors import ErrandError, SessionNotFoundError
from errandforge.agents.registry import AgentRegistry
from errandforge.agents.subscription import SubscriptionAgent
from errandforge.config import ErrandConfig, get_default_config
from errandforge.memory.embedding import Embedder
from errandforge.memory.models import MemoryRecord
from errandforge.memory.store import MemoryStore
from errandforge.observability.logging import get_logger
from errandforge.observability.metrics import MetricsCollector
from errandforge.observability.tracing import Tracer
from errandforge.orchestration.dispatcher import Dispatcher
from errandforge.orchestration.models import ExecutionOutcome, Notice
from errandforge.sessions.models import SessionSummary
from errandforge.sessions.store import SessionStore
from errandforge.tasks.models import WorkItem, WorkItemCategory

logger = get_logger(__name__)

CategoryLike = Union[WorkItemCategory, str]

DAILY_SCAN_CATEGORIES = [
    WorkItemCategory.BILL_SCAN,
    WorkItemCategory.SUBSCRIPTION_SCAN,
    WorkItemCategory.APPOINTMENT_SCAN,
]
WEEKLY_TASK_CATEGORIES = [
    WorkItemCategory.DOCUMENT_SCAN,
    WorkItemCategory.SUBSCRIPTION_SCAN,
]


class ErrandSystem:
    """Errand agent system: stores, agents and dispatcher in one object.

    Every instance owns its own stores, tracer and metrics registry, so
    several systems can live in one process.

    Example:
        >>> system = ErrandSystem()
        >>> report = await system.run_daily_scan()
        >>> report["deadlines"]["total_deadlines"]
        7
    """

    def __init__(
        self,
        config: Optional[ErrandConfig] = None,
        embedder: Optional[Embedder] = None,
        agents: Optional[list[BaseAgent]] = None,
    ) -> None:
        """Initialize the system.

        Args:
            config: Configuration (defaults when None)
            embedder: Embedder for the memory store (hashing embedder by default)
            agents: Agents to register instead of the five default agents;
                they must share this system's stores (see ``build_default_agents``)
        """
        self.config = config or get_default_config()
        self.metrics = MetricsCollector()
        self.tracer = Tracer()
        self.sessions = SessionStore()
        self.memory = MemoryStore(embedder=embedder, metrics=self.metrics, config=self.config)
        self.registry = AgentRegistry()
        for agent in agents if agents is not None else self.build_default_agents():
            self.registry.register(agent)
        self.dispatcher = Dispatcher(self.registry, self.sessions, self.tracer, self.metrics)

    def build_default_agents(self) -> list[BaseAgent]:
        """Create the bill, document, subscription, appointment and deadline agents."""
        shared = (self.memory, self.sessions, self.tracer, self.metrics, self.config)
        return [
            BillAgent(*shared),
            DocumentAgent(*shared),
            SubscriptionAgent(*shared),
            AppointmentAgent(*shared),
            DeadlineAgent(*shared),
        ]

    async def create_session(self, session_id: Optional[str] = None) -> str:
        return await self.sessions.create(session_id)

    async def end_session(self, session_id: str) -> SessionSummary:
        """End a session; its record stays retrievable.

        Notices, paused items and undelivered messages of the session are
        released; read them before ending the session.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        summary = await self.sessions.end(session_id)
        self.dispatcher.discard_session(session_id)
        return summary

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and release everything kept for it."""
        self.dispatcher.discard_session(session_id)
        return await self.sessions.delete(session_id)

    async def submit_and_run(self, item: WorkItem, session_id: str) -> dict[str, Any]:
        """Run one work item and report its outcome.

        Routing errors and agent faults are reported in the returned
        dictionary instead of being raised.

        Returns:
            Dictionary with ``success``, ``result`` (or ``error`` and
            ``error_code``), ``outcome`` and the updated session ``summary``
        """
        try:
            outcome = await self.dispatcher.execute_one(item, session_id)
        except ErrandError as exc:
            logger.warning(
                "work_item_rejected",
                work_item_id=item.id,
                session_id=session_id,
                error_code=exc.code,
            )
            return {
                "success": False,
                "error": exc.message,
                "error_code": exc.code,
                "outcome": None,
                "summary": await self._summary_dict(session_id),
            }
        return await self._report(outcome, session_id)

    async def provide_input(
        self, session_id: str, work_item_id: str, input_data: dict[str, Any]
    ) -> dict[str, Any]:
        """Answer an agent's question and resume the waiting work item.

        Returns:
            The same report shape as ``submit_and_run``

        Raises:
            ValueError: If the work item is not waiting for input
        """
        try:
            outcome = await self.dispatcher.resume(session_id, work_item_id, input_data)
        except ErrandError as exc:
            return {
                "success": False,
                "error": exc.message,
                "error_code": exc.code,
                "outcome": None,
                "summary": await self._summary_dict(session_id),
            }
        return await self._report(outcome, session_id)

    async def run_concurrent_batch(
        self, categories: list[CategoryLike], session_id: str
    ) -> dict[str, dict[str, Any]]:
        """Run one work item per category concurrently.

        Returns:
            Outcome dictionary per category value

        Raises:
            ValueError: If a category is listed more than once
        """
        items = _items_for(categories)
        counts = Counter(item.category.value for item in items)
        duplicates = sorted(category for category, count in counts.items() if count > 1)
        if duplicates:
            raise ValueError(f"Categories listed more than once: {', '.join(duplicates)}")
        outcomes = await self.dispatcher.execute_batch_concurrent(items, session_id)
        return {outcome.category.value: outcome.to_dict() for outcome in outcomes}

    async def run_sequential_batch(
        self, categories: list[CategoryLike], session_id: str
    ) -> list[dict[str, Any]]:
        """Run one work item per category, one after another.

        Returns:
            Outcome dictionaries in category order
        """
        items = _items_for(categories)
        outcomes = await self.dispatcher.execute_batch_sequential(items, session_id)
        return [outcome.to_dict() for outcome in outcomes]

    async def run_daily_scan(self, session_id: Optional[str] = None) -> dict[str, Any]:
        """Scan bills, subscriptions and appointments, then aggregate deadlines.

        The scans run concurrently; the deadline aggregation runs after
        them so it sees everything they stored.

        Args:
            session_id: Session to run in, a new one when None

        Returns:
            Dictionary with the session id, per-category scan outcomes,
            the deadline aggregation result and the notices raised
        """
        session_id = await self._ensure_session(session_id)
        logger.info("daily_scan_started", session_id=session_id)
        await self.sessions.create_checkpoint(session_id, "daily_scan_start")

        scans = await self.run_concurrent_batch(DAILY_SCAN_CATEGORIES, session_id)
        (deadline,) = await self.run_sequential_batch(
            [WorkItemCategory.DEADLINE_TRACKING], session_id
        )

        await self.sessions.create_checkpoint(session_id, "daily_scan_complete")
        logger.info(
            "daily_scan_completed",
            session_id=session_id,
            succeeded=sum(1 for outcome in scans.values() if outcome["success"]),
        )
        return {
            "session_id": session_id,
            "scans": scans,
            "deadlines": (deadline["result"] or {}).get("data", {}),
            "notices": [notice.model_dump(mode="json") for notice in self.get_notices(session_id)],
        }

    async def run_weekly_tasks(self, session_id: Optional[str] = None) -> dict[str, Any]:
        """Scan documents and review subscriptions, in that order.

        Returns:
            Dictionary with the session id and the ordered outcomes
        """
        session_id = await self._ensure_session(session_id)
        logger.info("weekly_tasks_started", session_id=session_id)
        await self.sessions.create_checkpoint(session_id, "weekly_tasks_start")
        outcomes = await self.run_sequential_batch(WEEKLY_TASK_CATEGORIES, session_id)
        await self.sessions.create_checkpoint(session_id, "weekly_tasks_complete")
        return {"session_id": session_id, "tasks": outcomes}

    async def run_periodic_scan(self, agent_id: str) -> Optional[dict[str, Any]]:
        """Run a scanning agent's periodic scan in its own session.

        Raises:
            AgentNotFoundError: If the agent is not registered
            ValueError: If the agent has no periodic scan
        """
        agent = self.registry.get(agent_id)
        if not isinstance(agent, ScanningAgent):
            raise ValueError(f"Agent '{agent_id}' has no periodic scan")
        result = await agent.run_periodic_scan()
        return result.model_dump() if result is not None else None

    async def get_session_summary(self, session_id: str) -> Optional[SessionSummary]:
        return await self.sessions.summarize(session_id)

    def get_notices(self, session_id: str, needs_input: Optional[bool] = None) -> list[Notice]:
        return self.dispatcher.get_notices(session_id, needs_input)

    async def get_system_status(self, session_id: Optional[str] = None) -> dict[str, Any]:
        """Snapshot of registered agents, memory statistics and sessions.

        Args:
            session_id: Only summarize this session when given

        Raises:
            SessionNotFoundError: If session_id is given but unknown
        """
        if session_id is not None:
            summary = await self.sessions.summarize(session_id)
            if summary is None:
                raise SessionNotFoundError(session_id)
            summaries = [summary]
        else:
            summaries = []
            for sid in await self.sessions.list_sessions():
                found = await self.sessions.summarize(sid)
                if found is not None:
                    summaries.append(found)

        return {
            "agents": [
                {
                    "agent_id": agent.agent_id,
                    "agent_type": agent.agent_type,
                    "categories": sorted(category.value for category in agent.categories),
                }
                for agent in self.registry.list_all()
            ],
            "memory": await self.memory.stats(self.config.stats_top_n),
            "sessions": {s.session_id: s.model_dump() for s in summaries},
        }

    async def query_memory(self, text: str, limit: int = 5) -> list[MemoryRecord]:
        return await self.memory.retrieve_by_query(text, limit)

    def get_trace_diagram(self, trace_id: str) -> str:
        return self.tracer.render_diagram(trace_id)

    async def _ensure_session(self, session_id: Optional[str]) -> str:
        if session_id is not None and await self.sessions.exists(session_id):
            return session_id
        return await self.sessions.create(session_id)

    async def _summary_dict(self, session_id: str) -> Optional[dict[str, Any]]:
        summary = await self.sessions.summarize(session_id)
        return summary.model_dump() if summary else None

    async def _report(self, outcome: ExecutionOutcome, session_id: str) -> dict[str, Any]:
        report: dict[str, Any] = {
            "success": outcome.success,
            "outcome": outcome.to_dict(),
            "summary": await self._summary_dict(session_id),
        }
        if outcome.success or outcome.needs_input:
            report["result"] = outcome.result.data if outcome.result else {}
        if not outcome.success:
            report["error"] = outcome.error
            report["error_code"] = outcome.error_code
        return report


def _items_for(categories: list[CategoryLike]) -> list[WorkItem]:
    return [WorkItem(category=WorkItemCategory(category)) for category in categories]
