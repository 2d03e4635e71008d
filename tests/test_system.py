"""Tests for the ErrandSystem entry point."""

import pytest

from errandforge.agents.errors import AgentNotFoundError, SessionNotFoundError
from errandforge.agents.messages import MessageType
from errandforge.system import ErrandSystem
from errandforge.tasks.models import WorkItem, WorkItemCategory

INSURANCE_URL = "https://insurance.example.com/renew"


@pytest.fixture
def system() -> ErrandSystem:
    """System with the default agents."""
    return ErrandSystem()


class TestScheduledRuns:
    """Tests for the daily and weekly runs."""

    async def test_daily_scan(self, system: ErrandSystem) -> None:
        """The daily scan should run three scans and aggregate their deadlines."""
        report = await system.run_daily_scan()

        assert set(report["scans"]) == {"bill_scan", "subscription_scan", "appointment_scan"}
        assert all(outcome["success"] for outcome in report["scans"].values())
        assert report["deadlines"]["total_deadlines"] == 7
        assert report["deadlines"]["conflicts"] == []
        assert any(
            notice["type"] == "payment_required" and "Internet Provider" in notice["summary"]
            for notice in report["notices"]
        )
        checkpoints = await system.sessions.get_checkpoints(report["session_id"])
        assert [c.name for c in checkpoints] == ["daily_scan_start", "daily_scan_complete"]

    async def test_daily_scan_reuses_session(self, system: ErrandSystem) -> None:
        """An existing session id should be reused."""
        session_id = await system.create_session()

        report = await system.run_daily_scan(session_id)

        assert report["session_id"] == session_id
        assert await system.sessions.list_sessions() == [session_id]

    async def test_weekly_tasks(self, system: ErrandSystem) -> None:
        """Weekly tasks should scan documents, then subscriptions."""
        report = await system.run_weekly_tasks()

        assert [task["category"] for task in report["tasks"]] == [
            "document_scan",
            "subscription_scan",
        ]
        assert report["tasks"][0]["result"]["data"]["documents_expiring_soon"] == 2
        summary = await system.get_session_summary(report["session_id"])
        assert summary.checkpoint_count == 2
        assert summary.work_items_by_status["completed"] == 2

    async def test_concurrent_batch_accepts_strings(self, system: ErrandSystem) -> None:
        """Categories may be given by value."""
        session_id = await system.create_session()

        outcomes = await system.run_concurrent_batch(["bill_scan", "document_scan"], session_id)

        assert sorted(outcomes) == ["bill_scan", "document_scan"]

    async def test_concurrent_batch_rejects_duplicate_categories(
        self, system: ErrandSystem
    ) -> None:
        """A category listed twice should be rejected before anything runs."""
        session_id = await system.create_session()

        with pytest.raises(ValueError, match="bill_scan"):
            await system.run_concurrent_batch(
                ["bill_scan", "appointment_scan", "bill_scan"], session_id
            )

        assert await system.sessions.get_work_items(session_id) == []


class TestSubmitAndRun:
    """Tests for running single work items."""

    async def test_payment(self, system: ErrandSystem) -> None:
        """A payment should report its dry-run transaction."""
        session_id = await system.create_session()
        item = WorkItem(
            category=WorkItemCategory.BILL_PAYMENT,
            metadata={
                "bill_id": "bill-electric",
                "amount": 125.5,
                "payment_method": "bank_account",
            },
        )

        report = await system.submit_and_run(item, session_id)

        assert report["success"] is True
        assert report["result"]["payment"]["transaction_id"].startswith("DRY-RUN-")
        assert report["summary"]["work_items_by_status"]["completed"] == 1

    async def test_invalid_request_is_reported(self, system: ErrandSystem) -> None:
        """An invalid request should be reported, not raised."""
        session_id = await system.create_session()

        report = await system.submit_and_run(
            WorkItem(category=WorkItemCategory.BILL_PAYMENT), session_id
        )

        assert report["success"] is False
        assert report["error_code"] == "invalid_work_item"
        assert report["outcome"] is None
        assert report["summary"]["work_items_by_status"]["failed"] == 1

    async def test_routing_error_is_reported(self) -> None:
        """A system without agents should report routing errors."""
        system = ErrandSystem(agents=[])
        session_id = await system.create_session()

        report = await system.submit_and_run(
            WorkItem(category=WorkItemCategory.BILL_SCAN), session_id
        )

        assert report["error_code"] == "routing_error"
        assert report["summary"]["total_work_items"] == 0

    async def test_provide_input_resumes_renewal(self, system: ErrandSystem) -> None:
        """Answering the agent's question should complete the renewal."""
        session_id = await system.create_session()
        item = WorkItem(
            category=WorkItemCategory.DOCUMENT_RENEWAL,
            metadata={"document_id": "doc-2", "renewal_url": INSURANCE_URL},
        )

        paused = await system.submit_and_run(item, session_id)

        assert paused["success"] is False
        assert paused["result"]["missing_fields"] == ["coverage_level"]
        assert len(system.get_notices(session_id, needs_input=True)) == 1

        resumed = await system.provide_input(session_id, item.id, {"coverage_level": "Premium"})

        assert resumed["success"] is True
        assert resumed["result"]["status"] == "form_ready"
        assert resumed["summary"]["work_items_by_status"]["completed"] == 1

    async def test_provide_input_errors(self, system: ErrandSystem) -> None:
        """Unknown items are reported; items not waiting for input raise."""
        session_id = await system.create_session()

        report = await system.provide_input(session_id, "item-missing", {})
        assert report["error_code"] == "work_item_not_found"

        item = WorkItem(category=WorkItemCategory.APPOINTMENT_SCAN)
        await system.sessions.add_work_item(session_id, item)
        with pytest.raises(ValueError):
            await system.provide_input(session_id, item.id, {})


class TestInspection:
    """Tests for status, periodic scans, memory queries and traces."""

    async def test_system_status(self, system: ErrandSystem) -> None:
        """Status should list agents, memory statistics and sessions."""
        report = await system.run_daily_scan()

        status = await system.get_system_status()

        assert [a["agent_id"] for a in status["agents"]] == [
            "bill-agent",
            "document-agent",
            "subscription-agent",
            "appointment-agent",
            "deadline-agent",
        ]
        assert status["memory"]["by_type"]["bill"] == 3
        assert list(status["sessions"]) == [report["session_id"]]

        single = await system.get_system_status(report["session_id"])
        assert single["sessions"][report["session_id"]]["total_work_items"] == 4

    async def test_status_for_unknown_session(self, system: ErrandSystem) -> None:
        """Asking for an unknown session should raise."""
        with pytest.raises(SessionNotFoundError):
            await system.get_system_status("missing")

    async def test_periodic_scan(self, system: ErrandSystem) -> None:
        """A periodic scan should run in its own ended session."""
        result = await system.run_periodic_scan("bill-agent")

        assert result["success"] is True
        assert result["data"]["bills_found"] == 3
        (session_id,) = await system.sessions.list_sessions()
        summary = await system.get_session_summary(session_id)
        assert summary.ended is True

    async def test_periodic_scan_rejects_non_scanning_agents(self, system: ErrandSystem) -> None:
        """Only scanning agents have a periodic scan."""
        with pytest.raises(ValueError):
            await system.run_periodic_scan("deadline-agent")
        with pytest.raises(AgentNotFoundError):
            await system.run_periodic_scan("missing-agent")

    async def test_query_memory(self, system: ErrandSystem) -> None:
        """Memory queries should return stored records."""
        await system.run_daily_scan()

        records = await system.query_memory("Electric Company bill", limit=5)

        assert len(records) == 5
        assert "bill-electric" in [
            r.content.get("id") for r in records if isinstance(r.content, dict)
        ]

    async def test_trace_diagram(self, system: ErrandSystem) -> None:
        """Every scan should have a rendered trace."""
        report = await system.run_daily_scan()

        diagram = system.get_trace_diagram(report["scans"]["bill_scan"]["trace_id"])

        assert diagram.startswith("✅ dispatch:bill_scan (dispatcher) - ")
        assert system.get_trace_diagram("missing") == "Trace not found"

    async def test_systems_are_independent(self) -> None:
        """Two systems should not share stores or metrics."""
        first, second = ErrandSystem(), ErrandSystem()

        await first.run_daily_scan()

        assert await second.sessions.list_sessions() == []
        assert (await second.memory.stats())["total_memories"] == 0
        completed = second.metrics.get_counter(
            "work_items", category="bill_scan", status="completed"
        )
        assert completed == 0.0


class TestSessionRelease:
    """Tests for releasing per-session state."""

    async def test_end_session_releases_agent_and_dispatcher_state(
        self, system: ErrandSystem
    ) -> None:
        """Ending sessions should leave no inboxes, notices or queues behind."""
        session_ids = []
        for _ in range(3):
            report = await system.run_weekly_tasks()
            session_ids.append(report["session_id"])
        deadline_agent = system.registry.get("deadline-agent")
        assert deadline_agent.receive_messages(session_ids[0], MessageType.DEADLINE_UPCOMING) != []

        for session_id in session_ids:
            await system.end_session(session_id)

        for session_id in session_ids:
            assert system.get_notices(session_id) == []
            summary = await system.get_session_summary(session_id)
            assert summary.ended is True
        for session_id in session_ids[1:]:
            assert deadline_agent.receive_messages(session_id) == []

    async def test_ended_session_drops_paused_items(self, system: ErrandSystem) -> None:
        """A paused work item should not be resumable after its session ended."""
        session_id = await system.create_session()
        item = WorkItem(
            category=WorkItemCategory.DOCUMENT_RENEWAL,
            metadata={"document_id": "doc-2", "renewal_url": INSURANCE_URL},
        )
        await system.submit_and_run(item, session_id)
        assert system.dispatcher.is_awaiting_input(session_id, item.id)

        await system.end_session(session_id)

        assert not system.dispatcher.is_awaiting_input(session_id, item.id)

    async def test_delete_session(self, system: ErrandSystem) -> None:
        """Deleting a session should remove the record and its notices."""
        report = await system.run_daily_scan()
        session_id = report["session_id"]
        assert system.get_notices(session_id)

        assert await system.delete_session(session_id) is True

        assert await system.sessions.list_sessions() == []
        assert system.get_notices(session_id) == []
        assert await system.delete_session(session_id) is False
