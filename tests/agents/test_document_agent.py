"""Tests for DocumentAgent."""

from typing import Any

import pytest

from errandforge.agents.document import DocumentAgent
from errandforge.agents.errors import InvalidWorkItemError
from errandforge.agents.messages import MessageType
from errandforge.agents.results import AgentResultStatus
from errandforge.config import ErrandConfig
from errandforge.memory.models import MemoryType
from errandforge.memory.store import MemoryStore
from errandforge.tasks.models import WorkItem, WorkItemCategory

DMV_URL = "https://dmv.example.com/license/renew"
INSURANCE_URL = "https://insurance.example.com/renew"


def _renewal(**metadata: Any) -> WorkItem:
    return WorkItem(category=WorkItemCategory.DOCUMENT_RENEWAL, metadata=metadata)


@pytest.fixture
def document_agent(agent_deps: dict[str, Any]) -> DocumentAgent:
    return DocumentAgent(**agent_deps)


class TestDocumentScan:
    """Tests for document_scan."""

    async def test_scan_stores_documents(
        self, document_agent: DocumentAgent, session_id: str, memory_store: MemoryStore
    ) -> None:
        """Renewal notices should become stored documents."""
        result = await document_agent.execute(
            WorkItem(category=WorkItemCategory.DOCUMENT_SCAN), session_id
        )

        assert result.data["documents_found"] == 2
        assert result.data["documents_expiring_soon"] == 2
        documents = await memory_store.retrieve_by_type(MemoryType.DOCUMENT)
        assert {record.content["name"] for record in documents} == {
            "Driver's License",
            "Auto Insurance",
        }
        for record in documents:
            assert record.content["id"].startswith("doc-")
            assert record.content["document_number"].startswith("DOC-")

    async def test_expiring_documents_notify_deadline_agent(
        self, agent_deps: dict[str, Any], session_id: str
    ) -> None:
        """Only documents inside the expiry window should be announced."""
        agent = DocumentAgent(**{**agent_deps, "config": ErrandConfig(document_expiry_window_days=40)})

        result = await agent.execute(WorkItem(category=WorkItemCategory.DOCUMENT_SCAN), session_id)

        assert result.data["documents_expiring_soon"] == 1
        (message,) = agent.drain_outbox(session_id)
        assert message.type == MessageType.DEADLINE_UPCOMING
        assert message.recipient == "deadline-agent"
        assert message.payload["kind"] == "document"
        assert message.payload["title"] == "Auto Insurance renewal"
        assert message.payload["days_until"] == 30


class TestDocumentRenewal:
    """Tests for the document_renewal workflow."""

    async def test_complete_form(
        self, document_agent: DocumentAgent, session_id: str, memory_store: MemoryStore
    ) -> None:
        """A fully fillable form should be ready for submission."""
        item = _renewal(document_id="doc-1", renewal_url=DMV_URL)

        result = await document_agent.execute(item, session_id)

        assert result.success
        assert result.data["status"] == "form_ready"
        assert result.data["form_id"] == "dmv-license-renewal"
        (message,) = document_agent.drain_outbox(session_id)
        assert message.type == MessageType.FORM_COMPLETED
        assert message.payload["document_id"] == "doc-1"
        assert message.payload["work_item_id"] == item.id
        (history,) = await memory_store.retrieve_by_type(MemoryType.TASK_HISTORY)
        assert history.content["type"] == "document_form_completed"

    async def test_missing_fields_ask_the_user(
        self, document_agent: DocumentAgent, session_id: str
    ) -> None:
        """Missing required fields should pause the workflow with a query."""
        item = _renewal(document_id="doc-2", renewal_url=INSURANCE_URL)

        result = await document_agent.execute(item, session_id)

        assert result.status == AgentResultStatus.AWAITING_INPUT
        assert not result.success
        assert result.data["missing_fields"] == ["coverage_level"]
        assert result.data["form_id"] == "insurance-renewal"
        (message,) = document_agent.drain_outbox(session_id)
        assert message.type == MessageType.AGENT_QUERY
        assert message.recipient == "dispatcher"
        assert message.payload["missing_fields"] == ["coverage_level"]
        assert message.payload["work_item_id"] == item.id

    async def test_supplied_data_completes_form(
        self, document_agent: DocumentAgent, session_id: str
    ) -> None:
        """Data supplied with the request should fill the gaps."""
        item = _renewal(
            document_id="doc-2",
            renewal_url=INSURANCE_URL,
            additional_data={"coverage_level": "Premium"},
        )

        result = await document_agent.execute(item, session_id)

        assert result.success
        assert result.data["filled_fields"]["coverage_level"] == "Premium"

    async def test_invalid_request(self, document_agent: DocumentAgent, session_id: str) -> None:
        """A renewal without a URL should be rejected."""
        with pytest.raises(InvalidWorkItemError):
            await document_agent.execute(_renewal(document_id="doc-1"), session_id)
