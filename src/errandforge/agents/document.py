"""Document agent: tracks expiring documents and runs renewal workflows."""

from datetime import timedelta
from typing import Optional
from uuid import uuid4

from errandforge.agents.base import ScanningAgent
from errandforge.agents.dates import days_until, utcnow
from errandforge.agents.messages import (
    DEADLINE_AGENT_ID,
    DISPATCHER_ID,
    AgentQueryPayload,
    DeadlineUpcomingPayload,
    FormCompletedPayload,
    MessageType,
)
from errandforge.agents.results import AgentResult
from errandforge.config import ErrandConfig
from errandforge.memory.models import MemoryType
from errandforge.memory.store import MemoryStore
from errandforge.observability.logging import get_logger
from errandforge.observability.metrics import MetricsCollector
from errandforge.observability.tracing import Tracer
from errandforge.sessions.store import SessionStore
from errandforge.tasks.models import DocumentRenewalRequest, WorkItem, WorkItemCategory
from errandforge.tools.email_scanner import EmailScannerTool
from errandforge.tools.form_filler import FormFillerTool
from errandforge.tools.models import Document, RenewalNotice

logger = get_logger(__name__)


class DocumentAgent(ScanningAgent):
    """Tracks document expirations and fills renewal forms.

    document_scan turns renewal notices into stored documents and warns the
    deadline agent about documents expiring within the configured window.

    document_renewal is a sequential workflow: fill the renewal form from
    the user profile plus any data supplied with the request; if required
    fields are still missing, ask the user (agent_query) and pause the work
    item until the dispatcher resumes it with the answers.
    """

    agent_id = "document-agent"
    agent_type = "document"
    categories = frozenset({WorkItemCategory.DOCUMENT_SCAN, WorkItemCategory.DOCUMENT_RENEWAL})
    scan_category = WorkItemCategory.DOCUMENT_SCAN

    def __init__(
        self,
        memory: MemoryStore,
        sessions: SessionStore,
        tracer: Tracer,
        metrics: MetricsCollector,
        config: Optional[ErrandConfig] = None,
        email_scanner: Optional[EmailScannerTool] = None,
        form_filler: Optional[FormFillerTool] = None,
    ) -> None:
        super().__init__(memory, sessions, tracer, metrics, config)
        latency = self.config.tool_latency_seconds
        self.email_scanner = email_scanner or EmailScannerTool(latency_seconds=latency)
        self.form_filler = form_filler or FormFillerTool(latency_seconds=latency)

    async def execute(self, item: WorkItem, session_id: str) -> AgentResult:
        return await self._run_category(
            item,
            session_id,
            {
                WorkItemCategory.DOCUMENT_SCAN: self._scan_documents,
                WorkItemCategory.DOCUMENT_RENEWAL: self._renew_document,
            },
        )

    async def _scan_documents(self, item: WorkItem, session_id: str) -> AgentResult:
        scan = await self.call_tool(self.email_scanner, {"categories": ["renewals"]})
        if not scan.success:
            return AgentResult.tool_failure(self.email_scanner.name, scan.error)

        notices = [RenewalNotice.model_validate(raw) for raw in scan.data.get("renewal_notices", [])]
        now = utcnow()
        horizon = now + timedelta(days=self.config.document_expiry_window_days)

        expiring: list[Document] = []
        for notice in notices:
            document = Document(
                id=f"doc-{uuid4().hex[:12]}",
                type=notice.type,
                name=notice.name,
                expiration_date=notice.expiration_date,
                issuer=notice.issuer,
                document_number=f"DOC-{uuid4().hex[:9].upper()}",
                renewal_url=notice.renewal_url,
            )
            await self.store_memory(MemoryType.DOCUMENT, document.model_dump(), {"source": "email"})
            if document.expiration_date <= horizon:
                expiring.append(document)

        logger.info("documents_scanned", count=len(notices), expiring_soon=len(expiring))

        for document in expiring:
            self.send_message(
                session_id,
                MessageType.DEADLINE_UPCOMING,
                DEADLINE_AGENT_ID,
                DeadlineUpcomingPayload(
                    kind="document",
                    item_id=document.id,
                    title=f"{document.name} renewal",
                    due_date=document.expiration_date,
                    days_until=days_until(document.expiration_date, now),
                    details={"issuer": document.issuer, "renewal_url": document.renewal_url},
                ),
                correlation_id=item.id,
            )

        return AgentResult.completed(
            documents_found=len(notices),
            documents_expiring_soon=len(expiring),
            expiring=[document.id for document in expiring],
        )

    async def _renew_document(self, item: WorkItem, session_id: str) -> AgentResult:
        request = self.parse_request(DocumentRenewalRequest, item)
        logger.info("document_renewal_started", document_id=request.document_id)

        fill = await self.call_tool(
            self.form_filler,
            {
                "form_url": request.renewal_url,
                "additional_data": request.additional_data,
                "auto_submit": False,
            },
        )
        if not fill.success:
            return AgentResult.tool_failure(self.form_filler.name, fill.error)

        missing = fill.data["missing_fields"]
        filled = fill.data["filled_fields"]

        if missing:
            logger.warning(
                "document_renewal_missing_fields",
                document_id=request.document_id,
                missing_fields=missing,
            )
            self.send_message(
                session_id,
                MessageType.AGENT_QUERY,
                DISPATCHER_ID,
                AgentQueryPayload(
                    work_item_id=item.id,
                    question="Document renewal requires additional information",
                    missing_fields=missing,
                    filled_fields=filled,
                ),
                correlation_id=item.id,
            )
            return AgentResult.awaiting_input(
                missing, filled_fields=filled, form_id=fill.data["form_id"]
            )

        self.send_message(
            session_id,
            MessageType.FORM_COMPLETED,
            DISPATCHER_ID,
            FormCompletedPayload(
                work_item_id=item.id,
                document_id=request.document_id,
                form_url=request.renewal_url,
            ),
            correlation_id=item.id,
        )
        await self.store_memory(
            MemoryType.TASK_HISTORY,
            {
                "type": "document_form_completed",
                "document_id": request.document_id,
                "form_id": fill.data["form_id"],
            },
        )
        return AgentResult.completed(
            status="form_ready", form_id=fill.data["form_id"], filled_fields=filled
        )
