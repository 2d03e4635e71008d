"""Bill agent: finds bills in the mailbox and pays them."""

from datetime import timedelta
from typing import Optional

from errandforge.agents.base import ScanningAgent
from errandforge.agents.dates import days_until, utcnow
from errandforge.agents.messages import (
    DEADLINE_AGENT_ID,
    DISPATCHER_ID,
    DeadlineUpcomingPayload,
    MessageType,
    PaymentRequiredPayload,
    TaskCompletedPayload,
)
from errandforge.agents.results import AgentResult
from errandforge.config import ErrandConfig
from errandforge.memory.models import MemoryType
from errandforge.memory.store import MemoryStore
from errandforge.observability.logging import get_logger
from errandforge.observability.metrics import MetricsCollector
from errandforge.observability.tracing import Tracer
from errandforge.sessions.store import SessionStore
from errandforge.tasks.models import BillPaymentRequest, WorkItem, WorkItemCategory
from errandforge.tools.document_reader import DocumentReaderTool
from errandforge.tools.email_scanner import EmailScannerTool
from errandforge.tools.models import Bill
from errandforge.tools.payment import PaymentTool

logger = get_logger(__name__)


class BillAgent(ScanningAgent):
    """Tracks bills and executes payments.

    bill_scan stores every bill found in the mailbox and flags unpaid bills
    due within the configured window: the deadline agent is told about the
    deadline and the dispatcher that a payment is required. bill_payment
    verifies the payment method, pays and marks the stored bill as paid.
    """

    agent_id = "bill-agent"
    agent_type = "bill"
    categories = frozenset({WorkItemCategory.BILL_SCAN, WorkItemCategory.BILL_PAYMENT})
    scan_category = WorkItemCategory.BILL_SCAN

    def __init__(
        self,
        memory: MemoryStore,
        sessions: SessionStore,
        tracer: Tracer,
        metrics: MetricsCollector,
        config: Optional[ErrandConfig] = None,
        email_scanner: Optional[EmailScannerTool] = None,
        payment_tool: Optional[PaymentTool] = None,
        document_reader: Optional[DocumentReaderTool] = None,
    ) -> None:
        super().__init__(memory, sessions, tracer, metrics, config)
        latency = self.config.tool_latency_seconds
        self.email_scanner = email_scanner or EmailScannerTool(latency_seconds=latency)
        self.payment_tool = payment_tool or PaymentTool(
            dry_run=self.config.payment_dry_run, latency_seconds=latency
        )
        self.document_reader = document_reader or DocumentReaderTool(latency_seconds=latency)

    async def execute(self, item: WorkItem, session_id: str) -> AgentResult:
        return await self._run_category(
            item,
            session_id,
            {
                WorkItemCategory.BILL_SCAN: self._scan_bills,
                WorkItemCategory.BILL_PAYMENT: self._pay_bill,
            },
        )

    async def _scan_bills(self, item: WorkItem, session_id: str) -> AgentResult:
        scan = await self.call_tool(self.email_scanner, {"categories": ["bills"]})
        if not scan.success:
            return AgentResult.tool_failure(self.email_scanner.name, scan.error)

        bills = [Bill.model_validate(raw) for raw in scan.data.get("bills", [])]
        now = utcnow()
        horizon = now + timedelta(days=self.config.bill_due_window_days)

        due_soon: list[Bill] = []
        for bill in bills:
            bill = await self._enrich_from_statement(bill)
            await self.store_memory(MemoryType.BILL, bill.model_dump(), {"source": "email"})
            if not bill.is_paid and bill.due_date <= horizon:
                due_soon.append(bill)

        logger.info("bills_scanned", count=len(bills), due_soon=len(due_soon))

        for bill in due_soon:
            self.send_message(
                session_id,
                MessageType.DEADLINE_UPCOMING,
                DEADLINE_AGENT_ID,
                DeadlineUpcomingPayload(
                    kind="bill",
                    item_id=bill.id,
                    title=f"{bill.provider} bill",
                    due_date=bill.due_date,
                    days_until=days_until(bill.due_date, now),
                    details={"amount": bill.amount, "category": bill.category},
                ),
                correlation_id=item.id,
            )
            self.send_message(
                session_id,
                MessageType.PAYMENT_REQUIRED,
                DISPATCHER_ID,
                PaymentRequiredPayload(
                    bill_id=bill.id,
                    provider=bill.provider,
                    amount=bill.amount,
                    due_date=bill.due_date,
                ),
                correlation_id=item.id,
            )

        return AgentResult.completed(
            bills_found=len(bills),
            bills_due_soon=len(due_soon),
            due_soon=[bill.id for bill in due_soon],
        )

    async def _enrich_from_statement(self, bill: Bill) -> Bill:
        """Fill gaps in a bill from its attached statement, if any."""
        if not bill.pdf_path:
            return bill
        statement = await self.call_tool(self.document_reader, {"file_path": bill.pdf_path})
        if not statement.success:
            return bill
        fields = statement.data.get("fields", {})
        if bill.account_number is None and fields.get("account_number"):
            return bill.model_copy(update={"account_number": fields["account_number"]})
        return bill

    async def _pay_bill(self, item: WorkItem, session_id: str) -> AgentResult:
        request = self.parse_request(BillPaymentRequest, item)
        logger.info("bill_payment_started", bill_id=request.bill_id, amount=request.amount)

        if not await self.payment_tool.verify_payment_method(request.payment_method):
            self.metrics.record_payment("failure")
            return AgentResult.failed(
                "Payment method verification failed",
                error_code="payment_method_unverified",
                payment_method=request.payment_method,
            )

        payment = await self.call_tool(
            self.payment_tool,
            {**request.model_dump(), "memo": "Bill payment via errand agent"},
        )
        if not payment.success:
            self.metrics.record_payment("failure")
            return AgentResult.tool_failure(self.payment_tool.name, payment.error)

        record = await self.find_memory(MemoryType.BILL, request.bill_id)
        if record is not None:
            await self.memory.update(
                record.id,
                content={**record.content, "is_paid": True},
                metadata={"transaction_id": payment.data["transaction_id"]},
            )
        else:
            logger.warning("paid_bill_not_in_memory", bill_id=request.bill_id)

        await self.store_memory(
            MemoryType.TASK_HISTORY,
            {
                "type": "bill_paid",
                "bill_id": request.bill_id,
                "amount": request.amount,
                "transaction_id": payment.data["transaction_id"],
            },
        )
        self.send_message(
            session_id,
            MessageType.TASK_COMPLETED,
            DISPATCHER_ID,
            TaskCompletedPayload(work_item_id=item.id, result=payment.data),
            correlation_id=item.id,
        )
        self.metrics.record_payment("success")
        return AgentResult.completed(payment=payment.data)
