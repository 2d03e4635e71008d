"""Document reading tool.

Extracts text and structured fields from bill statements, renewal forms
and other attachments. Documents are recognised by keywords in their path.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from errandforge.observability.logging import get_logger
from errandforge.tools.base import BaseTool, ToolResult

logger = get_logger(__name__)


class DocumentReaderTool(BaseTool):
    """Reads a document and extracts its fields.

    Params:
        file_path: Path of the document (required)

    Result data keys: ``text``, ``fields`` and ``page_count``.
    """

    name = "document_reader"
    description = "Reads PDFs and forms and extracts structured fields"

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        file_path = params.get("file_path")
        if not file_path:
            return ToolResult(success=False, error="file_path is required")

        await self._simulate_latency()
        text, fields = self._extract(str(file_path), datetime.now(timezone.utc))

        logger.info("document_read", file_path=file_path, field_count=len(fields))
        return ToolResult(
            success=True,
            data={"text": text, "fields": fields, "page_count": 1},
            metadata={"file_path": file_path},
        )

    def _extract(self, file_path: str, now: datetime) -> tuple[str, dict[str, Any]]:
        path = file_path.lower()
        if "bill" in path:
            due = now + timedelta(days=7)
            return (
                f"Electric Bill - Amount Due: $125.50 - Due Date: {due.date().isoformat()}",
                {
                    "document_type": "bill",
                    "provider": "Electric Company",
                    "account_number": "ELEC-12345",
                    "amount": 125.50,
                    "due_date": due,
                    "currency": "USD",
                },
            )
        if "license" in path:
            expires = now + timedelta(days=60)
            return (
                f"Driver's License Renewal - License Number: DL123456 - "
                f"Expiration: {expires.date().isoformat()}",
                {
                    "document_type": "license",
                    "license_number": "DL123456",
                    "holder_name": "Jordan Doe",
                    "expiration_date": expires,
                    "issuer": "DMV",
                },
            )
        if "subscription" in path:
            return (
                "Subscription Renewal Notice - Service: Streaming Service - Next Billing: $15.99",
                {
                    "document_type": "subscription",
                    "service": "Streaming Service",
                    "amount": 15.99,
                    "next_billing_date": now + timedelta(days=10),
                    "auto_renew": True,
                },
            )
        return "Generic document content", {"document_type": "unknown"}
