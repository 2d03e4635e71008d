"""Email scanning tool.

Extracts bills, renewal notices, subscriptions and appointment reminders
from the user's mailbox. The mailbox is an EmailInbox supplied by the
caller; without one a sample mailbox dated relative to the scan time is
used.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from errandforge.observability.logging import get_logger
from errandforge.tools.base import BaseTool, ToolResult
from errandforge.tools.models import (
    Appointment,
    Bill,
    EmailInbox,
    RenewalNotice,
    Subscription,
)

logger = get_logger(__name__)

SCAN_CATEGORIES = ("bills", "renewals", "subscriptions", "appointments")


def sample_inbox(now: Optional[datetime] = None) -> EmailInbox:
    """Build the sample mailbox, with dates relative to ``now``."""
    now = now or datetime.now(timezone.utc)
    return EmailInbox(
        bills=[
            Bill(
                id="bill-electric",
                provider="Electric Company",
                amount=125.50,
                due_date=now + timedelta(days=7),
                category="utilities",
                account_number="ELEC-12345",
                pdf_path="attachments/electric_bill.pdf",
            ),
            Bill(
                id="bill-internet",
                provider="Internet Provider",
                amount=89.99,
                due_date=now + timedelta(days=4),
                category="utilities",
                account_number="NET-67890",
            ),
            Bill(
                id="bill-credit-card",
                provider="Credit Card",
                amount=1250.00,
                due_date=now + timedelta(days=15),
                category="finance",
                account_number="CC-XXXX-5678",
            ),
        ],
        renewal_notices=[
            RenewalNotice(
                type="license",
                name="Driver's License",
                expiration_date=now + timedelta(days=55),
                issuer="DMV",
                renewal_url="https://dmv.example.com/license/renew",
            ),
            RenewalNotice(
                type="insurance",
                name="Auto Insurance",
                expiration_date=now + timedelta(days=30),
                issuer="Insurance Corp",
                renewal_url="https://insurance.example.com/renew",
            ),
        ],
        subscriptions=[
            Subscription(
                id="sub-streaming",
                service="Streaming Service",
                amount=15.99,
                billing_cycle="monthly",
                next_billing_date=now + timedelta(days=10),
                category="entertainment",
            ),
            Subscription(
                id="sub-cloud-storage",
                service="Cloud Storage",
                amount=9.99,
                billing_cycle="monthly",
                next_billing_date=now + timedelta(days=20),
                category="productivity",
            ),
        ],
        appointments=[
            Appointment(
                id="appt-checkup",
                title="Annual Checkup",
                provider="Dr. Smith",
                date_time=now + timedelta(days=2),
                location="123 Medical Center",
                notes="Bring insurance card",
            ),
            Appointment(
                id="appt-dental",
                title="Dental Cleaning",
                provider="Dr. Johnson",
                date_time=now + timedelta(days=21),
                location="456 Dental Plaza",
            ),
        ],
    )


class EmailScannerTool(BaseTool):
    """Scans the mailbox for bills, renewals, subscriptions and appointments.

    Params:
        categories: Optional subset of "bills", "renewals", "subscriptions",
            "appointments" (all when omitted)

    Result data keys: ``bills``, ``renewal_notices``, ``subscriptions``,
    ``appointments``, each a list of dictionaries (only the requested
    categories are present).
    """

    name = "email_scanner"
    description = "Scans emails for bills, renewal notices, subscription changes and appointments"

    def __init__(
        self,
        inbox: Optional[EmailInbox] = None,
        inbox_factory: Optional[Callable[[], EmailInbox]] = None,
        latency_seconds: float = 0.0,
    ) -> None:
        """Initialize the scanner.

        Args:
            inbox: Fixed mailbox contents
            inbox_factory: Callable building the mailbox on every scan
            latency_seconds: Simulated mailbox round trip
        """
        super().__init__(latency_seconds)
        self._inbox = inbox
        self._inbox_factory = inbox_factory or sample_inbox

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        categories = params.get("categories") or list(SCAN_CATEGORIES)
        unknown = sorted(set(categories) - set(SCAN_CATEGORIES))
        if unknown:
            return ToolResult(success=False, error=f"Unknown scan categories: {', '.join(unknown)}")

        await self._simulate_latency()
        inbox = self._inbox if self._inbox is not None else self._inbox_factory()

        data: dict[str, Any] = {}
        if "bills" in categories:
            data["bills"] = [bill.model_dump() for bill in inbox.bills]
        if "renewals" in categories:
            data["renewal_notices"] = [notice.model_dump() for notice in inbox.renewal_notices]
        if "subscriptions" in categories:
            data["subscriptions"] = [sub.model_dump() for sub in inbox.subscriptions]
        if "appointments" in categories:
            data["appointments"] = [appt.model_dump() for appt in inbox.appointments]

        logger.info(
            "email_scan_completed",
            categories=categories,
            counts={key: len(value) for key, value in data.items()},
        )
        return ToolResult(
            success=True,
            data=data,
            metadata={"scanned_at": datetime.now(timezone.utc), "source": "email_inbox"},
        )
