"""Tools the errand agents use to reach external systems.

Built-in Tools:
    - EmailScannerTool: bills, renewal notices, subscriptions, appointments
    - DocumentReaderTool: fields from statements and forms
    - FormFillerTool: renewal forms from the user profile
    - PaymentTool: bill payments (dry run by default)
"""

from errandforge.tools.base import BaseTool, ToolResult
from errandforge.tools.document_reader import DocumentReaderTool
from errandforge.tools.email_scanner import EmailScannerTool, sample_inbox
from errandforge.tools.form_filler import FormFillerTool
from errandforge.tools.models import (
    Appointment,
    Bill,
    Document,
    EmailInbox,
    RenewalNotice,
    Subscription,
)
from errandforge.tools.payment import PaymentTool

__all__ = [
    "Appointment",
    "BaseTool",
    "Bill",
    "Document",
    "DocumentReaderTool",
    "EmailInbox",
    "EmailScannerTool",
    "FormFillerTool",
    "PaymentTool",
    "RenewalNotice",
    "Subscription",
    "ToolResult",
    "sample_inbox",
]
