"""Tests for the built-in tools."""

from datetime import datetime, timedelta, timezone

import pytest

from errandforge.tools.base import ToolResult
from errandforge.tools.document_reader import DocumentReaderTool
from errandforge.tools.email_scanner import EmailScannerTool, sample_inbox
from errandforge.tools.form_filler import FormFillerTool
from errandforge.tools.models import Bill, EmailInbox
from errandforge.tools.payment import PaymentTool, calculate_fee


class TestToolResult:
    """Tests for ToolResult."""

    def test_failure_requires_error(self) -> None:
        """A failed result without an error message should be rejected."""
        with pytest.raises(ValueError):
            ToolResult(success=False)

    def test_success(self) -> None:
        """A successful result should carry its data."""
        result = ToolResult(success=True, data={"x": 1})
        assert result.data == {"x": 1}
        assert result.error is None


class TestEmailScannerTool:
    """Tests for EmailScannerTool."""

    async def test_sample_inbox_counts(self) -> None:
        """The sample mailbox should contain every kind of record."""
        result = await EmailScannerTool().execute({})

        assert result.success
        assert len(result.data["bills"]) == 3
        assert len(result.data["renewal_notices"]) == 2
        assert len(result.data["subscriptions"]) == 2
        assert len(result.data["appointments"]) == 2
        assert result.metadata["source"] == "email_inbox"

    async def test_category_subset(self) -> None:
        """Only requested categories should be returned."""
        result = await EmailScannerTool().execute({"categories": ["bills"]})
        assert set(result.data) == {"bills"}

    async def test_unknown_category(self) -> None:
        """Unknown categories should be reported as a failure."""
        result = await EmailScannerTool().execute({"categories": ["spam"]})
        assert not result.success
        assert "spam" in result.error

    async def test_custom_inbox(self) -> None:
        """A supplied mailbox should replace the sample data."""
        inbox = EmailInbox(
            bills=[
                Bill(
                    id="bill-water",
                    provider="Water Works",
                    amount=40,
                    due_date=datetime(2030, 1, 1),
                    category="utilities",
                )
            ]
        )
        result = await EmailScannerTool(inbox=inbox).execute({"categories": ["bills"]})

        assert [bill["id"] for bill in result.data["bills"]] == ["bill-water"]
        assert result.data["bills"][0]["due_date"].tzinfo == timezone.utc

    def test_sample_dates_are_relative(self) -> None:
        """Sample dates should be offset from the given time."""
        now = datetime(2030, 1, 1, tzinfo=timezone.utc)
        inbox = sample_inbox(now)
        due = {bill.id: bill.due_date for bill in inbox.bills}
        assert due["bill-internet"] == now + timedelta(days=4)
        assert due["bill-electric"] == now + timedelta(days=7)


class TestDocumentReaderTool:
    """Tests for DocumentReaderTool."""

    async def test_reads_bill_statement(self) -> None:
        """Bill statements should yield account fields."""
        result = await DocumentReaderTool().execute({"file_path": "attachments/electric_bill.pdf"})

        assert result.success
        assert result.data["fields"]["account_number"] == "ELEC-12345"
        assert result.data["page_count"] == 1

    async def test_generic_document(self) -> None:
        """Unrecognised documents should produce generic content."""
        result = await DocumentReaderTool().execute({"file_path": "notes.txt"})
        assert result.data["fields"] == {"document_type": "unknown"}

    async def test_requires_path(self) -> None:
        """A missing path should be a failed result."""
        result = await DocumentReaderTool().execute({})
        assert not result.success


class TestFormFillerTool:
    """Tests for FormFillerTool."""

    async def test_dmv_form_is_fully_filled(self) -> None:
        """The license form should be fillable from the profile alone."""
        result = await FormFillerTool().execute(
            {"form_url": "https://dmv.example.com/license/renew"}
        )

        assert result.data["form_id"] == "dmv-license-renewal"
        assert result.data["missing_fields"] == []
        assert result.data["ready_for_submission"] is True
        assert result.data["filled_fields"]["state"] == "CA"

    async def test_insurance_form_reports_missing_coverage(self) -> None:
        """The insurance form should need a coverage level."""
        result = await FormFillerTool().execute({"form_url": "https://insurance.example.com/renew"})

        assert result.data["missing_fields"] == ["coverage_level"]
        assert result.data["ready_for_submission"] is False

    async def test_additional_data_fills_gaps(self) -> None:
        """Supplied data should fill missing fields and beat the profile."""
        result = await FormFillerTool().execute(
            {
                "form_url": "https://insurance.example.com/renew",
                "additional_data": {"coverage_level": "Premium", "email": "new@example.com"},
                "auto_submit": True,
            }
        )

        assert result.data["missing_fields"] == []
        assert result.data["filled_fields"]["coverage_level"] == "Premium"
        assert result.data["filled_fields"]["email"] == "new@example.com"
        assert result.data["auto_submit"] is True

    async def test_generic_form_and_missing_url(self) -> None:
        """Generic forms need a name; a missing URL should fail."""
        generic = await FormFillerTool().execute({"form_url": "https://example.com/form"})
        assert generic.data["missing_fields"] == ["name"]

        missing = await FormFillerTool().execute({})
        assert not missing.success


class TestPaymentTool:
    """Tests for PaymentTool."""

    async def test_dry_run_payment(self) -> None:
        """Dry-run payments should be marked as such."""
        result = await PaymentTool().execute(
            {"bill_id": "bill-1", "amount": 100.0, "payment_method": "credit_card"}
        )

        assert result.success
        assert result.data["transaction_id"].startswith("DRY-RUN-")
        assert result.data["fee"] == 3.2
        assert result.metadata["dry_run"] is True

    async def test_live_prefix(self) -> None:
        """Live payments should use the TXN prefix."""
        result = await PaymentTool(dry_run=False).execute(
            {"bill_id": "bill-1", "amount": 10, "payment_method": "bank_account"}
        )
        assert result.data["transaction_id"].startswith("TXN-")

    @pytest.mark.parametrize(
        ("params", "error"),
        [
            ({"amount": 10, "payment_method": "bank_account"}, "Bill ID"),
            ({"bill_id": "b", "amount": -1, "payment_method": "bank_account"}, "positive"),
            ({"bill_id": "b", "amount": 10, "payment_method": "bitcoin"}, "Unsupported"),
        ],
    )
    async def test_invalid_payments(self, params: dict, error: str) -> None:
        """Invalid parameters should be reported, not raised."""
        result = await PaymentTool().execute(params)
        assert not result.success
        assert error in result.error

    async def test_verify_payment_method(self) -> None:
        """Only supported methods should verify."""
        tool = PaymentTool()
        assert await tool.verify_payment_method("debit_card") is True
        assert await tool.verify_payment_method("bitcoin") is False

    def test_calculate_fee(self) -> None:
        """Fees should follow the per-method schedule."""
        assert calculate_fee(100, "bank_account") == 0.0
        assert calculate_fee(100, "debit_card") == 1.5
        assert calculate_fee(100, "unknown") == 0.0
