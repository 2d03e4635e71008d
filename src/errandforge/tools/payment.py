"""Payment execution tool.

Pays bills through a supported payment method. In dry-run mode (the
default) no money moves and the transaction id is marked as such.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from errandforge.observability.logging import get_logger
from errandforge.tools.base import BaseTool, ToolResult

logger = get_logger(__name__)

# Fee as (percentage, fixed amount) per payment method
PAYMENT_FEES: dict[str, tuple[float, float]] = {
    "bank_account": (0.0, 0.0),
    "credit_card": (0.029, 0.30),
    "debit_card": (0.015, 0.0),
}


def calculate_fee(amount: float, payment_method: str) -> float:
    """Processing fee for a payment, rounded to cents."""
    rate, fixed = PAYMENT_FEES.get(payment_method, (0.0, 0.0))
    return round(amount * rate + fixed, 2)


class PaymentTool(BaseTool):
    """Executes bill payments.

    Params:
        bill_id: Bill being paid (required)
        amount: Positive amount (required)
        payment_method: One of bank_account, credit_card, debit_card (required)
        memo: Optional memo

    Result data keys: ``transaction_id``, ``status``, ``amount``, ``fee``,
    ``confirmation_number``, ``processed_at``.
    """

    name = "payment_execution"
    description = "Executes bill payments using a verified payment method"

    def __init__(self, dry_run: bool = True, latency_seconds: float = 0.0) -> None:
        super().__init__(latency_seconds)
        self.dry_run = dry_run

    async def verify_payment_method(self, payment_method: str) -> bool:
        """Check that the payment method is supported and usable."""
        await self._simulate_latency()
        verified = payment_method in PAYMENT_FEES
        logger.info("payment_method_verified", payment_method=payment_method, verified=verified)
        return verified

    async def execute(self, params: dict[str, Any]) -> ToolResult:
        bill_id = params.get("bill_id")
        amount = params.get("amount")
        payment_method = params.get("payment_method", "")

        if not bill_id:
            return ToolResult(success=False, error="Bill ID is required")
        if not isinstance(amount, (int, float)) or amount <= 0:
            return ToolResult(success=False, error="Payment amount must be positive")
        if payment_method not in PAYMENT_FEES:
            return ToolResult(
                success=False, error=f"Unsupported payment method '{payment_method}'"
            )

        await self._simulate_latency()
        prefix = "DRY-RUN" if self.dry_run else "TXN"
        response = {
            "transaction_id": f"{prefix}-{uuid4().hex[:12]}",
            "status": "success",
            "bill_id": bill_id,
            "amount": float(amount),
            "fee": calculate_fee(float(amount), payment_method),
            "confirmation_number": f"CONF-{uuid4().hex[:9].upper()}",
            "processed_at": datetime.now(timezone.utc),
        }

        logger.info(
            "payment_executed",
            bill_id=bill_id,
            transaction_id=response["transaction_id"],
            dry_run=self.dry_run,
        )
        return ToolResult(
            success=True,
            data=response,
            metadata={"dry_run": self.dry_run, "payment_method": payment_method},
        )
