"""Subscription agent: tracks recurring spend and manages subscriptions."""

from collections import defaultdict
from datetime import timedelta
from typing import Any, Optional

from errandforge.agents.base import ScanningAgent
from errandforge.agents.dates import days_until, utcnow
from errandforge.agents.messages import (
    DISPATCHER_ID,
    MessageType,
    ReminderPayload,
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
from errandforge.tasks.models import SubscriptionActionRequest, WorkItem, WorkItemCategory
from errandforge.tools.email_scanner import EmailScannerTool
from errandforge.tools.models import Subscription

logger = get_logger(__name__)

_CYCLES_PER_YEAR = {"monthly": 12, "quarterly": 4, "annually": 1}


def analyze_spend(subscriptions: list[Subscription]) -> dict[str, Any]:
    """Summarize subscription spend and spot overlapping services.

    Returns:
        Dictionary with monthly and annual totals, the yearly projection,
        spend per category, categories with more than one subscription and
        recommendations
    """
    by_cycle: dict[str, float] = defaultdict(float)
    by_category: dict[str, float] = defaultdict(float)
    grouped: dict[str, list[str]] = defaultdict(list)
    for sub in subscriptions:
        by_cycle[sub.billing_cycle] += sub.amount
        by_category[sub.category] += sub.amount
        grouped[sub.category].append(sub.id)

    duplicates = [
        {"category": category, "subscriptions": ids}
        for category, ids in grouped.items()
        if len(ids) > 1
    ]
    yearly = sum(total * _CYCLES_PER_YEAR[cycle] for cycle, total in by_cycle.items())
    return {
        "total_monthly_spend": round(by_cycle["monthly"], 2),
        "total_annual_spend": round(by_cycle["annually"], 2),
        "total_yearly_projection": round(yearly, 2),
        "spend_by_category": {k: round(v, 2) for k, v in by_category.items()},
        "potential_duplicates": duplicates,
        "recommendations": (
            [f"Consider consolidating {len(duplicates)} duplicate categories"]
            if duplicates
            else []
        ),
    }


class SubscriptionAgent(ScanningAgent):
    """Monitors subscriptions, flags renewals and applies user actions."""

    agent_id = "subscription-agent"
    agent_type = "subscription"
    categories = frozenset(
        {WorkItemCategory.SUBSCRIPTION_SCAN, WorkItemCategory.SUBSCRIPTION_MANAGEMENT}
    )
    scan_category = WorkItemCategory.SUBSCRIPTION_SCAN

    def __init__(
        self,
        memory: MemoryStore,
        sessions: SessionStore,
        tracer: Tracer,
        metrics: MetricsCollector,
        config: Optional[ErrandConfig] = None,
        email_scanner: Optional[EmailScannerTool] = None,
    ) -> None:
        super().__init__(memory, sessions, tracer, metrics, config)
        self.email_scanner = email_scanner or EmailScannerTool(
            latency_seconds=self.config.tool_latency_seconds
        )

    async def execute(self, item: WorkItem, session_id: str) -> AgentResult:
        return await self._run_category(
            item,
            session_id,
            {
                WorkItemCategory.SUBSCRIPTION_SCAN: self._scan_subscriptions,
                WorkItemCategory.SUBSCRIPTION_MANAGEMENT: self._manage_subscription,
            },
        )

    async def _scan_subscriptions(self, item: WorkItem, session_id: str) -> AgentResult:
        scan = await self.call_tool(self.email_scanner, {"categories": ["subscriptions"]})
        if not scan.success:
            return AgentResult.tool_failure(self.email_scanner.name, scan.error)

        subscriptions = [Subscription.model_validate(raw) for raw in scan.data.get("subscriptions", [])]
        for sub in subscriptions:
            await self.store_memory(MemoryType.SUBSCRIPTION, sub.model_dump(), {"source": "email"})
            self.metrics.record_subscription("added")

        analysis = analyze_spend(subscriptions)

        now = utcnow()
        horizon = now + timedelta(days=self.config.subscription_renewal_window_days)
        renewals = [
            sub
            for sub in subscriptions
            if sub.auto_renew and sub.status == "active" and sub.next_billing_date <= horizon
        ]
        logger.info(
            "subscriptions_scanned", count=len(subscriptions), upcoming_renewals=len(renewals)
        )

        for sub in renewals:
            days = days_until(sub.next_billing_date, now)
            self.send_message(
                session_id,
                MessageType.REMINDER_SET,
                DISPATCHER_ID,
                ReminderPayload(
                    message=f"{sub.service} will auto-renew in {days} days",
                    kind="subscription",
                    item_id=sub.id,
                    due_date=sub.next_billing_date,
                    amount=sub.amount,
                ),
                correlation_id=item.id,
            )

        return AgentResult.completed(
            subscriptions_tracked=len(subscriptions),
            upcoming_renewals=len(renewals),
            analysis=analysis,
        )

    async def _manage_subscription(self, item: WorkItem, session_id: str) -> AgentResult:
        request = self.parse_request(SubscriptionActionRequest, item)
        logger.info(
            "subscription_action_started",
            subscription_id=request.subscription_id,
            action=request.action,
        )

        record = await self.find_memory(MemoryType.SUBSCRIPTION, request.subscription_id)
        if record is None:
            return AgentResult.failed(
                f"Subscription '{request.subscription_id}' not found",
                error_code="subscription_not_found",
            )
        subscription = Subscription.model_validate(record.content)

        if request.action == "remind":
            self.send_message(
                session_id,
                MessageType.REMINDER_SET,
                DISPATCHER_ID,
                ReminderPayload(
                    message=(
                        f"Reminder: {subscription.service} renews on "
                        f"{subscription.next_billing_date.date().isoformat()}"
                    ),
                    kind="subscription",
                    item_id=subscription.id,
                    due_date=subscription.next_billing_date,
                    amount=subscription.amount,
                ),
                correlation_id=item.id,
            )
            self.metrics.record_subscription("reminded")
            return AgentResult.completed(action="reminded", subscription=subscription.model_dump())

        if request.action == "cancel":
            subscription = subscription.model_copy(update={"auto_renew": False, "status": "cancelled"})
            past_tense = "cancelled"
        else:
            subscription = subscription.model_copy(update={"status": "paused"})
            past_tense = "paused"

        await self.memory.update(record.id, content=subscription.model_dump())
        self.metrics.record_subscription(past_tense)
        self.send_message(
            session_id,
            MessageType.TASK_COMPLETED,
            DISPATCHER_ID,
            TaskCompletedPayload(
                work_item_id=item.id,
                result={"message": f"Subscription {subscription.service} {past_tense}"},
            ),
            correlation_id=item.id,
        )
        return AgentResult.completed(action=past_tense, subscription=subscription.model_dump())
