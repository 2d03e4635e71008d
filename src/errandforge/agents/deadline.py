"""Deadline agent: merges every tracked date into one timeline."""

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import ValidationError

from errandforge.agents.base import BaseAgent
from errandforge.agents.dates import as_utc, days_until, utcnow
from errandforge.agents.messages import (
    DISPATCHER_ID,
    DeadlineUpcomingPayload,
    MessageType,
    ReminderPayload,
)
from errandforge.agents.results import AgentResult
from errandforge.memory.models import MemoryRecord, MemoryType
from errandforge.observability.logging import get_logger
from errandforge.tasks.models import WorkItem, WorkItemCategory

logger = get_logger(__name__)

# Memory type -> (content date field, content title field)
DEADLINE_SOURCES: dict[MemoryType, tuple[str, str]] = {
    MemoryType.BILL: ("due_date", "provider"),
    MemoryType.DOCUMENT: ("expiration_date", "name"),
    MemoryType.SUBSCRIPTION: ("next_billing_date", "service"),
    MemoryType.APPOINTMENT: ("date_time", "title"),
}


def find_conflicts(deadlines: list[dict[str, Any]], threshold: int) -> list[dict[str, Any]]:
    """Group deadlines by UTC calendar day and report crowded days.

    Args:
        deadlines: Deadline entries with an aware ``date`` datetime
        threshold: A day with more than this many deadlines is a conflict

    Returns:
        One conflict entry per crowded day, earliest day first
    """
    by_day: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for deadline in deadlines:
        by_day[deadline["date"].date().isoformat()].append(deadline)
    return [
        {
            "date": day,
            "items": [entry["title"] for entry in entries],
            "severity": "high",
        }
        for day, entries in sorted(by_day.items())
        if len(entries) > threshold
    ]


class DeadlineAgent(BaseAgent):
    """Aggregates deadlines from every other agent's records.

    Reads the bill, document, subscription and appointment buckets of the
    memory store, normalizes each record's date, orders the result in time,
    flags crowded days and reminds the user about deadlines in the next
    few days. Deadline notices other agents sent are recorded as task
    history first.
    """

    agent_id = "deadline-agent"
    agent_type = "deadline"
    categories = frozenset({WorkItemCategory.DEADLINE_TRACKING})

    async def execute(self, item: WorkItem, session_id: str) -> AgentResult:
        return await self._run_category(
            item, session_id, {WorkItemCategory.DEADLINE_TRACKING: self._track_deadlines}
        )

    async def _track_deadlines(self, item: WorkItem, session_id: str) -> AgentResult:
        registered = await self._register_notices(session_id)

        deadlines: list[dict[str, Any]] = []
        for memory_type, (date_field, title_field) in DEADLINE_SOURCES.items():
            for record in await self.memory.retrieve_by_type(memory_type):
                entry = self._to_deadline(record, date_field, title_field)
                if entry is not None:
                    deadlines.append(entry)
        deadlines.sort(key=lambda entry: entry["date"])

        conflicts = find_conflicts(deadlines, self.config.conflict_threshold)
        if conflicts:
            logger.warning("deadline_conflicts_found", days=[c["date"] for c in conflicts])

        now = utcnow()
        horizon = now + timedelta(days=self.config.reminder_window_days)
        upcoming = [entry for entry in deadlines if now <= entry["date"] <= horizon]
        for entry in upcoming:
            days = days_until(entry["date"], now)
            self.send_message(
                session_id,
                MessageType.REMINDER_SET,
                DISPATCHER_ID,
                ReminderPayload(
                    message=f"{entry['title']} is due in {days} days",
                    kind=entry["kind"],
                    item_id=entry["item_id"],
                    due_date=entry["date"],
                ),
                correlation_id=item.id,
            )

        logger.info(
            "deadlines_tracked",
            total=len(deadlines),
            upcoming=len(upcoming),
            conflicts=len(conflicts),
        )
        return AgentResult.completed(
            total_deadlines=len(deadlines),
            upcoming_deadlines=[_serialize(entry) for entry in upcoming],
            conflicts=conflicts,
            next_deadline=_serialize(deadlines[0]) if deadlines else None,
            deadlines_registered=registered,
        )

    async def _register_notices(self, session_id: str) -> int:
        """Record deadline notices from the inbox as task history."""
        count = 0
        for message in self.receive_messages(session_id, MessageType.DEADLINE_UPCOMING):
            try:
                notice = message.parse_payload(DeadlineUpcomingPayload)
            except ValidationError as exc:
                logger.warning(
                    "deadline_notice_invalid", message_id=message.id, error=str(exc)
                )
                continue
            await self.store_memory(
                MemoryType.TASK_HISTORY,
                {"type": "deadline_registered", "sender": message.sender, **notice.model_dump()},
            )
            count += 1
        return count

    def _to_deadline(
        self, record: MemoryRecord, date_field: str, title_field: str
    ) -> Optional[dict[str, Any]]:
        content = record.content
        if not isinstance(content, dict):
            return None
        if record.memory_type == MemoryType.BILL and content.get("is_paid"):
            return None
        when = as_utc(content.get(date_field))
        if when is None:
            return None
        return {
            "kind": record.memory_type.value,
            "item_id": content.get("id", record.id),
            "title": str(content.get(title_field, record.id)),
            "date": when,
            "memory_id": record.id,
        }


def _serialize(entry: dict[str, Any]) -> dict[str, Any]:
    date: datetime = entry["date"]
    return {**entry, "date": date.isoformat()}
