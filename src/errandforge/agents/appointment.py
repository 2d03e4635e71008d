"""Appointment agent: reminds about upcoming appointments and manages them."""

from datetime import timedelta
from typing import Optional
from uuid import uuid4

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
from errandforge.tasks.models import AppointmentActionRequest, WorkItem, WorkItemCategory
from errandforge.tools.email_scanner import EmailScannerTool
from errandforge.tools.models import Appointment

logger = get_logger(__name__)

_STATUS_BY_ACTION = {
    "reschedule": "scheduled",
    "cancel": "cancelled",
    "confirm": "confirmed",
}


class AppointmentAgent(ScanningAgent):
    """Tracks appointments and applies schedule changes."""

    agent_id = "appointment-agent"
    agent_type = "appointment"
    categories = frozenset(
        {WorkItemCategory.APPOINTMENT_SCAN, WorkItemCategory.APPOINTMENT_SCHEDULING}
    )
    scan_category = WorkItemCategory.APPOINTMENT_SCAN

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
                WorkItemCategory.APPOINTMENT_SCAN: self._scan_appointments,
                WorkItemCategory.APPOINTMENT_SCHEDULING: self._schedule,
            },
        )

    async def _scan_appointments(self, item: WorkItem, session_id: str) -> AgentResult:
        scan = await self.call_tool(self.email_scanner, {"categories": ["appointments"]})
        if not scan.success:
            return AgentResult.tool_failure(self.email_scanner.name, scan.error)

        appointments = [Appointment.model_validate(raw) for raw in scan.data.get("appointments", [])]
        now = utcnow()
        horizon = now + timedelta(days=self.config.appointment_window_days)

        upcoming: list[Appointment] = []
        for appointment in appointments:
            await self.store_memory(
                MemoryType.APPOINTMENT, appointment.model_dump(), {"source": "email"}
            )
            if appointment.status != "cancelled" and now <= appointment.date_time <= horizon:
                upcoming.append(appointment)

        logger.info("appointments_scanned", count=len(appointments), upcoming=len(upcoming))

        for appointment in upcoming:
            days = days_until(appointment.date_time, now)
            self.send_message(
                session_id,
                MessageType.REMINDER_SET,
                DISPATCHER_ID,
                ReminderPayload(
                    message=f"{appointment.title} with {appointment.provider} in {days} days",
                    kind="appointment",
                    item_id=appointment.id,
                    due_date=appointment.date_time,
                    details={"location": appointment.location},
                ),
                correlation_id=item.id,
            )

        return AgentResult.completed(
            appointments_found=len(appointments),
            upcoming_appointments=len(upcoming),
            upcoming=[appointment.id for appointment in upcoming],
        )

    async def _schedule(self, item: WorkItem, session_id: str) -> AgentResult:
        request = self.parse_request(AppointmentActionRequest, item)
        logger.info(
            "appointment_action_started",
            appointment_id=request.appointment_id,
            action=request.action,
        )

        if request.action == "schedule":
            if request.date_time is None:
                return AgentResult.failed(
                    "Scheduling requires a date_time", error_code="missing_date_time"
                )
            appointment = Appointment(
                id=request.appointment_id or f"appt-{uuid4().hex[:12]}",
                title=request.title or item.title,
                provider=request.provider or "unknown",
                date_time=request.date_time,
                location=request.location or "",
            )
            await self.store_memory(
                MemoryType.APPOINTMENT, appointment.model_dump(), {"source": "user"}
            )
        else:
            record = (
                await self.find_memory(MemoryType.APPOINTMENT, request.appointment_id)
                if request.appointment_id
                else None
            )
            if record is None:
                return AgentResult.failed(
                    f"Appointment '{request.appointment_id}' not found",
                    error_code="appointment_not_found",
                )
            changes: dict[str, object] = {"status": _STATUS_BY_ACTION[request.action]}
            if request.action == "reschedule" and request.date_time is not None:
                changes["date_time"] = request.date_time
            appointment = Appointment.model_validate({**record.content, **changes})
            await self.memory.update(record.id, content=appointment.model_dump())

        self.send_message(
            session_id,
            MessageType.TASK_COMPLETED,
            DISPATCHER_ID,
            TaskCompletedPayload(
                work_item_id=item.id,
                result={"action": request.action, "appointment_id": appointment.id},
            ),
            correlation_id=item.id,
        )
        return AgentResult.completed(action=request.action, appointment=appointment.model_dump())
