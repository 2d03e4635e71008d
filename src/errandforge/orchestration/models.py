"""Models produced by the dispatcher."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from errandforge.agents.messages import MessageType
from errandforge.agents.results import AgentResult, AgentResultStatus
from errandforge.tasks.models import WorkItemCategory, WorkItemStatus


@dataclass
class ExecutionOutcome:
    """Result of dispatching one work item.

    Attributes:
        work_item_id: Dispatched work item
        category: Category the item was routed by
        status: Work item status after dispatch
        success: Whether the work item's goal was reached
        agent_id: Agent that executed the item (None if routing failed)
        result: Agent result (None if the agent raised)
        error: Failure reason
        error_code: Machine-readable failure code
        trace_id: Trace of the dispatch span
        messages_relayed: Messages relayed after the execution
        duration_ms: Wall time of the dispatch in milliseconds
    """

    work_item_id: str
    category: WorkItemCategory
    status: WorkItemStatus
    success: bool
    agent_id: Optional[str] = None
    result: Optional[AgentResult] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    trace_id: Optional[str] = None
    messages_relayed: int = 0
    duration_ms: float = 0.0

    @property
    def needs_input(self) -> bool:
        return self.result is not None and self.result.status == AgentResultStatus.AWAITING_INPUT

    def to_dict(self) -> dict[str, Any]:
        return {
            "work_item_id": self.work_item_id,
            "category": self.category.value,
            "status": self.status.value,
            "success": self.success,
            "agent_id": self.agent_id,
            "result": self.result.model_dump() if self.result else None,
            "error": self.error,
            "error_code": self.error_code,
            "trace_id": self.trace_id,
            "messages_relayed": self.messages_relayed,
            "duration_ms": self.duration_ms,
        }


class Notice(BaseModel):
    """A user-facing item surfaced while relaying messages.

    Attributes:
        id: Unique notice identifier
        message_id: Message the notice was created from
        type: Type of that message
        sender: Agent that sent the message
        summary: One-line human-readable description
        payload: The message payload
        needs_input: Whether the user has to answer before work can continue
        work_item_id: Work item the notice relates to
        created_at: When the notice was created
    """

    id: str = Field(default_factory=lambda: f"notice-{uuid4().hex[:12]}")
    message_id: str
    type: MessageType
    sender: str
    summary: str
    payload: dict[str, Any] = Field(default_factory=dict)
    needs_input: bool = False
    work_item_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
