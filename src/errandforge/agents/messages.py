"""Messages exchanged between agents and the dispatcher.

Agents never call each other directly. They append messages to their own
outbox; the dispatcher collects them, records them in the session log and
either delivers them to the recipient agent's inbox or acts on them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field

DISPATCHER_ID = "dispatcher"
DEADLINE_AGENT_ID = "deadline-agent"

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageType(str, Enum):
    """Closed set of message kinds."""

    TASK_DETECTED = "task_detected"
    DEADLINE_UPCOMING = "deadline_upcoming"
    PAYMENT_REQUIRED = "payment_required"
    FORM_COMPLETED = "form_completed"
    REMINDER_SET = "reminder_set"
    TASK_COMPLETED = "task_completed"
    AGENT_QUERY = "agent_query"
    AGENT_RESPONSE = "agent_response"


class Message(BaseModel):
    """An asynchronous message between agents.

    Attributes:
        id: Unique message identifier
        type: Message kind
        sender: Sending agent id
        recipient: Receiving agent id, or "dispatcher"
        timestamp: When the message was created
        payload: Message body (shape depends on type)
        correlation_id: Work item or request the message relates to
    """

    id: str = Field(default_factory=lambda: f"msg-{uuid4().hex[:12]}")
    type: MessageType
    sender: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)
    timestamp: datetime = Field(default_factory=_utcnow)
    payload: dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None

    def parse_payload(self, model: type[PayloadT]) -> PayloadT:
        """Validate the payload against a payload model.

        Raises:
            pydantic.ValidationError: If the payload does not match
        """
        return model.model_validate(self.payload)


class PaymentRequiredPayload(BaseModel):
    """A bill needs to be paid soon."""

    bill_id: str
    provider: str
    amount: float
    due_date: datetime


class DeadlineUpcomingPayload(BaseModel):
    """Something tracked by an agent is due soon."""

    kind: Literal["bill", "document", "subscription", "appointment"]
    item_id: str
    title: str
    due_date: datetime
    days_until: int
    details: dict[str, Any] = Field(default_factory=dict)


class ReminderPayload(BaseModel):
    """A reminder for the user."""

    message: str
    kind: Optional[str] = None
    item_id: Optional[str] = None
    due_date: Optional[datetime] = None
    amount: Optional[float] = None
    details: dict[str, Any] = Field(default_factory=dict)


class TaskCompletedPayload(BaseModel):
    """A work item finished as a side effect of an agent action."""

    work_item_id: str
    result: dict[str, Any] = Field(default_factory=dict)


class AgentQueryPayload(BaseModel):
    """An agent needs input from the user to continue a work item."""

    work_item_id: str
    question: str
    missing_fields: list[str] = Field(default_factory=list)
    filled_fields: dict[str, Any] = Field(default_factory=dict)


class FormCompletedPayload(BaseModel):
    """A renewal form is filled and ready for submission."""

    work_item_id: str
    document_id: str
    form_url: str
    ready_for_submission: bool = True
