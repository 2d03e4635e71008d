"""Work item models and lifecycle.

This module defines the work items the dispatcher routes to agents, their
status lifecycle, and the request payloads that action categories carry in
their metadata.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkItemCategory(str, Enum):
    """Kinds of work an agent can be asked to perform.

    Each agent declares the categories it handles; every category is
    handled by exactly one agent.
    """

    BILL_SCAN = "bill_scan"
    BILL_PAYMENT = "bill_payment"
    DOCUMENT_SCAN = "document_scan"
    DOCUMENT_RENEWAL = "document_renewal"
    SUBSCRIPTION_SCAN = "subscription_scan"
    SUBSCRIPTION_MANAGEMENT = "subscription_management"
    APPOINTMENT_SCAN = "appointment_scan"
    APPOINTMENT_SCHEDULING = "appointment_scheduling"
    DEADLINE_TRACKING = "deadline_tracking"


class Priority(str, Enum):
    """Work item priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class WorkItemStatus(str, Enum):
    """Possible states in a work item lifecycle.

    State transitions:
        pending -> in_progress
        in_progress -> completed | failed
        completed (terminal)
        failed (terminal)
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @classmethod
    def terminal_states(cls) -> set["WorkItemStatus"]:
        """Return set of terminal states that cannot be transitioned from.

        Returns:
            Set of terminal WorkItemStatus values
        """
        return {cls.COMPLETED, cls.FAILED}

    def is_terminal(self) -> bool:
        """Check if this state is terminal.

        Returns:
            True if state is terminal, False otherwise
        """
        return self in self.terminal_states()


_VALID_TRANSITIONS: dict[WorkItemStatus, set[WorkItemStatus]] = {
    WorkItemStatus.PENDING: {WorkItemStatus.IN_PROGRESS},
    WorkItemStatus.IN_PROGRESS: {WorkItemStatus.COMPLETED, WorkItemStatus.FAILED},
}


class WorkItem(BaseModel):
    """A unit of recurring administrative work.

    Attributes:
        id: Unique identifier for the work item
        category: Kind of work, selects the agent
        title: Short human-readable title
        description: Longer description
        priority: Work item priority
        status: Current lifecycle status
        due_date: Optional due date
        assigned_agent: Agent the dispatcher routed the item to
        error: Failure reason when status is failed
        metadata: Free-form data, including the request payload for action categories
        created_at: Timestamp when the item was created
        updated_at: Timestamp of last update
    """

    id: str = Field(default_factory=lambda: f"item-{uuid4().hex[:12]}", min_length=1)
    category: WorkItemCategory
    title: str = Field(default="", max_length=500)
    description: str = Field(default="", max_length=5000)
    priority: Priority = Priority.MEDIUM
    status: WorkItemStatus = WorkItemStatus.PENDING
    due_date: Optional[datetime] = None
    assigned_agent: Optional[str] = None
    error: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def default_title(self) -> "WorkItem":
        """Use the category name when no title is given."""
        if not self.title:
            self.title = self.category.value.replace("_", " ").title()
        return self

    def can_transition_to(self, new_status: WorkItemStatus) -> bool:
        """Check if the work item can move to the given status.

        Staying in the same non-terminal status is allowed, which lets
        callers refresh metadata without changing the lifecycle.

        Args:
            new_status: The target status

        Returns:
            True if the transition is allowed, False otherwise
        """
        if self.status.is_terminal():
            return False
        if new_status == self.status:
            return True
        return new_status in _VALID_TRANSITIONS.get(self.status, set())


class BillPaymentRequest(BaseModel):
    """Request payload of a bill_payment work item."""

    bill_id: str = Field(..., min_length=1)
    amount: float = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1)


class DocumentRenewalRequest(BaseModel):
    """Request payload of a document_renewal work item."""

    document_id: str = Field(..., min_length=1)
    renewal_url: str = Field(..., min_length=1)
    additional_data: dict[str, Any] = Field(default_factory=dict)


class SubscriptionActionRequest(BaseModel):
    """Request payload of a subscription_management work item."""

    subscription_id: str = Field(..., min_length=1)
    action: Literal["cancel", "pause", "remind"]


class AppointmentActionRequest(BaseModel):
    """Request payload of an appointment_scheduling work item."""

    appointment_id: Optional[str] = None
    action: Literal["schedule", "reschedule", "cancel", "confirm"]
    title: Optional[str] = None
    provider: Optional[str] = None
    date_time: Optional[datetime] = None
    location: Optional[str] = None
