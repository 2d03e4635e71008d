"""Work item models for the errand dispatcher.

This module provides the work item model, its status lifecycle and the
request payloads carried by action categories.
"""

from errandforge.tasks.models import (
    AppointmentActionRequest,
    BillPaymentRequest,
    DocumentRenewalRequest,
    Priority,
    SubscriptionActionRequest,
    WorkItem,
    WorkItemCategory,
    WorkItemStatus,
)

__all__ = [
    "AppointmentActionRequest",
    "BillPaymentRequest",
    "DocumentRenewalRequest",
    "Priority",
    "SubscriptionActionRequest",
    "WorkItem",
    "WorkItemCategory",
    "WorkItemStatus",
]
