"""Domain records extracted by the tools.

These are the shapes the tools return and the agents store as memory
record content (as plain dictionaries via ``model_dump()``).
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Naive datetimes are read as UTC
UtcDatetime = Annotated[datetime, AfterValidator(_to_utc)]


class Bill(BaseModel):
    """A bill found in the mailbox."""

    id: str
    provider: str
    amount: float = Field(..., ge=0)
    due_date: UtcDatetime
    category: str
    is_paid: bool = False
    account_number: Optional[str] = None
    pdf_path: Optional[str] = None


class RenewalNotice(BaseModel):
    """A document renewal notice found in the mailbox."""

    type: Literal["license", "passport", "insurance", "registration", "other"]
    name: str
    expiration_date: UtcDatetime
    issuer: str
    renewal_url: Optional[str] = None


class Document(BaseModel):
    """A tracked identity or insurance document."""

    id: str
    type: Literal["license", "passport", "insurance", "registration", "other"]
    name: str
    expiration_date: UtcDatetime
    issuer: str
    document_number: str
    renewal_url: Optional[str] = None


class Subscription(BaseModel):
    """A recurring subscription."""

    id: str
    service: str
    amount: float = Field(..., ge=0)
    billing_cycle: Literal["monthly", "quarterly", "annually"]
    next_billing_date: UtcDatetime
    auto_renew: bool = True
    category: str
    status: Literal["active", "paused", "cancelled"] = "active"


class Appointment(BaseModel):
    """A scheduled appointment."""

    id: str
    title: str
    provider: str
    date_time: UtcDatetime
    location: str
    status: Literal["scheduled", "confirmed", "cancelled", "completed"] = "scheduled"
    notes: Optional[str] = None


class EmailInbox(BaseModel):
    """Everything the email scanner can find, grouped by category."""

    bills: list[Bill] = Field(default_factory=list)
    renewal_notices: list[RenewalNotice] = Field(default_factory=list)
    subscriptions: list[Subscription] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)
