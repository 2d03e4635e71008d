"""Memory record models.

This module defines the long-term memory record stored by the MemoryStore
and the closed set of memory types used to bucket records.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MemoryType(str, Enum):
    """Buckets of long-term memory records."""

    BILL = "bill"
    DOCUMENT = "document"
    SUBSCRIPTION = "subscription"
    APPOINTMENT = "appointment"
    PREFERENCE = "preference"
    TASK_HISTORY = "task_history"


class MemoryRecord(BaseModel):
    """A single long-term memory record.

    Attributes:
        id: Unique record identifier
        memory_type: Bucket the record belongs to
        content: Opaque record content (bill, document, preference, ...)
        embedding: Text embedding of the content, used for query retrieval
        access_count: Number of times the record was returned by a retrieval
        last_accessed: Timestamp of the last retrieval (creation time initially)
        created_at: Creation timestamp
        metadata: Free-form metadata
    """

    id: str
    memory_type: MemoryType
    content: Any
    embedding: Optional[list[float]] = None
    access_count: int = Field(default=0, ge=0)
    last_accessed: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)
