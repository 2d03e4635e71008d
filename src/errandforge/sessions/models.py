"""Session models.

A session tracks one run of the errand system: the state each agent
reported, the work items processed, every message relayed and the
checkpoints taken along the way.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from errandforge.agents.messages import Message
from errandforge.memory.models import MemoryRecord
from errandforge.tasks.models import WorkItem


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AgentStatus(str, Enum):
    """Lifecycle status an agent reports to its session."""

    IDLE = "idle"
    RUNNING = "running"
    WAITING = "waiting"
    ERROR = "error"


class AgentState(BaseModel):
    """State an agent reported for a session.

    Attributes:
        agent_id: Reporting agent
        status: Current agent status
        current_work_item: Work item being (or last) executed
        memory_snapshot: Compacted memories visible when execution started
        last_update: When the state was reported
        metadata: Extra state (error reason, result status, ...)
    """

    agent_id: str
    status: AgentStatus
    current_work_item: Optional[WorkItem] = None
    memory_snapshot: list[MemoryRecord] = Field(default_factory=list)
    last_update: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)


class Checkpoint(BaseModel):
    """Snapshot of a session at a point in time.

    Agent states and work items are deep copies taken when the checkpoint
    was created; later session changes never alter them.
    """

    name: str
    timestamp: datetime = Field(default_factory=_utcnow)
    agent_states: dict[str, AgentState] = Field(default_factory=dict)
    work_items: dict[str, WorkItem] = Field(default_factory=dict)
    message_count: int = 0


class Session(BaseModel):
    """One run of the errand system."""

    id: str
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    ended_at: Optional[datetime] = None
    agent_states: dict[str, AgentState] = Field(default_factory=dict)
    work_items: dict[str, WorkItem] = Field(default_factory=dict)
    messages: list[Message] = Field(default_factory=list)
    checkpoints: list[Checkpoint] = Field(default_factory=list)


class SessionSummary(BaseModel):
    """Aggregate view of a session."""

    session_id: str
    duration_ms: float
    total_work_items: int
    work_items_by_status: dict[str, int]
    active_agents: list[str]
    message_count: int
    checkpoint_count: int
    ended: bool = False
