"""Session tracking for errand runs.

Provides the SessionStore and the models it keeps: sessions, agent states
and checkpoints.
"""

from errandforge.sessions.models import (
    AgentState,
    AgentStatus,
    Checkpoint,
    Session,
    SessionSummary,
)
from errandforge.sessions.store import SessionStore

__all__ = [
    "AgentState",
    "AgentStatus",
    "Checkpoint",
    "Session",
    "SessionStore",
    "SessionSummary",
]
