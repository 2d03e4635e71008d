"""In-memory session store.

This module provides the SessionStore, a thread-safe repository of
sessions. Reads return deep copies, so callers never mutate stored state
except through the store's operations.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional, Union
from uuid import uuid4

from errandforge.agents.errors import (
    SessionNotFoundError,
    WorkItemNotFoundError,
    WorkItemStateError,
)
from errandforge.agents.messages import Message, MessageType
from errandforge.observability.logging import get_logger
from errandforge.sessions.models import AgentState, Checkpoint, Session, SessionSummary
from errandforge.tasks.models import WorkItem, WorkItemCategory, WorkItemStatus

logger = get_logger(__name__)

_IMMUTABLE_WORK_ITEM_FIELDS = {"id", "created_at", "updated_at"}


class SessionStore:
    """Thread-safe in-memory store of sessions.

    Uses a dictionary for storage with one asyncio lock, so every operation
    is atomic with respect to concurrently running agents. Mutations on an
    unknown session raise SessionNotFoundError (except update_agent_state,
    which reports it by returning False); reads return None or empty lists.

    Attributes:
        _sessions: Dictionary mapping session_id to Session objects
        _lock: Asyncio lock for atomic operations
    """

    def __init__(self) -> None:
        """Initialize the in-memory session store."""
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def create(self, session_id: Optional[str] = None) -> str:
        """Create a new session.

        Args:
            session_id: Identifier to use (generated when None)

        Returns:
            Identifier of the new session

        Raises:
            ValueError: If a session with the same ID already exists
        """
        session_id = session_id or f"session-{uuid4().hex[:12]}"
        async with self._lock:
            if session_id in self._sessions:
                raise ValueError(f"Session with ID {session_id} already exists")
            self._sessions[session_id] = Session(id=session_id)

        logger.info("session_created", session_id=session_id)
        return session_id

    async def get(self, session_id: str) -> Optional[Session]:
        """Retrieve a copy of a session, None if it does not exist."""
        async with self._lock:
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session else None

    async def exists(self, session_id: str) -> bool:
        async with self._lock:
            return session_id in self._sessions

    async def update_agent_state(self, session_id: str, state: AgentState) -> bool:
        """Record the latest state of an agent.

        Returns:
            True if stored, False if the session does not exist
        """
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            session.agent_states[state.agent_id] = state.model_copy(deep=True)
            session.updated_at = datetime.now(timezone.utc)

        logger.debug(
            "agent_state_updated",
            session_id=session_id,
            agent_id=state.agent_id,
            status=state.status.value,
        )
        return True

    async def get_agent_state(self, session_id: str, agent_id: str) -> Optional[AgentState]:
        """Get a copy of an agent's last reported state."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or agent_id not in session.agent_states:
                return None
            return session.agent_states[agent_id].model_copy(deep=True)

    async def add_work_item(self, session_id: str, item: WorkItem) -> None:
        """Add a work item to a session (replacing one with the same id).

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        async with self._lock:
            session = self._require(session_id)
            session.work_items[item.id] = item.model_copy(deep=True)
            session.updated_at = datetime.now(timezone.utc)

        logger.info(
            "work_item_added",
            session_id=session_id,
            work_item_id=item.id,
            category=item.category.value,
        )

    async def update_work_item(self, session_id: str, work_item_id: str, **fields: Any) -> WorkItem:
        """Update the given fields of a work item.

        Only provided fields change; ``updated_at`` is always refreshed. A
        status change must follow the work item lifecycle.

        Args:
            session_id: Session holding the item
            work_item_id: Item to update
            **fields: WorkItem fields to set (status, error, metadata, ...)

        Returns:
            Copy of the updated work item

        Raises:
            SessionNotFoundError: If the session does not exist
            WorkItemNotFoundError: If the item is not in the session
            WorkItemStateError: If the status transition is not allowed
            ValueError: If a field is unknown or cannot be changed
        """
        unknown = set(fields) - set(WorkItem.model_fields)
        frozen = set(fields) & _IMMUTABLE_WORK_ITEM_FIELDS
        if unknown or frozen:
            raise ValueError(f"Cannot update work item fields: {sorted(unknown | frozen)}")
        if "status" in fields:
            fields["status"] = WorkItemStatus(fields["status"])

        async with self._lock:
            session = self._require(session_id)
            item = session.work_items.get(work_item_id)
            if item is None:
                raise WorkItemNotFoundError(work_item_id, session_id)

            new_status = fields.get("status")
            if new_status is not None and not item.can_transition_to(new_status):
                raise WorkItemStateError(work_item_id, item.status.value, new_status.value)

            now = datetime.now(timezone.utc)
            updated = item.model_copy(update={**fields, "updated_at": now}, deep=True)
            session.work_items[work_item_id] = updated
            session.updated_at = now

        logger.debug(
            "work_item_updated",
            session_id=session_id,
            work_item_id=work_item_id,
            status=updated.status.value,
        )
        return updated.model_copy(deep=True)

    async def get_work_item(self, session_id: str, work_item_id: str) -> Optional[WorkItem]:
        """Get a copy of a work item, None if the session or item is unknown."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None or work_item_id not in session.work_items:
                return None
            return session.work_items[work_item_id].model_copy(deep=True)

    async def get_work_items(
        self,
        session_id: str,
        status: Optional[Union[WorkItemStatus, str]] = None,
        category: Optional[Union[WorkItemCategory, str]] = None,
    ) -> list[WorkItem]:
        """List work items of a session, optionally filtered by status and category."""
        status = WorkItemStatus(status) if status is not None else None
        category = WorkItemCategory(category) if category is not None else None
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return []
            return [
                item.model_copy(deep=True)
                for item in session.work_items.values()
                if (status is None or item.status == status)
                and (category is None or item.category == category)
            ]

    async def add_message(self, session_id: str, message: Message) -> None:
        """Append a message to the session log.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        async with self._lock:
            session = self._require(session_id)
            session.messages.append(message.model_copy(deep=True))
            session.updated_at = datetime.now(timezone.utc)

        logger.debug(
            "message_logged",
            session_id=session_id,
            message_type=message.type.value,
            sender=message.sender,
            recipient=message.recipient,
        )

    async def get_messages(
        self,
        session_id: str,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
        message_type: Optional[Union[MessageType, str]] = None,
    ) -> list[Message]:
        """List logged messages of a session in log order, optionally filtered."""
        message_type = MessageType(message_type) if message_type is not None else None
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return []
            return [
                message.model_copy(deep=True)
                for message in session.messages
                if (sender is None or message.sender == sender)
                and (recipient is None or message.recipient == recipient)
                and (message_type is None or message.type == message_type)
            ]

    async def create_checkpoint(self, session_id: str, name: str) -> Checkpoint:
        """Snapshot agent states and work items of a session.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        async with self._lock:
            session = self._require(session_id)
            checkpoint = self._checkpoint(session, name)

        logger.info("checkpoint_created", session_id=session_id, checkpoint=name)
        return checkpoint.model_copy(deep=True)

    async def get_checkpoints(self, session_id: str) -> list[Checkpoint]:
        """List the checkpoints of a session in creation order."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return []
            return [checkpoint.model_copy(deep=True) for checkpoint in session.checkpoints]

    async def summarize(self, session_id: str) -> Optional[SessionSummary]:
        """Summarize a session, None if it does not exist."""
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            by_status = {status.value: 0 for status in WorkItemStatus}
            for item in session.work_items.values():
                by_status[item.status.value] += 1
            end = session.ended_at or datetime.now(timezone.utc)

            return SessionSummary(
                session_id=session.id,
                duration_ms=(end - session.created_at).total_seconds() * 1000,
                total_work_items=len(session.work_items),
                work_items_by_status=by_status,
                active_agents=list(session.agent_states),
                message_count=len(session.messages),
                checkpoint_count=len(session.checkpoints),
                ended=session.ended_at is not None,
            )

    async def end(self, session_id: str) -> SessionSummary:
        """End a session.

        Takes a final ``session_end`` checkpoint and stamps ``ended_at``. The
        session stays retrievable.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        async with self._lock:
            session = self._require(session_id)
            self._checkpoint(session, "session_end")
            session.ended_at = datetime.now(timezone.utc)

        summary = await self.summarize(session_id)
        if summary is None:
            raise SessionNotFoundError(session_id)
        logger.info(
            "session_ended",
            session_id=session_id,
            duration_ms=round(summary.duration_ms, 3),
            work_item_count=summary.total_work_items,
        )
        return summary

    async def delete(self, session_id: str) -> bool:
        """Delete a session.

        Returns:
            True if the session existed, False otherwise
        """
        async with self._lock:
            deleted = self._sessions.pop(session_id, None) is not None
        if deleted:
            logger.info("session_deleted", session_id=session_id)
        return deleted

    async def list_sessions(self) -> list[str]:
        """List the identifiers of all stored sessions in creation order."""
        async with self._lock:
            return list(self._sessions)

    async def clear(self) -> None:
        """Delete every session."""
        async with self._lock:
            self._sessions.clear()
        logger.info("sessions_cleared")

    def _require(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def _checkpoint(self, session: Session, name: str) -> Checkpoint:
        checkpoint = Checkpoint(
            name=name,
            agent_states={k: v.model_copy(deep=True) for k, v in session.agent_states.items()},
            work_items={k: v.model_copy(deep=True) for k, v in session.work_items.items()},
            message_count=len(session.messages),
        )
        session.checkpoints.append(checkpoint)
        session.updated_at = checkpoint.timestamp
        return checkpoint
