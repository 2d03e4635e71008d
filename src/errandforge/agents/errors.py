"""Custom exceptions for the errand agent system.

This module defines the exception hierarchy for routing, agent execution,
session and memory errors, providing structured error handling with
machine-readable error codes.
"""

from typing import Optional


class ErrandError(Exception):
    """Base exception for all errand system errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable error message
    """

    def __init__(self, message: str, code: str) -> None:
        """Initialize errand error.

        Args:
            message: Human-readable error description
            code: Machine-readable error code
        """
        super().__init__(message)
        self.message = message
        self.code = code


class RoutingError(ErrandError):
    """Raised when no agent is registered for a work item category."""

    def __init__(self, category: str) -> None:
        super().__init__(
            message=f"No agent registered for category '{category}'",
            code="routing_error",
        )
        self.category = category


class HandlerFault(ErrandError):
    """Raised when an agent fails while executing a work item.

    The dispatcher raises this with the agent's original exception chained
    as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        agent_id: Optional[str] = None,
        work_item_id: Optional[str] = None,
        code: str = "handler_fault",
    ) -> None:
        """Initialize handler fault.

        Args:
            message: Description of the failure
            agent_id: Agent that failed
            work_item_id: Work item being executed
            code: Machine-readable error code
        """
        super().__init__(message=message, code=code)
        self.agent_id = agent_id
        self.work_item_id = work_item_id


class InvalidWorkItemError(HandlerFault):
    """Raised when a work item's request payload is missing or invalid."""

    def __init__(
        self,
        message: str,
        agent_id: Optional[str] = None,
        work_item_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message,
            agent_id=agent_id,
            work_item_id=work_item_id,
            code="invalid_work_item",
        )


class SessionNotFoundError(ErrandError):
    """Raised when a session cannot be found."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            message=f"Session '{session_id}' not found",
            code="session_not_found",
        )
        self.session_id = session_id


class WorkItemNotFoundError(ErrandError):
    """Raised when a work item cannot be found in a session."""

    def __init__(self, work_item_id: str, session_id: Optional[str] = None) -> None:
        message = f"Work item '{work_item_id}' not found"
        if session_id:
            message += f" in session '{session_id}'"
        super().__init__(message=message, code="work_item_not_found")
        self.work_item_id = work_item_id
        self.session_id = session_id


class WorkItemStateError(ErrandError):
    """Raised when a work item status transition is not allowed.

    This error indicates that the requested status change would leave the
    pending -> in_progress -> completed|failed lifecycle, for example
    moving a completed item back to in_progress.
    """

    def __init__(self, work_item_id: str, current_status: str, new_status: str) -> None:
        """Initialize work item state error.

        Args:
            work_item_id: The ID of the work item
            current_status: Status the item is in
            new_status: Status that was requested
        """
        super().__init__(
            message=(
                f"Cannot move work item '{work_item_id}' from '{current_status}' "
                f"to '{new_status}'"
            ),
            code="invalid_work_item_state",
        )
        self.work_item_id = work_item_id
        self.current_status = current_status
        self.new_status = new_status


class AgentNotFoundError(ErrandError):
    """Raised when an agent cannot be found in the registry."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(
            message=f"Agent '{agent_id}' not found",
            code="agent_not_found",
        )
        self.agent_id = agent_id


class DuplicateAgentError(ErrandError):
    """Raised when registering an agent id or category that is already taken."""

    def __init__(self, agent_id: str, category: Optional[str] = None) -> None:
        if category:
            message = f"Category '{category}' is already handled, cannot register '{agent_id}'"
        else:
            message = f"Agent '{agent_id}' is already registered"
        super().__init__(message=message, code="duplicate_agent")
        self.agent_id = agent_id
        self.category = category


class MemoryRecordNotFoundError(ErrandError):
    """Raised when a memory record cannot be found."""

    def __init__(self, memory_id: str) -> None:
        super().__init__(
            message=f"Memory record '{memory_id}' not found",
            code="memory_not_found",
        )
        self.memory_id = memory_id
