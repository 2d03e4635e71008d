"""Agent execution results."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class AgentResultStatus(str, Enum):
    """Outcome of an agent execution."""

    COMPLETED = "completed"
    AWAITING_INPUT = "awaiting_input"
    FAILED = "failed"


class AgentResult(BaseModel):
    """What an agent returns from executing a work item.

    A failed tool call is an ordinary result (``success=False``), not an
    exception. Awaiting input leaves the work item in progress until the
    user supplies the missing data.

    Attributes:
        status: Outcome of the execution
        success: Whether the work item's goal was reached
        data: Agent-specific result data
        error: Failure reason when not successful
        error_code: Machine-readable failure code
    """

    status: AgentResultStatus
    success: bool
    data: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def completed(cls, **data: Any) -> "AgentResult":
        """Successful result carrying the given data."""
        return cls(status=AgentResultStatus.COMPLETED, success=True, data=data)

    @classmethod
    def awaiting_input(cls, missing_fields: list[str], **data: Any) -> "AgentResult":
        """Result of a workflow paused until the user supplies missing fields."""
        return cls(
            status=AgentResultStatus.AWAITING_INPUT,
            success=False,
            data={"missing_fields": missing_fields, **data},
        )

    @classmethod
    def tool_failure(cls, tool_name: str, error: Optional[str]) -> "AgentResult":
        """Failed result caused by a tool reporting an error."""
        return cls(
            status=AgentResultStatus.FAILED,
            success=False,
            error=f"{tool_name}: {error or 'unknown error'}",
            error_code="tool_failure",
            data={"tool": tool_name},
        )

    @classmethod
    def failed(cls, error: str, error_code: str = "failed", **data: Any) -> "AgentResult":
        """Failed result with a reason."""
        return cls(
            status=AgentResultStatus.FAILED,
            success=False,
            error=error,
            error_code=error_code,
            data=data,
        )
