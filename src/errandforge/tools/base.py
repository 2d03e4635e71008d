"""Base tool interface and result model.

Agents reach the outside world (mailbox, documents, web forms, payment
providers) only through tools implementing BaseTool. A failed tool call is
reported as a ToolResult with ``success=False``, never as an exception.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, Field


class ToolResult(BaseModel):
    """Result of a tool execution."""

    success: bool = Field(description="Whether the tool execution succeeded")
    data: dict[str, Any] = Field(
        default_factory=dict, description="Result data from execution"
    )
    error: Optional[str] = Field(default=None, description="Error message if execution failed")
    metadata: dict[str, Any] = Field(
        default_factory=dict, description="Execution metadata (source, dry run, ...)"
    )

    def model_post_init(self, __context: Any) -> None:
        """Validate error is present when success is False."""
        if not self.success and not self.error:
            raise ValueError("Error message is required when success is False")


class BaseTool(ABC):
    """Abstract base class for all tools.

    Subclasses set ``name`` and ``description`` and implement ``execute``.
    The optional latency simulates the round trip to the external system
    and is the point where concurrent agents interleave.
    """

    name: str = ""
    description: str = ""

    def __init__(self, latency_seconds: float = 0.0) -> None:
        self.latency_seconds = latency_seconds

    @abstractmethod
    async def execute(self, params: dict[str, Any]) -> ToolResult:
        """Execute the tool with given parameters.

        Args:
            params: Tool-specific parameters

        Returns:
            ToolResult containing execution outcome and metadata
        """
        pass

    async def _simulate_latency(self) -> None:
        await asyncio.sleep(self.latency_seconds)
