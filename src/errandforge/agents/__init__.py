"""Errand agents and the messages they exchange.

Errors, messages and results are importable from here directly. The agent
classes pull in the memory and session stores, which themselves import
``errandforge.agents.errors``, so they are loaded lazily.
"""

import importlib

from errandforge.agents.errors import (
    AgentNotFoundError,
    DuplicateAgentError,
    ErrandError,
    HandlerFault,
    InvalidWorkItemError,
    MemoryRecordNotFoundError,
    RoutingError,
    SessionNotFoundError,
    WorkItemNotFoundError,
    WorkItemStateError,
)
from errandforge.agents.messages import Message, MessageType
from errandforge.agents.results import AgentResult, AgentResultStatus

# NOTE: Lazy imports to avoid circular dependencies
_LAZY = {
    "BaseAgent": "errandforge.agents.base",
    "ScanningAgent": "errandforge.agents.base",
    "AgentRegistry": "errandforge.agents.registry",
    "BillAgent": "errandforge.agents.bill",
    "DocumentAgent": "errandforge.agents.document",
    "SubscriptionAgent": "errandforge.agents.subscription",
    "AppointmentAgent": "errandforge.agents.appointment",
    "DeadlineAgent": "errandforge.agents.deadline",
}

__all__ = [
    "AgentNotFoundError",
    "AgentResult",
    "AgentResultStatus",
    "DuplicateAgentError",
    "ErrandError",
    "HandlerFault",
    "InvalidWorkItemError",
    "MemoryRecordNotFoundError",
    "Message",
    "MessageType",
    "RoutingError",
    "SessionNotFoundError",
    "WorkItemNotFoundError",
    "WorkItemStateError",
    *_LAZY,
]


def __getattr__(name: str):
    """Lazy load agent classes to avoid circular imports."""
    module_name = _LAZY.get(name)
    if module_name is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    return getattr(importlib.import_module(module_name), name)
