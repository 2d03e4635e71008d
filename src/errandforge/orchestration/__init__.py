"""Work item dispatching and message relaying across agents."""

from errandforge.orchestration.dispatcher import Dispatcher
from errandforge.orchestration.models import ExecutionOutcome, Notice

__all__ = ["Dispatcher", "ExecutionOutcome", "Notice"]
