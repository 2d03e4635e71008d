"""Agent registry for routing work items to agents.

This module provides the AgentRegistry class, which holds the agents of
one system and resolves the single agent responsible for each work item
category.
"""

from errandforge.agents.base import BaseAgent
from errandforge.agents.errors import AgentNotFoundError, DuplicateAgentError, RoutingError
from errandforge.observability.logging import get_logger
from errandforge.tasks.models import WorkItemCategory

logger = get_logger(__name__)


class AgentRegistry:
    """Registry of agents keyed by id and by the categories they handle.

    Each category maps to at most one agent, so routing is deterministic.

    Example:
        >>> registry = AgentRegistry()
        >>> registry.register(bill_agent)
        >>> registry.get_for_category(WorkItemCategory.BILL_SCAN).agent_id
        'bill-agent'
    """

    def __init__(self) -> None:
        self._agents: dict[str, BaseAgent] = {}
        self._by_category: dict[WorkItemCategory, str] = {}

    def register(self, agent: BaseAgent) -> None:
        """Register an agent for every category it handles.

        Args:
            agent: Agent instance to register

        Raises:
            DuplicateAgentError: If the agent id or one of its categories is taken
        """
        if agent.agent_id in self._agents:
            raise DuplicateAgentError(agent.agent_id)
        for category in agent.categories:
            if category in self._by_category:
                raise DuplicateAgentError(agent.agent_id, category=category.value)

        self._agents[agent.agent_id] = agent
        for category in agent.categories:
            self._by_category[category] = agent.agent_id
        logger.debug(
            "agent_registered",
            agent_id=agent.agent_id,
            categories=sorted(c.value for c in agent.categories),
        )

    def unregister(self, agent_id: str) -> None:
        """Remove an agent and its category routes.

        Raises:
            AgentNotFoundError: If the agent is not registered
        """
        agent = self._agents.pop(agent_id, None)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        for category in agent.categories:
            self._by_category.pop(category, None)

    def get(self, agent_id: str) -> BaseAgent:
        """Retrieve an agent by its id.

        Raises:
            AgentNotFoundError: If the agent is not registered
        """
        agent = self._agents.get(agent_id)
        if agent is None:
            raise AgentNotFoundError(agent_id)
        return agent

    def get_for_category(self, category: WorkItemCategory) -> BaseAgent:
        """Resolve the agent that handles a category.

        Raises:
            RoutingError: If no agent handles the category
        """
        agent_id = self._by_category.get(category)
        if agent_id is None:
            raise RoutingError(category.value)
        return self._agents[agent_id]

    def list_all(self) -> list[BaseAgent]:
        """List registered agents in registration order."""
        return list(self._agents.values())

    def categories(self) -> list[WorkItemCategory]:
        """List the categories that can be routed."""
        return list(self._by_category)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents
