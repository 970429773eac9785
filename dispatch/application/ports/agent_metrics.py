"""Port interface for the agent roster and its workload counters."""

from abc import ABC, abstractmethod
from datetime import datetime

from dispatch.domain.entities.agent import Agent


class AgentMetricsProvider(ABC):
    @abstractmethod
    async def list_eligible_agents(self) -> list[Agent]:
        """Return a fresh snapshot of every assignable agent (offline included).

        Raises ProviderError if the roster cannot be read.
        """
        ...

    @abstractmethod
    async def increment_workload(self, agent_id: str, priority_weight: float) -> None:
        """Atomically add one ticket of the given weight to the agent.

        Must be linearizable per agent and must refuse to go past
        ``max_concurrent_tickets`` by raising CapacityViolation.
        """
        ...

    @abstractmethod
    async def decrement_workload(self, agent_id: str, priority_weight: float) -> None:
        """Atomically remove one ticket of the given weight (never below zero)."""
        ...

    async def last_assigned_at(self) -> dict[str, datetime]:
        """Most recent assignment time per agent id; empty when not tracked."""
        return {}
