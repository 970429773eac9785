"""Port interface for reading tickets."""

from abc import ABC, abstractmethod

from dispatch.domain.entities.ticket import Ticket


class TicketRepository(ABC):
    @abstractmethod
    async def get_by_id(self, ticket_id: str) -> Ticket | None:
        ...

    @abstractmethod
    async def get_open_by_agent(self, agent_id: str) -> list[Ticket]:
        """Tickets currently assigned to the agent with status open/in_progress."""
        ...
