"""Port interface for telling agents about (re)assignments."""

from abc import ABC, abstractmethod


class NotificationSink(ABC):
    @abstractmethod
    async def notify_assigned(self, ticket_id: str, agent_id: str) -> None:
        ...

    @abstractmethod
    async def notify_reassigned(
        self, ticket_id: str, from_agent_id: str, to_agent_id: str
    ) -> None:
        ...
