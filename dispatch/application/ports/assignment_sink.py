"""Port interface for persisting assignment decisions."""

from abc import ABC, abstractmethod

from dispatch.domain.entities.assignment import AssignmentReason


class AssignmentSink(ABC):
    @abstractmethod
    async def record_assignment(
        self,
        ticket_id: str,
        agent_id: str,
        reason: AssignmentReason,
        confidence: float,
        previous_agent_id: str | None = None,
    ) -> None:
        """Assign the ticket, provided its assignee is still *previous_agent_id*.

        Raises CommitError on failure, including when the ticket changed
        hands since it was read.
        """
        ...

    @abstractmethod
    async def record_reassignment(
        self,
        ticket_id: str,
        from_agent_id: str,
        to_agent_id: str,
        reason: str,
    ) -> None:
        """Durably move the ticket to another agent. Raises CommitError on failure."""
        ...
