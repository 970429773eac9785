"""Domain errors raised across the assignment engine.

Running out of candidates is not an error: selection reports it as a
``no_available_agents`` result and the coordinator moves down its fallback
chain.
"""


class DispatchError(Exception):
    """Base class for every engine error."""


class ProviderError(DispatchError):
    """The agent metrics provider could not be reached or answered badly."""


class CapacityViolation(DispatchError):
    """A workload increment would push an agent past its capacity."""

    def __init__(self, agent_id: str, message: str | None = None):
        self.agent_id = agent_id
        super().__init__(message or f"Agent {agent_id} is at capacity")


class AlreadyRunning(DispatchError):
    """A rebalance pass is already in progress."""


class CommitError(DispatchError):
    """Persisting a decision failed after an agent had been chosen."""


class TicketNotFound(DispatchError, LookupError):
    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        super().__init__(f"Ticket {ticket_id} not found")
