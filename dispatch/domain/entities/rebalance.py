"""Rebalance result — moves produced by one workload rebalancing pass."""

from dataclasses import dataclass, field

from dispatch.domain.value_objects.enums import Priority, RebalanceReason


@dataclass(frozen=True)
class ReassignmentMove:
    ticket_id: str
    from_agent_id: str
    to_agent_id: str
    priority: Priority = Priority.LOW


@dataclass(frozen=True)
class FailedMove:
    move: ReassignmentMove
    error: str


@dataclass
class RebalanceResult:
    success: bool
    reassignments: int
    message: str
    reason: RebalanceReason
    moves: list[ReassignmentMove] = field(default_factory=list)
    failed_moves: list[FailedMove] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "reassignments": self.reassignments,
            "reason": self.reason.value,
            "message": self.message,
            "moves": [
                {
                    "ticket_id": m.ticket_id,
                    "from_agent_id": m.from_agent_id,
                    "to_agent_id": m.to_agent_id,
                }
                for m in self.moves
            ],
            "failed_moves": [
                {"ticket_id": f.move.ticket_id, "error": f.error} for f in self.failed_moves
            ],
        }
