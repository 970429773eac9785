"""Assignment result — the outcome of routing one ticket to an agent."""

from __future__ import annotations

from dataclasses import dataclass, field

from dispatch.domain.value_objects.enums import AssignmentMethod, ReasonCode


@dataclass(frozen=True)
class AssignmentReason:
    code: ReasonCode
    message: str


@dataclass(frozen=True)
class AlternativeAgent:
    agent_id: str
    score: float | None = None


@dataclass
class AssignmentResult:
    success: bool
    reason: AssignmentReason
    confidence: float = 0.0
    assigned_agent_id: str | None = None
    method: AssignmentMethod = AssignmentMethod.NONE
    score: float | None = None
    alternative_agents: list[AlternativeAgent] = field(default_factory=list)

    @classmethod
    def failure(cls, code: ReasonCode, message: str) -> AssignmentResult:
        return cls(success=False, reason=AssignmentReason(code, message))

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "assigned_agent_id": self.assigned_agent_id,
            "reason": {"code": self.reason.code.value, "message": self.reason.message},
            "confidence": round(self.confidence, 4),
            "method": self.method.value,
            "score": round(self.score, 4) if self.score is not None else None,
            "alternative_agents": [
                {
                    "agent_id": alt.agent_id,
                    "score": round(alt.score, 4) if alt.score is not None else None,
                }
                for alt in self.alternative_agents
            ],
        }
