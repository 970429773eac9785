"""CandidateSelectionPolicy — filter, rank and pick the best agent for a ticket."""

from __future__ import annotations

from collections.abc import Collection, Iterable
from dataclasses import dataclass, field

from dispatch.domain.entities.agent import Agent
from dispatch.domain.entities.assignment import (
    AlternativeAgent,
    AssignmentReason,
    AssignmentResult,
)
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.policies.scoring import DEFAULT_SCORING, AgentScore, ScoringConfig, score_agent
from dispatch.domain.value_objects.enums import AssignmentMethod, ReasonCode


@dataclass(frozen=True)
class SelectionConfig:
    single_candidate_confidence_cap: float = 0.9
    max_alternatives: int = 4
    min_confidence_denominator: float = 0.01


DEFAULT_SELECTION = SelectionConfig()


@dataclass
class CandidateSelection:
    """Ranked candidates for one ticket plus how decisive the winner is."""

    ticket_id: str
    ranked: list[AgentScore] = field(default_factory=list)
    confidence: float = 0.0
    specialists_only: bool = False
    max_alternatives: int = DEFAULT_SELECTION.max_alternatives

    @property
    def success(self) -> bool:
        return bool(self.ranked)

    @property
    def winner(self) -> AgentScore | None:
        return self.ranked[0] if self.ranked else None

    @property
    def alternatives(self) -> list[AgentScore]:
        return self.ranked[1 : 1 + self.max_alternatives]

    def to_result(self) -> AssignmentResult:
        if self.winner is None:
            return AssignmentResult.failure(
                ReasonCode.NO_AVAILABLE_AGENTS,
                "No online agent with spare capacity",
            )
        pool = "specialists" if self.specialists_only else "all eligible agents"
        return AssignmentResult(
            success=True,
            assigned_agent_id=self.winner.agent_id,
            reason=AssignmentReason(
                ReasonCode.BEST_SCORE,
                f"Best score among {len(self.ranked)} {pool} "
                f"({self.winner.breakdown.describe()})",
            ),
            confidence=self.confidence,
            method=AssignmentMethod.INTELLIGENT,
            score=self.winner.score,
            alternative_agents=[
                AlternativeAgent(agent_id=c.agent_id, score=c.score) for c in self.alternatives
            ],
        )


def filter_eligible(agents: Iterable[Agent]) -> list[Agent]:
    """Drop offline agents and agents already at capacity."""
    return [a for a in agents if a.is_eligible()]


def partition_specialists(ticket: Ticket, agents: list[Agent]) -> tuple[list[Agent], list[Agent]]:
    specialists = [a for a in agents if a.is_specialist_for(ticket)]
    generalists = [a for a in agents if not a.is_specialist_for(ticket)]
    return specialists, generalists


def rank_candidates(
    ticket: Ticket,
    agents: Iterable[Agent],
    scoring: ScoringConfig = DEFAULT_SCORING,
) -> list[AgentScore]:
    """Score every agent; highest score first, ties by ascending agent id."""
    scored = [score_agent(agent, ticket, scoring) for agent in agents]
    return sorted(scored, key=lambda s: (-s.score, s.agent_id))


def compute_confidence(
    ranked: list[AgentScore], selection: SelectionConfig = DEFAULT_SELECTION
) -> float:
    """How decisively the top candidate beat the runner-up, in [0, 1].

    A lone candidate gets its own score, capped because there was nothing
    to compare against.
    """
    if not ranked:
        return 0.0
    if len(ranked) == 1:
        return min(ranked[0].score, selection.single_candidate_confidence_cap)
    return confidence_from_margin(ranked[0].score, ranked[1].score, selection)


def confidence_from_margin(
    top: float, second: float, selection: SelectionConfig = DEFAULT_SELECTION
) -> float:
    margin = (top - second) / max(top, selection.min_confidence_denominator)
    return max(0.0, min(1.0, margin))


def select_candidates(
    ticket: Ticket,
    roster: Iterable[Agent],
    scoring: ScoringConfig = DEFAULT_SCORING,
    selection: SelectionConfig = DEFAULT_SELECTION,
    restrict_to: Collection[str] | None = None,
    exclude: Collection[str] = (),
) -> CandidateSelection:
    """Pick the best agent for *ticket* from an explicit roster snapshot.

    1. Keep eligible agents (online, below capacity), optionally limited to
       *restrict_to* and minus *exclude*.
    2. If any of them has subcategory/category expertise for the ticket,
       only those specialists are ranked; otherwise everybody is.
    3. Rank by score (ties → ascending id) and compute confidence.
    """
    pool = filter_eligible(roster)
    if restrict_to is not None:
        allowed = set(restrict_to)
        pool = [a for a in pool if a.id in allowed]
    if exclude:
        excluded = set(exclude)
        pool = [a for a in pool if a.id not in excluded]

    specialists, _ = partition_specialists(ticket, pool)
    active = specialists or pool

    ranked = rank_candidates(ticket, active, scoring)
    return CandidateSelection(
        ticket_id=ticket.id,
        ranked=ranked,
        confidence=compute_confidence(ranked, selection),
        specialists_only=bool(specialists),
        max_alternatives=selection.max_alternatives,
    )
