"""RebalancingPolicy — plan a bounded set of moves from overloaded to underloaded agents."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from dispatch.domain.entities.agent import Agent
from dispatch.domain.entities.rebalance import ReassignmentMove
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.policies.candidate_selection import (
    DEFAULT_SELECTION,
    SelectionConfig,
    select_candidates,
)
from dispatch.domain.policies.scoring import DEFAULT_SCORING, ScoringConfig, priority_weight
from dispatch.domain.value_objects.enums import LoadLevel


@dataclass(frozen=True)
class RebalanceConfig:
    overloaded_threshold: float = 0.9
    underloaded_threshold: float = 0.5
    max_moves: int = 20


DEFAULT_REBALANCE = RebalanceConfig()


@dataclass
class RebalancePlan:
    moves: list[ReassignmentMove] = field(default_factory=list)
    overloaded: list[str] = field(default_factory=list)
    underloaded: list[str] = field(default_factory=list)

    @property
    def is_balanced(self) -> bool:
        return not self.overloaded or not self.underloaded


def classify_load(agent: Agent, config: RebalanceConfig = DEFAULT_REBALANCE) -> LoadLevel:
    utilization = agent.utilization()
    if utilization >= config.overloaded_threshold:
        return LoadLevel.OVERLOADED
    if utilization <= config.underloaded_threshold:
        return LoadLevel.UNDERLOADED
    return LoadLevel.BALANCED


def pick_movable_ticket(tickets: Iterable[Ticket], already_moved: set[str]) -> Ticket | None:
    """Lowest-priority open ticket, newest first within a priority; never urgent."""
    movable = [
        t for t in tickets
        if t.is_assignable() and not t.is_urgent() and t.id not in already_moved
    ]
    if not movable:
        return None
    movable.sort(key=lambda t: t.id)
    movable.sort(key=lambda t: t.created_at, reverse=True)
    movable.sort(key=lambda t: t.priority.rank)
    return movable[0]


def _ids_at(snapshot: Mapping[str, Agent], level: LoadLevel, config: RebalanceConfig) -> list[str]:
    return sorted(a.id for a in snapshot.values() if classify_load(a, config) == level)


def plan_rebalance(
    roster: Iterable[Agent],
    open_tickets: Mapping[str, list[Ticket]],
    scoring: ScoringConfig = DEFAULT_SCORING,
    selection: SelectionConfig = DEFAULT_SELECTION,
    config: RebalanceConfig = DEFAULT_REBALANCE,
) -> RebalancePlan:
    """Greedy rebalancing over an in-memory copy of the roster.

    Each iteration takes the most utilised overloaded agent that still has a
    movable ticket, finds the best underloaded target with the candidate
    selector, and applies the move to the copy so later iterations see it.
    Stops when nothing is movable or ``config.max_moves`` is reached. The
    caller's agents are never mutated.
    """
    snapshot = {a.id: replace(a) for a in roster}
    plan = RebalancePlan(
        overloaded=_ids_at(snapshot, LoadLevel.OVERLOADED, config),
        underloaded=_ids_at(snapshot, LoadLevel.UNDERLOADED, config),
    )
    if plan.is_balanced:
        return plan

    moved: set[str] = set()
    exhausted: set[str] = set()

    while len(plan.moves) < config.max_moves:
        sources = sorted(
            (
                a for a in snapshot.values()
                if classify_load(a, config) == LoadLevel.OVERLOADED and a.id not in exhausted
            ),
            key=lambda a: (-a.utilization(), a.id),
        )
        targets = _ids_at(snapshot, LoadLevel.UNDERLOADED, config)
        if not sources or not targets:
            break

        move = None
        for source in sources:
            ticket = pick_movable_ticket(open_tickets.get(source.id, []), moved)
            if ticket is None:
                exhausted.add(source.id)
                continue
            choice = select_candidates(
                ticket,
                snapshot.values(),
                scoring=scoring,
                selection=selection,
                restrict_to=targets,
                exclude={source.id},
            )
            if choice.winner is None:
                exhausted.add(source.id)
                continue
            move = ReassignmentMove(
                ticket_id=ticket.id,
                from_agent_id=source.id,
                to_agent_id=choice.winner.agent_id,
                priority=ticket.priority,
            )
            break

        if move is None:
            break

        weight = priority_weight(move.priority, scoring)
        source = snapshot[move.from_agent_id]
        target = snapshot[move.to_agent_id]
        source.current_workload = max(0, source.current_workload - 1)
        source.weighted_workload = max(0.0, source.weighted_workload - weight)
        target.current_workload += 1
        target.weighted_workload += weight

        moved.add(move.ticket_id)
        plan.moves.append(move)

    return plan
