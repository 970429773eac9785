"""RoundRobinPolicy — least-loaded fallback pick when scoring is unavailable."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from datetime import datetime

from dispatch.domain.entities.agent import Agent
from dispatch.domain.entities.assignment import (
    AlternativeAgent,
    AssignmentReason,
    AssignmentResult,
)
from dispatch.domain.value_objects.enums import AssignmentMethod, ReasonCode

ROUND_ROBIN_CONFIDENCE = 0.5


def order_by_load(
    candidates: list[Agent],
    last_assigned: Mapping[str, datetime] | None = None,
) -> list[Agent]:
    """Stable order: lowest current workload, then least recently assigned, then id.

    Agents missing from *last_assigned* count as never assigned, so they sort
    before anybody with a recorded assignment at the same load.
    """
    last_assigned = last_assigned or {}

    def _key(agent: Agent) -> tuple[int, float, str]:
        ts = last_assigned.get(agent.id)
        return (
            agent.current_workload,
            ts.timestamp() if ts is not None else float("-inf"),
            agent.id,
        )

    return sorted(candidates, key=_key)


def pick_least_loaded(
    roster: list[Agent],
    last_assigned: Mapping[str, datetime] | None = None,
    exclude: Collection[str] = (),
    max_alternatives: int = 4,
) -> AssignmentResult:
    """Pick the eligible agent with the globally lowest workload.

    Returns a failed ``no_available_agents`` result when every agent is
    offline or full.
    """
    excluded = set(exclude)
    eligible = [a for a in roster if a.is_eligible() and a.id not in excluded]
    if not eligible:
        return AssignmentResult.failure(
            ReasonCode.NO_AVAILABLE_AGENTS,
            "Round-robin found no online agent with spare capacity",
        )

    ordered = order_by_load(eligible, last_assigned)
    chosen = ordered[0]
    return AssignmentResult(
        success=True,
        assigned_agent_id=chosen.id,
        reason=AssignmentReason(
            ReasonCode.LEAST_LOADED,
            f"Round-robin: lowest workload ({chosen.current_workload} open tickets)",
        ),
        confidence=ROUND_ROBIN_CONFIDENCE,
        method=AssignmentMethod.ROUND_ROBIN,
        alternative_agents=[AlternativeAgent(agent_id=a.id) for a in ordered[1 : 1 + max_alternatives]],
    )
