"""AssignmentRulesPolicy — match admin-defined rules before scoring kicks in."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import time

from dispatch.domain.entities.agent import Agent
from dispatch.domain.entities.assignment import AssignmentReason, AssignmentResult
from dispatch.domain.entities.assignment_rule import AssignmentRule, RuleConditions
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.value_objects.enums import AssignmentMethod, ReasonCode

RULE_CONFIDENCE = 0.95


def _within_window(now: time, start: time | None, end: time | None) -> bool:
    if start is None and end is None:
        return True
    if start is None:
        return now <= end
    if end is None:
        return now >= start
    if start <= end:
        return start <= now <= end
    # Window wraps midnight, e.g. 22:00 → 06:00
    return now >= start or now <= end


def rule_applies(rule: AssignmentRule, ticket: Ticket, now: time) -> bool:
    """Business rules (all present conditions must hold):

    1. Disabled rules never apply.
    2. ``priorities`` — ticket priority must be listed.
    3. ``category_ids`` — ticket category must be listed (uncategorised
       tickets are not filtered out by this condition).
    4. ``keywords`` — at least one keyword must appear in title/description.
    5. ``active_from``/``active_until`` — current time inside the window.
    """
    if not rule.enabled:
        return False

    cond: RuleConditions = rule.conditions

    if cond.priorities and ticket.priority not in cond.priorities:
        return False

    if cond.category_ids and ticket.category_id and ticket.category_id not in cond.category_ids:
        return False

    if cond.keywords:
        text = ticket.searchable_text()
        if not any(kw.lower() in text for kw in cond.keywords):
            return False

    return _within_window(now, cond.active_from, cond.active_until)


def match_rule(
    rules: Iterable[AssignmentRule],
    ticket: Ticket,
    roster: Iterable[Agent],
    now: time,
) -> AssignmentResult | None:
    """First applicable rule (highest ``priority`` first) whose agent is eligible.

    Returns ``None`` when no rule produces an assignment so the caller can
    continue with scoring.
    """
    agents = {a.id: a for a in roster}
    for rule in sorted(rules, key=lambda r: (-r.priority, r.id)):
        if not rule_applies(rule, ticket, now):
            continue
        agent = agents.get(rule.assign_to_agent_id)
        if agent is None or not agent.is_eligible():
            continue
        return AssignmentResult(
            success=True,
            assigned_agent_id=agent.id,
            reason=AssignmentReason(ReasonCode.RULE_MATCH, f"Assigned by rule: {rule.name}"),
            confidence=RULE_CONFIDENCE,
            method=AssignmentMethod.RULE,
        )
    return None
