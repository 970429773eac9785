"""Tests for AssignmentRulesPolicy."""

from datetime import time

from dispatch.domain.entities.assignment_rule import AssignmentRule, RuleConditions
from dispatch.domain.policies.assignment_rules import RULE_CONFIDENCE, match_rule, rule_applies
from dispatch.domain.value_objects.enums import (
    AssignmentMethod,
    Availability,
    Priority,
    ReasonCode,
)
from fakes import make_agent, make_ticket

NOON = time(12, 0)


def _rule(rid: str, agent_id: str, priority: int = 0, **conditions) -> AssignmentRule:
    return AssignmentRule(
        id=rid,
        name=f"Rule {rid}",
        assign_to_agent_id=agent_id,
        conditions=RuleConditions(**conditions),
        priority=priority,
    )


def test_rule_without_conditions_always_applies():
    assert rule_applies(_rule("r1", "a"), make_ticket("t1"), NOON)


def test_disabled_rule_never_applies():
    rule = _rule("r1", "a")
    rule.enabled = False
    assert not rule_applies(rule, make_ticket("t1"), NOON)


def test_priority_condition():
    rule = _rule("r1", "a", priorities=frozenset({Priority.URGENT, Priority.HIGH}))
    assert rule_applies(rule, make_ticket("t1", priority=Priority.URGENT), NOON)
    assert not rule_applies(rule, make_ticket("t2", priority=Priority.LOW), NOON)


def test_category_condition_ignored_for_uncategorised_ticket():
    rule = _rule("r1", "a", category_ids=frozenset({"billing"}))
    assert rule_applies(rule, make_ticket("t1", category_id="billing"), NOON)
    assert not rule_applies(rule, make_ticket("t2", category_id="shipping"), NOON)
    assert rule_applies(rule, make_ticket("t3", category_id=None), NOON)


def test_keyword_condition_case_insensitive_in_title_or_description():
    rule = _rule("r1", "a", keywords=("Refund", "chargeback"))
    assert rule_applies(rule, make_ticket("t1", title="Need a REFUND"), NOON)
    assert rule_applies(rule, make_ticket("t2", description="bank chargeback notice"), NOON)
    assert not rule_applies(rule, make_ticket("t3", title="Password reset"), NOON)


def test_time_window():
    rule = _rule("r1", "a", active_from=time(9, 0), active_until=time(17, 0))
    assert rule_applies(rule, make_ticket("t1"), NOON)
    assert not rule_applies(rule, make_ticket("t1"), time(20, 0))


def test_time_window_wrapping_midnight():
    rule = _rule("r1", "a", active_from=time(22, 0), active_until=time(6, 0))
    assert rule_applies(rule, make_ticket("t1"), time(23, 30))
    assert rule_applies(rule, make_ticket("t1"), time(2, 0))
    assert not rule_applies(rule, make_ticket("t1"), NOON)


def test_highest_priority_rule_wins():
    rules = [_rule("low", "a", priority=1), _rule("high", "b", priority=5)]
    roster = [make_agent("a"), make_agent("b")]
    result = match_rule(rules, make_ticket("t1"), roster, NOON)
    assert result.assigned_agent_id == "b"
    assert result.method == AssignmentMethod.RULE
    assert result.reason.code == ReasonCode.RULE_MATCH
    assert result.confidence == RULE_CONFIDENCE


def test_rule_with_ineligible_agent_skipped():
    rules = [_rule("r1", "a", priority=5), _rule("r2", "b", priority=1)]
    roster = [make_agent("a", availability=Availability.OFFLINE), make_agent("b")]
    result = match_rule(rules, make_ticket("t1"), roster, NOON)
    assert result.assigned_agent_id == "b"


def test_rule_for_unknown_or_full_agent_gives_none():
    rules = [_rule("r1", "ghost"), _rule("r2", "full")]
    roster = [make_agent("full", workload=2, capacity=2)]
    assert match_rule(rules, make_ticket("t1"), roster, NOON) is None


def test_no_rules_gives_none():
    assert match_rule([], make_ticket("t1"), [make_agent("a")], NOON) is None
