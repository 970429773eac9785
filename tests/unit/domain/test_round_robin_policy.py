"""Tests for RoundRobinPolicy."""

from datetime import timedelta

from dispatch.domain.policies.round_robin import (
    ROUND_ROBIN_CONFIDENCE,
    order_by_load,
    pick_least_loaded,
)
from dispatch.domain.value_objects.enums import AssignmentMethod, Availability, ReasonCode
from fakes import NOW, make_agent


def test_pick_lowest_workload():
    roster = [make_agent("a", workload=5), make_agent("b", workload=1), make_agent("c", workload=3)]
    result = pick_least_loaded(roster)
    assert result.success
    assert result.assigned_agent_id == "b"
    assert result.method == AssignmentMethod.ROUND_ROBIN
    assert result.reason.code == ReasonCode.LEAST_LOADED
    assert result.confidence == ROUND_ROBIN_CONFIDENCE
    assert [a.agent_id for a in result.alternative_agents] == ["c", "a"]


def test_equal_load_least_recently_assigned_first():
    roster = [make_agent("a", workload=2), make_agent("b", workload=2), make_agent("c", workload=2)]
    last = {"a": NOW, "b": NOW - timedelta(hours=1)}
    # c was never assigned, b longest ago, a most recently
    assert [a.id for a in order_by_load(roster, last)] == ["c", "b", "a"]


def test_equal_load_without_history_sorted_by_id():
    roster = [make_agent("c"), make_agent("a"), make_agent("b")]
    assert [a.id for a in order_by_load(roster)] == ["a", "b", "c"]


def test_skips_offline_full_and_excluded():
    roster = [
        make_agent("a", availability=Availability.OFFLINE),
        make_agent("b", workload=3, capacity=3),
        make_agent("c", workload=2),
        make_agent("d", workload=1),
    ]
    result = pick_least_loaded(roster, exclude={"d"})
    assert result.assigned_agent_id == "c"
    assert result.alternative_agents == []


def test_all_offline_fails():
    roster = [make_agent(i, availability=Availability.OFFLINE) for i in "abc"]
    result = pick_least_loaded(roster)
    assert not result.success
    assert result.assigned_agent_id is None
    assert result.reason.code == ReasonCode.NO_AVAILABLE_AGENTS
