"""Tests for RebalanceWorkloadUseCase with in-memory fakes."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from dispatch.application.use_cases.rebalance_workload import (
    REBALANCE_REASON,
    RebalanceWorkloadUseCase,
)
from dispatch.domain.errors import CapacityViolation, CommitError
from dispatch.domain.value_objects.enums import Priority, RebalanceReason
from fakes import (
    NOW,
    FakeAgentProvider,
    FakeAssignmentSink,
    FakeTicketRepo,
    FakeUnitOfWork,
    make_agent,
    make_ticket,
)


def _owned(agent_id: str, n: int, priority: Priority = Priority.LOW):
    return [
        make_ticket(
            f"t{i}", priority=priority, assigned_agent_id=agent_id,
            created_at=NOW - timedelta(minutes=i),
        )
        for i in range(n)
    ]


@pytest.fixture
def sink():
    return FakeAssignmentSink()


@pytest.fixture
def build(sink, outbox, agent_locks, run_guard, uow):
    def _build(provider, tickets, unit_of_work=None) -> RebalanceWorkloadUseCase:
        repo = FakeTicketRepo(tickets)
        sink.ticket_repo = repo
        return RebalanceWorkloadUseCase(
            agent_provider=provider,
            ticket_repo=repo,
            assignment_sink=sink,
            outbox=outbox,
            agent_locks=agent_locks,
            run_guard=run_guard,
            unit_of_work=unit_of_work or uow,
        )

    return _build


@pytest.mark.asyncio
async def test_moves_ticket_and_notifies(build, sink, outbox, notifications):
    provider = FakeAgentProvider([make_agent("a", workload=9), make_agent("b", workload=2)])
    uc = build(provider, _owned("a", 9))

    result = await uc.execute()

    assert result.success
    assert result.reason == RebalanceReason.REBALANCED
    assert result.reassignments == 1
    assert sink.reassignments == [("t0", "a", "b", REBALANCE_REASON)]
    assert provider.agents["a"].current_workload == 8
    assert provider.agents["b"].current_workload == 3

    await outbox.flush(notifications)
    assert notifications.reassigned == [("t0", "a", "b")]


@pytest.mark.asyncio
async def test_balanced_roster_is_noop(build, sink):
    provider = FakeAgentProvider([make_agent("a", workload=7), make_agent("b", workload=6)])
    result = await build(provider, _owned("a", 7)).execute()
    assert result.success
    assert result.reason == RebalanceReason.BALANCED
    assert result.reassignments == 0
    assert sink.reassignments == []


@pytest.mark.asyncio
async def test_only_urgent_tickets_means_nothing_moves(build, sink):
    provider = FakeAgentProvider([make_agent("a", workload=10), make_agent("b")])
    result = await build(provider, _owned("a", 10, Priority.URGENT)).execute()
    assert result.reason == RebalanceReason.BALANCED
    assert sink.reassignments == []


@pytest.mark.asyncio
async def test_second_pass_while_running_is_rejected(build, run_guard):
    provider = FakeAgentProvider([make_agent("a", workload=9), make_agent("b")])
    uc = build(provider, _owned("a", 9))

    async with run_guard.acquire():
        result = await uc.execute()

    assert not result.success
    assert result.reason == RebalanceReason.ALREADY_RUNNING
    assert provider.list_calls == 0


@pytest.mark.asyncio
async def test_concurrent_passes_one_runs(build):
    provider = FakeAgentProvider([make_agent("a", workload=9), make_agent("b")])
    provider.list_delay = 0.01
    uc = build(provider, _owned("a", 9))

    first, second = await asyncio.gather(uc.execute(), uc.execute())

    reasons = {first.reason, second.reason}
    assert RebalanceReason.ALREADY_RUNNING in reasons
    assert provider.list_calls == 1


@pytest.mark.asyncio
async def test_partial_failure_keeps_committed_moves_and_compensates(build, sink, outbox):
    provider = FakeAgentProvider([make_agent("a", workload=10), make_agent("b", workload=0)])
    sink.fail_reassign_for = {"t0"}
    uc = build(provider, _owned("a", 10))

    result = await uc.execute()

    assert result.success
    assert result.reason == RebalanceReason.PARTIAL
    assert result.reassignments == 1
    assert [m.ticket_id for m in result.moves] == ["t1"]
    assert [f.move.ticket_id for f in result.failed_moves] == ["t0"]
    # the failed move was undone, the good one kept
    assert provider.agents["a"].current_workload == 9
    assert provider.agents["b"].current_workload == 1
    assert outbox.pending_count == 1


@pytest.mark.asyncio
async def test_every_move_failing_reports_failure(build, sink):
    provider = FakeAgentProvider([make_agent("a", workload=9), make_agent("b")])
    sink.fail_reassign_for = {"t0"}
    result = await build(provider, _owned("a", 9)).execute()
    assert not result.success
    assert result.reason == RebalanceReason.PARTIAL
    assert result.reassignments == 0
    assert provider.agents["a"].current_workload == 9
    assert provider.agents["b"].current_workload == 0


@pytest.mark.asyncio
async def test_target_filled_meanwhile_fails_that_move(build, sink):
    class FillingProvider(FakeAgentProvider):
        async def increment_workload(self, agent_id, priority_weight):
            raise CapacityViolation(agent_id)

    provider = FillingProvider([make_agent("a", workload=9), make_agent("b")])
    result = await build(provider, _owned("a", 9)).execute()

    assert result.reason == RebalanceReason.PARTIAL
    assert "capacity" in result.failed_moves[0].error
    assert sink.reassignments == []
    assert provider.agents["a"].current_workload == 9


@pytest.mark.asyncio
async def test_roster_unavailable(build):
    provider = FakeAgentProvider([make_agent("a")])
    provider.fail_list = True
    result = await build(provider, []).execute()
    assert not result.success
    assert result.reason == RebalanceReason.PROVIDER_ERROR


@pytest.mark.asyncio
async def test_no_destination_exceeds_capacity(build):
    provider = FakeAgentProvider([
        make_agent("a", workload=10, capacity=10),
        make_agent("b", workload=1, capacity=2),
        make_agent("c", workload=0, capacity=1),
    ])
    await build(provider, _owned("a", 10)).execute()
    for agent in provider.agents.values():
        assert agent.current_workload <= agent.max_concurrent_tickets


# ─── Transaction boundary ───────────────────────────────────────────


class FlakyUnitOfWork(FakeUnitOfWork):
    """Fails the commits whose 1-based index is in ``fail_on``; records state at each commit."""

    def __init__(self, outbox, run_guard, fail_on=()):
        super().__init__()
        self.outbox = outbox
        self.run_guard = run_guard
        self.fail_on = set(fail_on)
        self.attempts = 0
        self.seen: list[tuple[bool, int]] = []

    async def commit(self):
        self.attempts += 1
        self.seen.append((self.run_guard.is_running, self.outbox.pending_count))
        if self.attempts in self.fail_on:
            raise CommitError("connection lost")
        await super().commit()


@pytest.mark.asyncio
async def test_each_move_committed_inside_the_pass_before_its_notification(build, outbox, run_guard):
    provider = FakeAgentProvider([make_agent("a", workload=10), make_agent("b", workload=0)])
    uow = FlakyUnitOfWork(outbox, run_guard)

    result = await build(provider, _owned("a", 10), uow).execute()

    assert result.reassignments == 2
    assert uow.commits == 2
    assert uow.seen == [(True, 0), (True, 1)]
    assert outbox.pending_count == 2


@pytest.mark.asyncio
async def test_failed_move_rolls_back_only_itself(build, sink, uow):
    provider = FakeAgentProvider([make_agent("a", workload=10), make_agent("b", workload=0)])
    sink.fail_reassign_for = {"t0"}

    result = await build(provider, _owned("a", 10)).execute()

    assert result.reassignments == 1
    assert uow.commits == 1
    assert uow.rollbacks == 1


@pytest.mark.asyncio
async def test_commit_failure_on_later_move_keeps_earlier_move(build, outbox, run_guard):
    provider = FakeAgentProvider([make_agent("a", workload=10), make_agent("b", workload=0)])
    uow = FlakyUnitOfWork(outbox, run_guard, fail_on={2})

    result = await build(provider, _owned("a", 10), uow).execute()

    assert result.reason == RebalanceReason.PARTIAL
    assert [m.ticket_id for m in result.moves] == ["t0"]
    assert len(result.failed_moves) == 1
    assert uow.commits == 1
    assert uow.rollbacks == 1
    assert provider.agents["a"].current_workload == 9
    assert provider.agents["b"].current_workload == 1
    assert outbox.pending_count == 1
