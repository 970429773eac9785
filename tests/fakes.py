"""In-memory fakes for the engine's ports, plus entity builders."""

from __future__ import annotations

import asyncio
import copy
import dataclasses
from datetime import datetime

from dispatch.application.ports.agent_metrics import AgentMetricsProvider
from dispatch.application.ports.assignment_sink import AssignmentSink
from dispatch.application.ports.notification_sink import NotificationSink
from dispatch.application.ports.rule_repo import AssignmentRuleRepository
from dispatch.application.ports.ticket_repo import TicketRepository
from dispatch.application.ports.unit_of_work import UnitOfWork
from dispatch.domain.entities.agent import Agent, PerformanceMetrics
from dispatch.domain.entities.assignment import AssignmentReason
from dispatch.domain.entities.assignment_rule import AssignmentRule
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.errors import CapacityViolation, CommitError, ProviderError
from dispatch.domain.value_objects.enums import (
    Availability,
    Priority,
    Role,
    TicketStatus,
)

NOW = datetime(2026, 3, 2, 12, 0, 0)


# ─── Builders ───────────────────────────────────────────────────────


def make_agent(
    agent_id: str,
    workload: int = 0,
    capacity: int = 10,
    availability: Availability = Availability.AVAILABLE,
    role: Role = Role.AGENT,
    weighted: float | None = None,
    performance: PerformanceMetrics | None = None,
    **kwargs,
) -> Agent:
    return Agent(
        id=agent_id,
        role=role,
        max_concurrent_tickets=capacity,
        current_workload=workload,
        weighted_workload=float(workload) if weighted is None else weighted,
        availability=availability,
        performance=performance or PerformanceMetrics(0.9, 10.0, 4.5),
        **kwargs,
    )


def make_ticket(
    ticket_id: str,
    priority: Priority = Priority.MEDIUM,
    category_id: str | None = "billing",
    status: TicketStatus = TicketStatus.OPEN,
    created_at: datetime = NOW,
    **kwargs,
) -> Ticket:
    return Ticket(
        id=ticket_id,
        priority=priority,
        category_id=category_id,
        created_at=created_at,
        status=status,
        **kwargs,
    )


# ─── Ports ──────────────────────────────────────────────────────────


class FakeAgentProvider(AgentMetricsProvider):
    """Hands out deep copies so callers only ever see snapshots."""

    def __init__(self, agents: list[Agent]):
        self.agents = {a.id: a for a in agents}
        self.list_calls = 0
        self.fail_list = False
        self.fail_list_times = 0
        self.list_delay = 0.0
        self.fail_increment: Exception | None = None
        self.increments: list[tuple[str, float]] = []
        self.decrements: list[tuple[str, float]] = []
        self.last_assigned: dict[str, datetime] = {}

    async def list_eligible_agents(self) -> list[Agent]:
        self.list_calls += 1
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        if self.fail_list:
            raise ProviderError("roster down")
        if self.fail_list_times > 0:
            self.fail_list_times -= 1
            raise ProviderError("roster flaky")
        return [copy.deepcopy(a) for a in self.agents.values()]

    async def increment_workload(self, agent_id: str, priority_weight: float) -> None:
        if self.fail_increment is not None:
            raise self.fail_increment
        agent = self.agents[agent_id]
        if agent.current_workload >= agent.max_concurrent_tickets:
            raise CapacityViolation(agent_id)
        agent.current_workload += 1
        agent.weighted_workload += priority_weight
        self.increments.append((agent_id, priority_weight))

    async def decrement_workload(self, agent_id: str, priority_weight: float) -> None:
        agent = self.agents[agent_id]
        agent.current_workload = max(0, agent.current_workload - 1)
        agent.weighted_workload = max(0.0, agent.weighted_workload - priority_weight)
        self.decrements.append((agent_id, priority_weight))

    async def last_assigned_at(self) -> dict[str, datetime]:
        return dict(self.last_assigned)


class FakeTicketRepo(TicketRepository):
    def __init__(self, tickets: list[Ticket] = ()):
        self.tickets = {t.id: t for t in tickets}

    async def get_by_id(self, ticket_id: str) -> Ticket | None:
        return self.tickets.get(ticket_id)

    async def get_open_by_agent(self, agent_id: str) -> list[Ticket]:
        return [
            t for t in self.tickets.values()
            if t.assigned_agent_id == agent_id and t.is_assignable()
        ]


class FakeAssignmentSink(AssignmentSink):
    """Writes through to ``ticket_repo`` when one is attached, like the SQL sink."""

    def __init__(self, ticket_repo: FakeTicketRepo | None = None):
        self.ticket_repo = ticket_repo
        self.assignments: list[tuple[str, str, AssignmentReason, float]] = []
        self.transfers: list[tuple[str, str, str]] = []
        self.reassignments: list[tuple[str, str, str, str]] = []
        self.fail_with: Exception | None = None
        self.fail_reassign_for: set[str] = set()

    async def record_assignment(
        self, ticket_id, agent_id, reason, confidence, previous_agent_id=None
    ) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self._move(ticket_id, previous_agent_id, agent_id)
        self.assignments.append((ticket_id, agent_id, reason, confidence))
        if previous_agent_id is not None:
            self.transfers.append((ticket_id, previous_agent_id, agent_id))

    async def record_reassignment(self, ticket_id, from_agent_id, to_agent_id, reason) -> None:
        if ticket_id in self.fail_reassign_for:
            raise CommitError(f"ticket {ticket_id} moved meanwhile")
        self._move(ticket_id, from_agent_id, to_agent_id)
        self.reassignments.append((ticket_id, from_agent_id, to_agent_id, reason))

    def _move(self, ticket_id: str, expected: str | None, agent_id: str) -> None:
        if self.ticket_repo is None or ticket_id not in self.ticket_repo.tickets:
            return
        ticket = self.ticket_repo.tickets[ticket_id]
        if ticket.assigned_agent_id != expected:
            raise CommitError(f"ticket {ticket_id} changed hands")
        self.ticket_repo.tickets[ticket_id] = dataclasses.replace(
            ticket, assigned_agent_id=agent_id, status=TicketStatus.IN_PROGRESS
        )


class FakeUnitOfWork(UnitOfWork):
    def __init__(self, fail_commit: Exception | None = None):
        self.commits = 0
        self.rollbacks = 0
        self.fail_commit = fail_commit

    async def commit(self) -> None:
        if self.fail_commit is not None:
            raise self.fail_commit
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1


class FakeNotificationSink(NotificationSink):
    def __init__(self, fail: bool = False):
        self.assigned: list[tuple[str, str]] = []
        self.reassigned: list[tuple[str, str, str]] = []
        self.fail = fail

    async def notify_assigned(self, ticket_id: str, agent_id: str) -> None:
        if self.fail:
            raise RuntimeError("notification channel down")
        self.assigned.append((ticket_id, agent_id))

    async def notify_reassigned(self, ticket_id: str, from_agent_id: str, to_agent_id: str) -> None:
        if self.fail:
            raise RuntimeError("notification channel down")
        self.reassigned.append((ticket_id, from_agent_id, to_agent_id))


class FakeRuleRepo(AssignmentRuleRepository):
    def __init__(self, rules: list[AssignmentRule] = (), fail: bool = False):
        self.rules = list(rules)
        self.fail = fail

    async def get_active_rules(self) -> list[AssignmentRule]:
        if self.fail:
            raise RuntimeError("rules table missing")
        return [r for r in self.rules if r.enabled]
