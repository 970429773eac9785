"""SQLAlchemy implementations of the engine's ports."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dispatch.adapters.persistence.models import (
    AgentModel,
    AssignmentLogModel,
    AssignmentRuleModel,
    TicketModel,
)
from dispatch.application.ports.agent_metrics import AgentMetricsProvider
from dispatch.application.ports.assignment_sink import AssignmentSink
from dispatch.application.ports.rule_repo import AssignmentRuleRepository
from dispatch.application.ports.ticket_repo import TicketRepository
from dispatch.application.ports.unit_of_work import UnitOfWork
from dispatch.domain.entities.agent import Agent, PerformanceMetrics
from dispatch.domain.entities.assignment import AssignmentReason
from dispatch.domain.entities.assignment_rule import AssignmentRule, RuleConditions
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.errors import CapacityViolation, CommitError, ProviderError
from dispatch.domain.policies.availability import infer_availability
from dispatch.domain.value_objects.enums import (
    Availability,
    ExpertiseLevel,
    Priority,
    Role,
    TicketStatus,
)

ASSIGNABLE_STATUSES = [TicketStatus.OPEN.value, TicketStatus.IN_PROGRESS.value]
ASSIGNABLE_ROLES = [r.value for r in Role]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ─── Mappers ─────────────────────────────────────────────────────────


def _agent_to_domain(m: AgentModel, now: datetime, stale_after: timedelta) -> Agent:
    return Agent(
        id=m.id,
        name=m.name,
        role=Role(m.role),
        max_concurrent_tickets=m.max_concurrent_tickets,
        current_workload=m.current_workload,
        weighted_workload=m.weighted_workload,
        availability=infer_availability(
            Availability(m.availability), m.last_activity, now, stale_after
        ),
        performance=PerformanceMetrics(
            resolution_rate=m.resolution_rate,
            avg_resolution_time_hours=m.avg_resolution_time_hours,
            satisfaction_score=m.satisfaction_score,
        ),
        category_expertise={
            e.category_id: ExpertiseLevel(e.expertise_level) for e in m.category_expertise
        },
        subcategory_expertise={
            e.subcategory_id: ExpertiseLevel(e.expertise_level) for e in m.subcategory_expertise
        },
        last_activity=m.last_activity,
    )


def _ticket_to_domain(m: TicketModel) -> Ticket:
    return Ticket(
        id=m.id,
        priority=Priority(m.priority),
        category_id=m.category_id,
        subcategory_id=m.subcategory_id,
        created_at=m.created_at,
        status=TicketStatus(m.status),
        assigned_agent_id=m.assigned_to,
        title=m.title or "",
        description=m.description or "",
    )


def _rule_to_domain(m: AssignmentRuleModel) -> AssignmentRule:
    return AssignmentRule(
        id=m.id,
        name=m.name,
        assign_to_agent_id=m.assign_to_agent_id,
        priority=m.priority,
        enabled=m.enabled,
        conditions=RuleConditions(
            priorities=frozenset(Priority(p) for p in m.priorities or []),
            category_ids=frozenset(m.category_ids or []),
            keywords=tuple(m.keywords or []),
            active_from=m.active_from,
            active_until=m.active_until,
        ),
    )


# ─── Repositories ────────────────────────────────────────────────────


class SqlAgentMetricsProvider(AgentMetricsProvider):
    """Roster and workload counters stored on the ``agents`` table.

    Workload increments are a single conditional UPDATE, so capacity holds
    across processes, not just within one event loop.
    """

    def __init__(
        self,
        session: AsyncSession,
        stale_after: timedelta = timedelta(minutes=15),
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._s = session
        self._stale_after = stale_after
        self._clock = clock

    async def list_eligible_agents(self) -> list[Agent]:
        try:
            result = await self._s.execute(
                select(AgentModel)
                .options(
                    selectinload(AgentModel.category_expertise),
                    selectinload(AgentModel.subcategory_expertise),
                )
                .where(AgentModel.role.in_(ASSIGNABLE_ROLES))
                .order_by(AgentModel.id)
            )
        except SQLAlchemyError as exc:
            raise ProviderError(f"Could not load agent roster: {exc}") from exc
        now = self._clock()
        return [_agent_to_domain(m, now, self._stale_after) for m in result.scalars()]

    async def increment_workload(self, agent_id: str, priority_weight: float) -> None:
        try:
            result = await self._s.execute(
                update(AgentModel)
                .where(
                    AgentModel.id == agent_id,
                    AgentModel.current_workload < AgentModel.max_concurrent_tickets,
                )
                .values(
                    current_workload=AgentModel.current_workload + 1,
                    weighted_workload=AgentModel.weighted_workload + priority_weight,
                    last_assigned_at=self._clock(),
                )
                .returning(AgentModel.id)
            )
            updated = result.scalar_one_or_none()
            if updated is None:
                exists = await self._s.scalar(select(AgentModel.id).where(AgentModel.id == agent_id))
            await self._s.flush()
        except SQLAlchemyError as exc:
            raise ProviderError(f"Could not update workload of agent {agent_id}: {exc}") from exc

        if updated is None:
            if exists is None:
                raise ProviderError(f"Agent {agent_id} does not exist")
            raise CapacityViolation(agent_id)

    async def decrement_workload(self, agent_id: str, priority_weight: float) -> None:
        try:
            await self._s.execute(
                update(AgentModel)
                .where(AgentModel.id == agent_id)
                .values(
                    current_workload=func.greatest(AgentModel.current_workload - 1, 0),
                    weighted_workload=func.greatest(
                        AgentModel.weighted_workload - priority_weight, 0.0
                    ),
                )
            )
            await self._s.flush()
        except SQLAlchemyError as exc:
            raise ProviderError(f"Could not update workload of agent {agent_id}: {exc}") from exc

    async def last_assigned_at(self) -> dict[str, datetime]:
        try:
            result = await self._s.execute(
                select(AgentModel.id, AgentModel.last_assigned_at).where(
                    AgentModel.last_assigned_at.is_not(None)
                )
            )
        except SQLAlchemyError as exc:
            raise ProviderError(f"Could not load assignment history: {exc}") from exc
        return {agent_id: ts for agent_id, ts in result.all()}


class SqlTicketRepository(TicketRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_by_id(self, ticket_id: str) -> Ticket | None:
        try:
            m = await self._s.get(TicketModel, ticket_id)
        except SQLAlchemyError as exc:
            raise ProviderError(f"Could not load ticket {ticket_id}: {exc}") from exc
        return _ticket_to_domain(m) if m else None

    async def get_open_by_agent(self, agent_id: str) -> list[Ticket]:
        try:
            result = await self._s.execute(
                select(TicketModel)
                .where(
                    TicketModel.assigned_to == agent_id,
                    TicketModel.status.in_(ASSIGNABLE_STATUSES),
                )
                .order_by(TicketModel.created_at.desc(), TicketModel.id)
            )
        except SQLAlchemyError as exc:
            raise ProviderError(f"Could not list tickets of agent {agent_id}: {exc}") from exc
        return [_ticket_to_domain(m) for m in result.scalars()]


class SqlAssignmentSink(AssignmentSink):
    """Writes the assignee onto the ticket and appends to ``assignment_log``."""

    def __init__(self, session: AsyncSession):
        self._s = session

    async def record_assignment(
        self,
        ticket_id: str,
        agent_id: str,
        reason: AssignmentReason,
        confidence: float,
        previous_agent_id: str | None = None,
    ) -> None:
        try:
            result = await self._s.execute(
                update(TicketModel)
                .where(
                    TicketModel.id == ticket_id,
                    TicketModel.assigned_to.is_not_distinct_from(previous_agent_id),
                    TicketModel.status.in_(ASSIGNABLE_STATUSES),
                )
                .values(assigned_to=agent_id, status=TicketStatus.IN_PROGRESS.value)
            )
            if result.rowcount == 0:
                raise CommitError(
                    f"Ticket {ticket_id} changed hands or disappeared before assignment"
                )
            await self._s.execute(
                insert(AssignmentLogModel).values(
                    ticket_id=ticket_id,
                    agent_id=agent_id,
                    previous_agent_id=previous_agent_id,
                    reason_code=reason.code.value,
                    reason=reason.message,
                    confidence=confidence,
                )
            )
            await self._s.flush()
        except SQLAlchemyError as exc:
            raise CommitError(f"Could not record assignment of ticket {ticket_id}: {exc}") from exc

    async def record_reassignment(
        self,
        ticket_id: str,
        from_agent_id: str,
        to_agent_id: str,
        reason: str,
    ) -> None:
        try:
            result = await self._s.execute(
                update(TicketModel)
                .where(
                    TicketModel.id == ticket_id,
                    TicketModel.assigned_to == from_agent_id,
                    TicketModel.status.in_(ASSIGNABLE_STATUSES),
                )
                .values(assigned_to=to_agent_id)
            )
            if result.rowcount == 0:
                raise CommitError(
                    f"Ticket {ticket_id} is no longer an open ticket of agent {from_agent_id}"
                )
            await self._s.execute(
                insert(AssignmentLogModel).values(
                    ticket_id=ticket_id,
                    agent_id=to_agent_id,
                    previous_agent_id=from_agent_id,
                    reason_code="rebalanced",
                    reason=reason,
                )
            )
            await self._s.flush()
        except SQLAlchemyError as exc:
            raise CommitError(f"Could not record reassignment of ticket {ticket_id}: {exc}") from exc


class SqlUnitOfWork(UnitOfWork):
    """Commits the session shared by the repositories above.

    The engine calls ``commit`` once per assignment or rebalance move, while
    it still holds the locks, so nothing is announced before it is durable.
    """

    def __init__(self, session: AsyncSession):
        self._s = session

    async def commit(self) -> None:
        try:
            await self._s.commit()
        except SQLAlchemyError as exc:
            raise CommitError(f"Could not commit transaction: {exc}") from exc

    async def rollback(self) -> None:
        await self._s.rollback()


class SqlAssignmentRuleRepository(AssignmentRuleRepository):
    def __init__(self, session: AsyncSession):
        self._s = session

    async def get_active_rules(self) -> list[AssignmentRule]:
        result = await self._s.execute(
            select(AssignmentRuleModel)
            .where(AssignmentRuleModel.enabled.is_(True))
            .order_by(AssignmentRuleModel.priority.desc(), AssignmentRuleModel.id)
        )
        return [_rule_to_domain(m) for m in result.scalars()]
