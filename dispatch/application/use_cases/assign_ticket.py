"""AssignTicketUseCase — single-ticket assignment with the rule → score → round-robin → manual chain."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from functools import partial
from typing import TypeVar

from dispatch.application.locks import KeyedLock
from dispatch.application.notifications import (
    NotificationOutbox,
    TicketAssigned,
    TicketReassigned,
)
from dispatch.application.ports.agent_metrics import AgentMetricsProvider
from dispatch.application.ports.assignment_sink import AssignmentSink
from dispatch.application.ports.rule_repo import AssignmentRuleRepository
from dispatch.application.ports.ticket_repo import TicketRepository
from dispatch.application.ports.unit_of_work import NullUnitOfWork, UnitOfWork
from dispatch.domain.entities.agent import Agent
from dispatch.domain.entities.assignment import AssignmentReason, AssignmentResult
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.errors import (
    CapacityViolation,
    CommitError,
    DispatchError,
    ProviderError,
    TicketNotFound,
)
from dispatch.domain.policies.assignment_rules import match_rule
from dispatch.domain.policies.candidate_selection import (
    DEFAULT_SELECTION,
    SelectionConfig,
    select_candidates,
)
from dispatch.domain.policies.round_robin import pick_least_loaded
from dispatch.domain.policies.scoring import DEFAULT_SCORING, ScoringConfig, priority_weight
from dispatch.domain.value_objects.enums import AssignmentMethod, ReasonCode

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 10.0


async def call_with_timeout(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await an external call, bounded by *timeout* seconds (``None`` = no bound)."""
    if timeout is None or timeout <= 0:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout)


class AssignTicketUseCase:
    """Entry point for assigning or recommending an agent for one ticket.

    Everything before the commit is advisory: provider errors and timeouts
    while choosing an agent only move the ticket down the fallback chain.
    Once an agent is chosen, failures surface to the caller as-is.
    """

    def __init__(
        self,
        agent_provider: AgentMetricsProvider,
        ticket_repo: TicketRepository,
        assignment_sink: AssignmentSink,
        outbox: NotificationOutbox,
        ticket_locks: KeyedLock,
        agent_locks: KeyedLock,
        rule_repo: AssignmentRuleRepository | None = None,
        unit_of_work: UnitOfWork | None = None,
        scoring: ScoringConfig = DEFAULT_SCORING,
        selection: SelectionConfig = DEFAULT_SELECTION,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
        max_reselections: int = 3,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._agents = agent_provider
        self._tickets = ticket_repo
        self._sink = assignment_sink
        self._outbox = outbox
        self._ticket_locks = ticket_locks
        self._agent_locks = agent_locks
        self._rules = rule_repo
        self._uow = unit_of_work or NullUnitOfWork()
        self._scoring = scoring
        self._selection = selection
        self._timeout = timeout
        self._max_reselections = max_reselections
        self._clock = clock

    # ─── Public operations ──────────────────────────────────────────────

    async def assign(
        self,
        ticket_id: str,
        explicit_agent_id: str | None = None,
        timeout: float | None = None,
    ) -> AssignmentResult:
        """Assign *ticket_id*, manually when *explicit_agent_id* is given.

        Concurrent calls for the same ticket are serialised. An automatic
        request for a ticket that already has an assignee returns
        ``already_assigned``; an explicit agent on such a ticket transfers it
        and frees the previous assignee's workload slot.

        Raises:
            TicketNotFound: unknown ticket.
            ProviderError: the roster was unreachable at every fallback
                stage, or failed during the commit.
            CommitError: the decision could not be persisted.
        """
        timeout = self._timeout if timeout is None else timeout
        async with self._ticket_locks.hold(ticket_id):
            ticket = await self._load_ticket(ticket_id, timeout)
            if not ticket.is_assignable():
                return _not_assignable(ticket)

            if explicit_agent_id:
                return await self._assign_manually(ticket, explicit_agent_id, timeout)
            return await self._assign_automatically(ticket, timeout)

    async def recommend(self, ticket_id: str, timeout: float | None = None) -> AssignmentResult:
        """Same decision as ``assign`` without committing or notifying anything."""
        timeout = self._timeout if timeout is None else timeout
        ticket = await self._load_ticket(ticket_id, timeout)
        if not ticket.is_assignable():
            return _not_assignable(ticket)
        return await self._decide(ticket, timeout, excluded=set())

    # ─── Decision ───────────────────────────────────────────────────────

    async def _decide(
        self, ticket: Ticket, timeout: float | None, excluded: set[str]
    ) -> AssignmentResult:
        """Pipeline:
        1. Assignment rules (when a rule repository is configured)
        2. Intelligent scoring over the roster snapshot
        3. Round-robin to the least loaded agent
        4. Manual assignment required
        """
        roster = await self._fetch_roster_or_none(ticket, timeout)

        if roster is not None:
            rule_result = await self._try_rules(ticket, roster, excluded, timeout)
            if rule_result is not None:
                logger.info("Ticket %s: rule match → %s", ticket.id, rule_result.assigned_agent_id)
                return rule_result

            try:
                selection = select_candidates(
                    ticket, roster, self._scoring, self._selection, exclude=excluded
                )
            except Exception:
                logger.exception("Ticket %s: scoring failed, falling back", ticket.id)
            else:
                if selection.success:
                    result = selection.to_result()
                    logger.info(
                        "Ticket %s: intelligent pick %s (score=%.3f, confidence=%.3f)",
                        ticket.id, result.assigned_agent_id, result.score, result.confidence,
                    )
                    return result
                logger.warning(
                    "Ticket %s: no eligible agent for intelligent assignment, trying round-robin",
                    ticket.id,
                )

        if roster is None:
            try:
                roster = await call_with_timeout(self._agents.list_eligible_agents(), timeout)
            except (ProviderError, asyncio.TimeoutError) as exc:
                logger.error("Ticket %s: agent roster unavailable for round-robin", ticket.id)
                raise ProviderError(
                    f"Agent roster unavailable while assigning ticket {ticket.id}"
                ) from exc

        last_assigned = await self._last_assigned(timeout)
        fallback = pick_least_loaded(
            roster, last_assigned, excluded, self._selection.max_alternatives
        )
        if fallback.success:
            logger.info("Ticket %s: round-robin pick %s", ticket.id, fallback.assigned_agent_id)
            return fallback

        logger.warning("Ticket %s: no agent available, manual assignment required", ticket.id)
        return AssignmentResult.failure(
            ReasonCode.MANUAL_ASSIGNMENT_REQUIRED,
            "No agent could be selected automatically; assign this ticket manually",
        )

    async def _fetch_roster_or_none(self, ticket: Ticket, timeout: float | None) -> list[Agent] | None:
        try:
            return await call_with_timeout(self._agents.list_eligible_agents(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Ticket %s: roster fetch timed out, falling back", ticket.id)
        except ProviderError as exc:
            logger.warning("Ticket %s: roster fetch failed (%s), falling back", ticket.id, exc)
        return None

    async def _try_rules(
        self,
        ticket: Ticket,
        roster: list[Agent],
        excluded: set[str],
        timeout: float | None,
    ) -> AssignmentResult | None:
        if self._rules is None:
            return None
        try:
            rules = await call_with_timeout(self._rules.get_active_rules(), timeout)
            candidates = [a for a in roster if a.id not in excluded]
            return match_rule(rules, ticket, candidates, self._clock().time())
        except Exception:
            logger.warning(
                "Ticket %s: rule evaluation failed, continuing with scoring",
                ticket.id, exc_info=True,
            )
            return None

    async def _last_assigned(self, timeout: float | None) -> dict[str, datetime]:
        try:
            return await call_with_timeout(self._agents.last_assigned_at(), timeout)
        except (ProviderError, asyncio.TimeoutError):
            logger.warning("Last-assignment times unavailable, ordering ties by agent id")
            return {}

    # ─── Assignment paths ───────────────────────────────────────────────

    async def _assign_automatically(self, ticket: Ticket, timeout: float | None) -> AssignmentResult:
        if ticket.assigned_agent_id:
            return _already_assigned(ticket)

        excluded: set[str] = set()
        for _ in range(self._max_reselections + 1):
            decision = await self._decide(ticket, timeout, excluded)
            if not decision.success:
                return decision
            try:
                await self._commit(ticket, decision, timeout)
                return decision
            except CapacityViolation as exc:
                logger.warning(
                    "Ticket %s: %s at commit time, selecting again", ticket.id, exc
                )
                excluded.add(decision.assigned_agent_id)

        return AssignmentResult.failure(
            ReasonCode.MANUAL_ASSIGNMENT_REQUIRED,
            "Every selected agent filled up before the assignment could be committed",
        )

    async def _assign_manually(
        self, ticket: Ticket, agent_id: str, timeout: float | None
    ) -> AssignmentResult:
        if ticket.assigned_agent_id == agent_id:
            return _already_assigned(ticket)

        try:
            roster = await call_with_timeout(self._agents.list_eligible_agents(), timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderError("Timed out reading agent roster") from exc

        agent = next((a for a in roster if a.id == agent_id), None)
        if agent is None:
            return AssignmentResult.failure(
                ReasonCode.AGENT_NOT_FOUND, f"Agent {agent_id} is not an assignable agent"
            )
        if agent.is_offline():
            return AssignmentResult.failure(
                ReasonCode.AGENT_UNAVAILABLE, f"Agent {agent_id} is offline"
            )
        if agent.is_at_capacity():
            return AssignmentResult.failure(
                ReasonCode.AGENT_AT_CAPACITY,
                f"Agent {agent_id} is at capacity ({agent.current_workload}/{agent.max_concurrent_tickets})",
            )

        message = "Manual assignment"
        if ticket.assigned_agent_id:
            message = f"Manual transfer from agent {ticket.assigned_agent_id}"
        result = AssignmentResult(
            success=True,
            assigned_agent_id=agent_id,
            reason=AssignmentReason(ReasonCode.MANUAL_ASSIGNMENT, message),
            confidence=1.0,
            method=AssignmentMethod.MANUAL,
        )
        try:
            await self._commit(ticket, result, timeout)
        except CapacityViolation:
            return AssignmentResult.failure(
                ReasonCode.AGENT_AT_CAPACITY, f"Agent {agent_id} filled up before the assignment"
            )
        return result

    # ─── Commit ─────────────────────────────────────────────────────────

    async def _commit(
        self, ticket: Ticket, decision: AssignmentResult, timeout: float | None
    ) -> None:
        """Take the workload slot, persist, commit, then publish the notification.

        Runs under the lock of every agent involved (the new assignee, plus the
        previous one on a transfer), so concurrent assignments and rebalance
        moves touching them are linearised. The unit of work is committed
        before the locks are released and before anyone is notified. On
        failure the workload changes are undone and the unit of work is rolled
        back before the error propagates.
        """
        agent_id = decision.assigned_agent_id
        previous_id = ticket.assigned_agent_id
        weight = priority_weight(ticket.priority, self._scoring)
        involved = [agent_id] if previous_id is None else [previous_id, agent_id]

        async with self._agent_locks.hold_many(involved):
            try:
                await self._step(self._agents.increment_workload(agent_id, weight), ticket, timeout)
            except Exception:
                await self._rollback()
                raise

            undo: list[Callable[[], Awaitable[None]]] = [
                partial(self._agents.decrement_workload, agent_id, weight)
            ]
            try:
                if previous_id is not None:
                    await self._step(
                        self._agents.decrement_workload(previous_id, weight), ticket, timeout
                    )
                    undo.append(partial(self._agents.increment_workload, previous_id, weight))
                await self._step(
                    self._sink.record_assignment(
                        ticket.id,
                        agent_id,
                        decision.reason,
                        decision.confidence,
                        previous_agent_id=previous_id,
                    ),
                    ticket,
                    timeout,
                )
                await self._step(self._uow.commit(), ticket, timeout)
            except Exception as exc:
                for step in undo:
                    await self._compensate(step, timeout)
                await self._rollback()
                if isinstance(exc, DispatchError):
                    raise
                raise CommitError(f"Failed to record assignment of ticket {ticket.id}: {exc}") from exc

        if previous_id is None:
            self._outbox.publish(TicketAssigned(ticket_id=ticket.id, agent_id=agent_id))
        else:
            self._outbox.publish(
                TicketReassigned(ticket_id=ticket.id, from_agent_id=previous_id, to_agent_id=agent_id)
            )
        logger.info(
            "Ticket %s → agent %s (%s, confidence=%.3f)",
            ticket.id, agent_id, decision.method.value, decision.confidence,
        )

    @staticmethod
    async def _step(awaitable: Awaitable[T], ticket: Ticket, timeout: float | None) -> T:
        try:
            return await call_with_timeout(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise CommitError(f"Timed out committing assignment of ticket {ticket.id}") from exc

    async def _compensate(self, step: Callable[[], Awaitable[None]], timeout: float | None) -> None:
        try:
            await call_with_timeout(step(), timeout)
        except Exception:
            logger.warning("Could not undo a workload change of an aborted assignment", exc_info=True)

    async def _rollback(self) -> None:
        try:
            await self._uow.rollback()
        except Exception:
            logger.exception("Rolling back an aborted assignment failed")

    async def _load_ticket(self, ticket_id: str, timeout: float | None) -> Ticket:
        try:
            ticket = await call_with_timeout(self._tickets.get_by_id(ticket_id), timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderError(f"Timed out loading ticket {ticket_id}") from exc
        if ticket is None:
            raise TicketNotFound(ticket_id)
        return ticket


def _not_assignable(ticket: Ticket) -> AssignmentResult:
    return AssignmentResult.failure(
        ReasonCode.TICKET_NOT_ASSIGNABLE,
        f"Ticket {ticket.id} has status {ticket.status.value}",
    )


def _already_assigned(ticket: Ticket) -> AssignmentResult:
    return AssignmentResult.failure(
        ReasonCode.ALREADY_ASSIGNED,
        f"Ticket {ticket.id} is already assigned to agent {ticket.assigned_agent_id}",
    )
