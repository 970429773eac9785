"""RebalanceWorkloadUseCase — move non-urgent tickets from overloaded to underloaded agents."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from functools import partial

from dispatch.application.locks import KeyedLock, RunGuard
from dispatch.application.notifications import NotificationOutbox, TicketReassigned
from dispatch.application.ports.agent_metrics import AgentMetricsProvider
from dispatch.application.ports.assignment_sink import AssignmentSink
from dispatch.application.ports.ticket_repo import TicketRepository
from dispatch.application.ports.unit_of_work import NullUnitOfWork, UnitOfWork
from dispatch.application.use_cases.assign_ticket import DEFAULT_TIMEOUT_SECONDS, call_with_timeout
from dispatch.domain.entities.agent import Agent
from dispatch.domain.entities.rebalance import FailedMove, ReassignmentMove, RebalanceResult
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.errors import AlreadyRunning, CommitError, DispatchError, ProviderError
from dispatch.domain.policies.candidate_selection import DEFAULT_SELECTION, SelectionConfig
from dispatch.domain.policies.rebalancing import (
    DEFAULT_REBALANCE,
    RebalanceConfig,
    classify_load,
    plan_rebalance,
)
from dispatch.domain.policies.scoring import DEFAULT_SCORING, ScoringConfig, priority_weight
from dispatch.domain.value_objects.enums import LoadLevel, RebalanceReason

logger = logging.getLogger(__name__)

REBALANCE_REASON = "Workload rebalancing"


class RebalanceWorkloadUseCase:
    """One bounded rebalancing pass over a single roster snapshot.

    Only one pass runs at a time (``RunGuard``); ordinary assignments keep
    running meanwhile, which is why every move re-checks capacity when it
    is committed.
    """

    def __init__(
        self,
        agent_provider: AgentMetricsProvider,
        ticket_repo: TicketRepository,
        assignment_sink: AssignmentSink,
        outbox: NotificationOutbox,
        agent_locks: KeyedLock,
        run_guard: RunGuard,
        unit_of_work: UnitOfWork | None = None,
        scoring: ScoringConfig = DEFAULT_SCORING,
        selection: SelectionConfig = DEFAULT_SELECTION,
        config: RebalanceConfig = DEFAULT_REBALANCE,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._agents = agent_provider
        self._tickets = ticket_repo
        self._sink = assignment_sink
        self._outbox = outbox
        self._agent_locks = agent_locks
        self._guard = run_guard
        self._uow = unit_of_work or NullUnitOfWork()
        self._scoring = scoring
        self._selection = selection
        self._config = config
        self._timeout = timeout

    async def execute(self, timeout: float | None = None) -> RebalanceResult:
        timeout = self._timeout if timeout is None else timeout
        try:
            async with self._guard.acquire():
                return await self._run(timeout)
        except AlreadyRunning:
            logger.info("Rebalance requested while another pass is running, skipping")
            return RebalanceResult(
                success=False,
                reassignments=0,
                message="A rebalance pass is already running",
                reason=RebalanceReason.ALREADY_RUNNING,
            )

    async def _run(self, timeout: float | None) -> RebalanceResult:
        try:
            roster = await call_with_timeout(self._agents.list_eligible_agents(), timeout)
        except (ProviderError, asyncio.TimeoutError) as exc:
            logger.error("Rebalance aborted, agent roster unavailable: %s", exc)
            return RebalanceResult(
                success=False,
                reassignments=0,
                message="Agent roster unavailable",
                reason=RebalanceReason.PROVIDER_ERROR,
            )

        open_tickets = await self._open_tickets_of_overloaded(roster, timeout)
        plan = plan_rebalance(roster, open_tickets, self._scoring, self._selection, self._config)

        if plan.is_balanced or not plan.moves:
            logger.info(
                "Rebalance: nothing to move (overloaded=%d, underloaded=%d)",
                len(plan.overloaded), len(plan.underloaded),
            )
            return RebalanceResult(
                success=True,
                reassignments=0,
                message="Workload is already balanced",
                reason=RebalanceReason.BALANCED,
            )

        committed: list[ReassignmentMove] = []
        failed: list[FailedMove] = []
        for move in plan.moves:
            try:
                await self._commit_move(move, timeout)
            except DispatchError as exc:
                logger.warning(
                    "Rebalance: move of ticket %s %s → %s failed: %s",
                    move.ticket_id, move.from_agent_id, move.to_agent_id, exc,
                )
                failed.append(FailedMove(move=move, error=str(exc)))
            else:
                committed.append(move)

        logger.info(
            "Rebalance complete: %d/%d moves committed", len(committed), len(plan.moves)
        )
        if failed:
            return RebalanceResult(
                success=bool(committed),
                reassignments=len(committed),
                message=f"Rebalanced {len(committed)} tickets; {len(failed)} moves failed",
                reason=RebalanceReason.PARTIAL,
                moves=committed,
                failed_moves=failed,
            )
        return RebalanceResult(
            success=True,
            reassignments=len(committed),
            message=f"Successfully rebalanced {len(committed)} tickets",
            reason=RebalanceReason.REBALANCED,
            moves=committed,
        )

    async def _open_tickets_of_overloaded(
        self, roster: list[Agent], timeout: float | None
    ) -> dict[str, list[Ticket]]:
        tickets: dict[str, list[Ticket]] = {}
        for agent in roster:
            if classify_load(agent, self._config) != LoadLevel.OVERLOADED:
                continue
            try:
                tickets[agent.id] = await call_with_timeout(
                    self._tickets.get_open_by_agent(agent.id), timeout
                )
            except (DispatchError, asyncio.TimeoutError):
                logger.warning("Rebalance: could not list tickets of agent %s", agent.id)
                await self._rollback()
                tickets[agent.id] = []
        return tickets

    async def _commit_move(self, move: ReassignmentMove, timeout: float | None) -> None:
        """Re-check target capacity, shift the workload, persist, commit, then notify.

        Each move is its own unit of work, committed while both agent locks
        are held. A failure undoes this move's workload changes and rolls back
        its unit of work; earlier moves stay committed.
        """
        weight = priority_weight(move.priority, self._scoring)

        async with self._agent_locks.hold_many([move.from_agent_id, move.to_agent_id]):
            try:
                await self._external(
                    self._agents.increment_workload(move.to_agent_id, weight), timeout, move
                )
            except Exception:
                await self._rollback()
                raise

            undo: list[Callable[[], Awaitable[None]]] = [
                partial(self._agents.decrement_workload, move.to_agent_id, weight)
            ]
            try:
                await self._external(
                    self._agents.decrement_workload(move.from_agent_id, weight), timeout, move
                )
                undo.append(partial(self._agents.increment_workload, move.from_agent_id, weight))
                await self._external(
                    self._sink.record_reassignment(
                        move.ticket_id, move.from_agent_id, move.to_agent_id, REBALANCE_REASON
                    ),
                    timeout,
                    move,
                )
                await self._external(self._uow.commit(), timeout, move)
            except Exception:
                for step in undo:
                    await self._undo(step, timeout)
                await self._rollback()
                raise

        self._outbox.publish(
            TicketReassigned(
                ticket_id=move.ticket_id,
                from_agent_id=move.from_agent_id,
                to_agent_id=move.to_agent_id,
            )
        )

    @staticmethod
    async def _external(awaitable, timeout: float | None, move: ReassignmentMove) -> None:
        try:
            await call_with_timeout(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise CommitError(f"Timed out committing move of ticket {move.ticket_id}") from exc

    @staticmethod
    async def _undo(step: Callable[[], Awaitable[None]], timeout: float | None) -> None:
        try:
            await call_with_timeout(step(), timeout)
        except Exception:
            logger.warning("Rebalance: compensating workload update failed", exc_info=True)

    async def _rollback(self) -> None:
        try:
            await self._uow.rollback()
        except Exception:
            logger.exception("Rebalance: rolling back a failed move failed")
