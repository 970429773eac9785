"""FastAPI dependency injection — wires adapters into use cases."""

from __future__ import annotations

import logging
from datetime import timedelta

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.adapters.notifications.webhook_notifier import (
    LoggingNotificationSink,
    WebhookNotificationSink,
)
from dispatch.adapters.persistence.database import async_session_factory, get_session
from dispatch.adapters.persistence.repositories import (
    SqlAgentMetricsProvider,
    SqlAssignmentRuleRepository,
    SqlAssignmentSink,
    SqlTicketRepository,
    SqlUnitOfWork,
)
from dispatch.adapters.resilience.retrying_provider import (
    RetryingAgentMetricsProvider,
    RetryPolicy,
)
from dispatch.application.locks import KeyedLock, RunGuard
from dispatch.application.notifications import NotificationOutbox
from dispatch.application.ports.notification_sink import NotificationSink
from dispatch.application.use_cases.assign_ticket import AssignTicketUseCase
from dispatch.application.use_cases.rebalance_workload import RebalanceWorkloadUseCase
from dispatch.application.use_cases.workload_report import WorkloadReportUseCase
from dispatch.config import settings
from dispatch.domain.entities.assignment import AssignmentResult
from dispatch.domain.entities.rebalance import RebalanceResult

logger = logging.getLogger(__name__)

# Re-export session dependency
get_db_session = get_session

# Process-wide coordination state shared by every request and background task
ticket_locks = KeyedLock()
agent_locks = KeyedLock()
rebalance_guard = RunGuard()
outbox = NotificationOutbox()

_retry_policy = RetryPolicy(
    max_attempts=settings.provider_retry_attempts,
    backoff_min_seconds=settings.provider_retry_backoff_min,
    backoff_max_seconds=settings.provider_retry_backoff_max,
)


def build_notification_sink() -> NotificationSink:
    if settings.notification_webhook_url:
        logger.info("Delivering notifications to %s", settings.notification_webhook_url)
        return WebhookNotificationSink(
            settings.notification_webhook_url, timeout=settings.external_call_timeout_seconds
        )
    return LoggingNotificationSink()


def _agent_provider(session: AsyncSession) -> RetryingAgentMetricsProvider:
    return RetryingAgentMetricsProvider(
        SqlAgentMetricsProvider(
            session, stale_after=timedelta(minutes=settings.agent_stale_after_minutes)
        ),
        _retry_policy,
    )


def build_assign_uc(session: AsyncSession) -> AssignTicketUseCase:
    return AssignTicketUseCase(
        agent_provider=_agent_provider(session),
        ticket_repo=SqlTicketRepository(session),
        assignment_sink=SqlAssignmentSink(session),
        outbox=outbox,
        ticket_locks=ticket_locks,
        agent_locks=agent_locks,
        rule_repo=SqlAssignmentRuleRepository(session),
        unit_of_work=SqlUnitOfWork(session),
        scoring=settings.scoring_config(),
        selection=settings.selection_config(),
        timeout=settings.external_call_timeout_seconds,
        max_reselections=settings.max_reselection_attempts,
    )


def build_rebalance_uc(session: AsyncSession) -> RebalanceWorkloadUseCase:
    return RebalanceWorkloadUseCase(
        agent_provider=_agent_provider(session),
        ticket_repo=SqlTicketRepository(session),
        assignment_sink=SqlAssignmentSink(session),
        outbox=outbox,
        agent_locks=agent_locks,
        run_guard=rebalance_guard,
        unit_of_work=SqlUnitOfWork(session),
        scoring=settings.scoring_config(),
        selection=settings.selection_config(),
        config=settings.rebalance_config(),
        timeout=settings.external_call_timeout_seconds,
    )


def get_assign_ticket_uc(session: AsyncSession = Depends(get_session)) -> AssignTicketUseCase:
    return build_assign_uc(session)


def get_rebalance_uc(session: AsyncSession = Depends(get_session)) -> RebalanceWorkloadUseCase:
    return build_rebalance_uc(session)


def get_workload_report_uc(
    session: AsyncSession = Depends(get_session),
) -> WorkloadReportUseCase:
    return WorkloadReportUseCase(
        agent_provider=_agent_provider(session),
        config=settings.rebalance_config(),
        timeout=settings.external_call_timeout_seconds,
    )


# ─── Background entry points (own session per unit of work) ──────────
# The use cases commit each assignment and each rebalance move themselves;
# closing the session discards whatever was left uncommitted.


async def assign_in_new_session(ticket_id: str, agent_id: str | None = None) -> AssignmentResult:
    async with async_session_factory() as session:
        return await build_assign_uc(session).assign(ticket_id, agent_id)


async def rebalance_in_new_session() -> RebalanceResult:
    async with async_session_factory() as session:
        return await build_rebalance_uc(session).execute()
