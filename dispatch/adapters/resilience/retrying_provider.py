"""RetryingAgentMetricsProvider — tenacity backoff around roster reads."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from dispatch.application.ports.agent_metrics import AgentMetricsProvider
from dispatch.domain.entities.agent import Agent
from dispatch.domain.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff_min_seconds: float = 0.2
    backoff_max_seconds: float = 2.0


class RetryingAgentMetricsProvider(AgentMetricsProvider):
    """Decorates another provider and retries its read calls on ProviderError.

    Workload updates are passed straight through: they are not idempotent,
    so a retry after an ambiguous failure could count a ticket twice.
    """

    def __init__(self, inner: AgentMetricsProvider, policy: RetryPolicy | None = None):
        self._inner = inner
        self._policy = policy or RetryPolicy()

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self._policy.max_attempts)),
            wait=wait_exponential(
                multiplier=self._policy.backoff_min_seconds,
                min=self._policy.backoff_min_seconds,
                max=self._policy.backoff_max_seconds,
            ),
            retry=retry_if_exception_type(ProviderError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    async def list_eligible_agents(self) -> list[Agent]:
        return await self._retrying()(self._inner.list_eligible_agents)

    async def last_assigned_at(self) -> dict[str, datetime]:
        return await self._retrying()(self._inner.last_assigned_at)

    async def increment_workload(self, agent_id: str, priority_weight: float) -> None:
        await self._inner.increment_workload(agent_id, priority_weight)

    async def decrement_workload(self, agent_id: str, priority_weight: float) -> None:
        await self._inner.decrement_workload(agent_id, priority_weight)
