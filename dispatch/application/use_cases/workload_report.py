"""WorkloadReportUseCase — read-only utilisation snapshot of every agent."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from dispatch.application.ports.agent_metrics import AgentMetricsProvider
from dispatch.application.use_cases.assign_ticket import DEFAULT_TIMEOUT_SECONDS, call_with_timeout
from dispatch.domain.errors import ProviderError
from dispatch.domain.policies.rebalancing import DEFAULT_REBALANCE, RebalanceConfig, classify_load
from dispatch.domain.value_objects.enums import Availability, LoadLevel, Role


@dataclass
class AgentWorkload:
    agent_id: str
    name: str | None
    role: Role
    availability: Availability
    current_workload: int
    max_concurrent_tickets: int
    weighted_workload: float
    utilization: float
    load_level: LoadLevel


@dataclass
class WorkloadReport:
    agents: list[AgentWorkload] = field(default_factory=list)

    @property
    def total_open_tickets(self) -> int:
        return sum(a.current_workload for a in self.agents)

    @property
    def total_capacity(self) -> int:
        return sum(a.max_concurrent_tickets for a in self.agents)

    def count(self, level: LoadLevel) -> int:
        return sum(1 for a in self.agents if a.load_level == level)

    def to_dict(self) -> dict:
        return {
            "total_agents": len(self.agents),
            "total_open_tickets": self.total_open_tickets,
            "total_capacity": self.total_capacity,
            "overloaded": self.count(LoadLevel.OVERLOADED),
            "underloaded": self.count(LoadLevel.UNDERLOADED),
            "agents": [
                {
                    "agent_id": a.agent_id,
                    "name": a.name,
                    "role": a.role.value,
                    "availability": a.availability.value,
                    "current_workload": a.current_workload,
                    "max_concurrent_tickets": a.max_concurrent_tickets,
                    "weighted_workload": round(a.weighted_workload, 2),
                    "utilization": round(a.utilization, 3),
                    "load_level": a.load_level.value,
                }
                for a in self.agents
            ],
        }


class WorkloadReportUseCase:
    def __init__(
        self,
        agent_provider: AgentMetricsProvider,
        config: RebalanceConfig = DEFAULT_REBALANCE,
        timeout: float | None = DEFAULT_TIMEOUT_SECONDS,
    ):
        self._agents = agent_provider
        self._config = config
        self._timeout = timeout

    async def execute(self) -> WorkloadReport:
        """Most utilised agents first, ties by id."""
        try:
            roster = await call_with_timeout(self._agents.list_eligible_agents(), self._timeout)
        except asyncio.TimeoutError as exc:
            raise ProviderError("Timed out reading agent roster") from exc

        rows = [
            AgentWorkload(
                agent_id=a.id,
                name=a.name,
                role=a.role,
                availability=a.availability,
                current_workload=a.current_workload,
                max_concurrent_tickets=a.max_concurrent_tickets,
                weighted_workload=a.weighted_workload,
                utilization=a.utilization(),
                load_level=classify_load(a, self._config),
            )
            for a in roster
        ]
        rows.sort(key=lambda r: (-r.utilization, r.agent_id))
        return WorkloadReport(agents=rows)
