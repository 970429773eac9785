"""Agent entity — a support-staff member who can hold tickets."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.value_objects.enums import Availability, ExpertiseLevel, Role


@dataclass
class PerformanceMetrics:
    """Historical performance; ``None`` means the agent has no history yet."""

    resolution_rate: float | None = None
    avg_resolution_time_hours: float | None = None
    satisfaction_score: float | None = None


@dataclass(frozen=True)
class ExpertiseMatch:
    scope: str  # "subcategory" or "category"
    level: ExpertiseLevel


@dataclass
class Agent:
    id: str
    role: Role
    max_concurrent_tickets: int
    current_workload: int = 0
    weighted_workload: float = 0.0
    availability: Availability = Availability.AVAILABLE
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    category_expertise: dict[str, ExpertiseLevel] = field(default_factory=dict)
    subcategory_expertise: dict[str, ExpertiseLevel] = field(default_factory=dict)
    last_activity: datetime | None = None
    name: str | None = None

    def is_offline(self) -> bool:
        return self.availability == Availability.OFFLINE

    def is_at_capacity(self) -> bool:
        return self.current_workload >= self.max_concurrent_tickets

    def is_eligible(self) -> bool:
        """Online, assignable role and below capacity."""
        return self.role.is_assignable and not self.is_offline() and not self.is_at_capacity()

    def utilization(self) -> float:
        if self.max_concurrent_tickets <= 0:
            return 1.0
        return self.current_workload / self.max_concurrent_tickets

    def expertise_for(self, ticket: Ticket) -> ExpertiseMatch | None:
        """Subcategory expertise wins over category expertise."""
        if ticket.subcategory_id and ticket.subcategory_id in self.subcategory_expertise:
            return ExpertiseMatch("subcategory", self.subcategory_expertise[ticket.subcategory_id])
        if ticket.category_id and ticket.category_id in self.category_expertise:
            return ExpertiseMatch("category", self.category_expertise[ticket.category_id])
        return None

    def is_specialist_for(self, ticket: Ticket) -> bool:
        return self.expertise_for(ticket) is not None
