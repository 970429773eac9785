"""ScoringPolicy — weighted multi-factor suitability score for an agent/ticket pair."""

from __future__ import annotations

from dataclasses import dataclass, field

from dispatch.domain.entities.agent import Agent, ExpertiseMatch
from dispatch.domain.entities.ticket import Ticket
from dispatch.domain.value_objects.enums import Availability, ExpertiseLevel, Priority


def _default_priority_weights() -> dict[Priority, float]:
    return {
        Priority.URGENT: 3.0,
        Priority.HIGH: 2.0,
        Priority.MEDIUM: 1.5,
        Priority.LOW: 1.0,
    }


def _default_availability_scores() -> dict[Availability, float]:
    return {
        Availability.AVAILABLE: 1.0,
        Availability.BUSY: 0.5,
        Availability.AWAY: 0.2,
        Availability.OFFLINE: 0.0,
    }


def _default_expertise_bonuses() -> dict[ExpertiseLevel, float]:
    return {
        ExpertiseLevel.EXPERT: 0.15,
        ExpertiseLevel.INTERMEDIATE: 0.08,
        ExpertiseLevel.BASIC: 0.03,
    }


@dataclass(frozen=True)
class ScoringConfig:
    """Tuning constants for the scoring model.

    The defaults are a reasonable starting point rather than derived optima;
    ``Settings.scoring_config()`` overrides them from the environment.
    """

    workload_weight: float = 0.4
    performance_weight: float = 0.3
    availability_weight: float = 0.3
    priority_weights: dict[Priority, float] = field(default_factory=_default_priority_weights)
    availability_scores: dict[Availability, float] = field(
        default_factory=_default_availability_scores
    )
    expertise_bonuses: dict[ExpertiseLevel, float] = field(
        default_factory=_default_expertise_bonuses
    )
    category_bonus_factor: float = 0.5
    resolution_time_baseline_hours: float = 48.0
    default_resolution_rate: float = 0.7
    default_satisfaction_score: float = 3.5
    default_resolution_time_hours: float = 24.0

    @property
    def max_priority_weight(self) -> float:
        return max(self.priority_weights.values())


DEFAULT_SCORING = ScoringConfig()


@dataclass(frozen=True)
class ScoreBreakdown:
    workload: float
    performance: float
    availability: float
    expertise_bonus: float
    expertise: ExpertiseMatch | None = None

    def describe(self) -> str:
        parts = [
            f"workload {self.workload:.2f}",
            f"performance {self.performance:.2f}",
            f"availability {self.availability:.2f}",
        ]
        if self.expertise is not None:
            parts.append(
                f"{self.expertise.scope} {self.expertise.level.value} +{self.expertise_bonus:.3f}"
            )
        return ", ".join(parts)


@dataclass(frozen=True)
class AgentScore:
    agent: Agent
    score: float
    breakdown: ScoreBreakdown

    @property
    def agent_id(self) -> str:
        return self.agent.id


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def priority_weight(priority: Priority, config: ScoringConfig = DEFAULT_SCORING) -> float:
    return config.priority_weights.get(priority, 1.0)


def workload_score(agent: Agent, config: ScoringConfig = DEFAULT_SCORING) -> float:
    """1.0 for an idle agent, falling to 0.0 as the weighted backlog fills capacity."""
    ceiling = agent.max_concurrent_tickets * config.max_priority_weight
    if ceiling <= 0:
        return 0.0
    return max(0.0, 1.0 - agent.weighted_workload / ceiling)


def performance_score(agent: Agent, config: ScoringConfig = DEFAULT_SCORING) -> float:
    """Mean of resolution rate, satisfaction and speed, each in [0, 1].

    Missing history falls back to neutral defaults so new agents are not
    ranked below everybody else.
    """
    perf = agent.performance
    resolution_rate = (
        perf.resolution_rate if perf.resolution_rate is not None else config.default_resolution_rate
    )
    satisfaction = (
        perf.satisfaction_score
        if perf.satisfaction_score is not None
        else config.default_satisfaction_score
    )
    hours = (
        perf.avg_resolution_time_hours
        if perf.avg_resolution_time_hours is not None
        else config.default_resolution_time_hours
    )

    time_score = _clamp(1.0 - hours / config.resolution_time_baseline_hours)
    return (_clamp(resolution_rate) + _clamp(satisfaction / 5.0) + time_score) / 3.0


def availability_score(agent: Agent, config: ScoringConfig = DEFAULT_SCORING) -> float:
    return config.availability_scores.get(agent.availability, 0.0)


def expertise_bonus(
    agent: Agent, ticket: Ticket, config: ScoringConfig = DEFAULT_SCORING
) -> tuple[float, ExpertiseMatch | None]:
    match = agent.expertise_for(ticket)
    if match is None:
        return 0.0, None
    bonus = config.expertise_bonuses.get(match.level, 0.0)
    if match.scope == "category":
        bonus *= config.category_bonus_factor
    return bonus, match


def score_agent(agent: Agent, ticket: Ticket, config: ScoringConfig = DEFAULT_SCORING) -> AgentScore:
    """Pure function: suitability of *agent* for *ticket* in [0, 1].

    Eligibility (capacity, offline) is the caller's concern; this only
    weighs the factors:

        score = clamp(w·workload + p·performance + a·availability + bonus)
    """
    workload = workload_score(agent, config)
    performance = performance_score(agent, config)
    availability = availability_score(agent, config)
    bonus, match = expertise_bonus(agent, ticket, config)

    total = (
        config.workload_weight * workload
        + config.performance_weight * performance
        + config.availability_weight * availability
        + bonus
    )
    return AgentScore(
        agent=agent,
        score=_clamp(total),
        breakdown=ScoreBreakdown(
            workload=workload,
            performance=performance,
            availability=availability,
            expertise_bonus=bonus,
            expertise=match,
        ),
    )
