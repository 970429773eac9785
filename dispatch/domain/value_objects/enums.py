"""Domain enums — pure Python, no external dependencies."""

from enum import Enum


class Role(str, Enum):
    """Closed set of roles that can hold tickets.

    Admins take tickets exactly like agents; there is no role-specific
    assignment path.
    """

    AGENT = "agent"
    ADMIN = "admin"

    @property
    def is_assignable(self) -> bool:
        return True


class Availability(str, Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    AWAY = "away"
    OFFLINE = "offline"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Ordering used by the rebalancer: low < medium < high < urgent."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    Priority.LOW: 0,
    Priority.MEDIUM: 1,
    Priority.HIGH: 2,
    Priority.URGENT: 3,
}


class ExpertiseLevel(str, Enum):
    EXPERT = "expert"
    INTERMEDIATE = "intermediate"
    BASIC = "basic"


class TicketStatus(str, Enum):
    OPEN = "open"
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @property
    def is_assignable(self) -> bool:
        return self in (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)


class AssignmentMethod(str, Enum):
    RULE = "rule"
    INTELLIGENT = "intelligent"
    ROUND_ROBIN = "round_robin"
    MANUAL = "manual"
    NONE = "none"


class ReasonCode(str, Enum):
    RULE_MATCH = "rule_match"
    BEST_SCORE = "best_score"
    LEAST_LOADED = "least_loaded"
    MANUAL_ASSIGNMENT = "manual_assignment"
    NO_AVAILABLE_AGENTS = "no_available_agents"
    MANUAL_ASSIGNMENT_REQUIRED = "manual_assignment_required"
    TICKET_NOT_ASSIGNABLE = "ticket_not_assignable"
    ALREADY_ASSIGNED = "already_assigned"
    AGENT_NOT_FOUND = "agent_not_found"
    AGENT_UNAVAILABLE = "agent_unavailable"
    AGENT_AT_CAPACITY = "agent_at_capacity"


class RebalanceReason(str, Enum):
    ALREADY_RUNNING = "already_running"
    BALANCED = "balanced"
    REBALANCED = "rebalanced"
    PARTIAL = "partial"
    PROVIDER_ERROR = "provider_error"


class LoadLevel(str, Enum):
    OVERLOADED = "overloaded"
    BALANCED = "balanced"
    UNDERLOADED = "underloaded"
