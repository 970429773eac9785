"""Assignment rule — an admin-defined shortcut that routes matching tickets."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time

from dispatch.domain.value_objects.enums import Priority


@dataclass
class RuleConditions:
    """Every non-empty condition must hold for the rule to apply."""

    priorities: frozenset[Priority] = field(default_factory=frozenset)
    category_ids: frozenset[str] = field(default_factory=frozenset)
    keywords: tuple[str, ...] = ()
    active_from: time | None = None
    active_until: time | None = None


@dataclass
class AssignmentRule:
    id: str
    name: str
    assign_to_agent_id: str
    conditions: RuleConditions = field(default_factory=RuleConditions)
    priority: int = 0  # higher is evaluated first
    enabled: bool = True
