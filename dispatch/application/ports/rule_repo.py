"""Port interface for assignment rule persistence."""

from abc import ABC, abstractmethod

from dispatch.domain.entities.assignment_rule import AssignmentRule


class AssignmentRuleRepository(ABC):
    @abstractmethod
    async def get_active_rules(self) -> list[AssignmentRule]:
        """Enabled rules, in any order."""
        ...
