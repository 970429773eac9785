"""Ticket entity — the part of a support ticket that matters for assignment."""

from dataclasses import dataclass
from datetime import datetime

from dispatch.domain.value_objects.enums import Priority, TicketStatus


@dataclass
class Ticket:
    id: str
    priority: Priority
    category_id: str | None
    created_at: datetime
    status: TicketStatus = TicketStatus.OPEN
    subcategory_id: str | None = None
    assigned_agent_id: str | None = None
    title: str = ""
    description: str = ""

    def is_assignable(self) -> bool:
        return self.status.is_assignable

    def is_urgent(self) -> bool:
        return self.priority == Priority.URGENT

    def searchable_text(self) -> str:
        return f"{self.title} {self.description}".lower()
