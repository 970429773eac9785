"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import datetime, time

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dispatch.adapters.persistence.database import Base


class AgentModel(Base):
    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="agent")
    max_concurrent_tickets: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    current_workload: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    weighted_workload: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    availability: Mapped[str] = mapped_column(String(20), nullable=False, default="available")
    resolution_rate: Mapped[float | None] = mapped_column(Float, nullable=True)
    avg_resolution_time_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    satisfaction_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_activity: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_assigned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    category_expertise: Mapped[list["AgentCategoryExpertiseModel"]] = relationship(
        back_populates="agent", cascade="all, delete-orphan"
    )
    subcategory_expertise: Mapped[list["AgentSubcategoryExpertiseModel"]] = relationship(
        back_populates="agent", cascade="all, delete-orphan"
    )
    tickets: Mapped[list["TicketModel"]] = relationship(back_populates="assignee")

    __table_args__ = (
        CheckConstraint("max_concurrent_tickets > 0", name="ck_agents_capacity_positive"),
        CheckConstraint(
            "current_workload >= 0 AND current_workload <= max_concurrent_tickets",
            name="ck_agents_workload_within_capacity",
        ),
        Index("idx_agents_role", "role"),
    )


class AgentCategoryExpertiseModel(Base):
    __tablename__ = "agent_category_expertise"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[str] = mapped_column(String(36), nullable=False)
    expertise_level: Mapped[str] = mapped_column(String(20), nullable=False)

    agent: Mapped["AgentModel"] = relationship(back_populates="category_expertise")

    __table_args__ = (UniqueConstraint("agent_id", "category_id", name="uq_agent_category"),)


class AgentSubcategoryExpertiseModel(Base):
    __tablename__ = "agent_subcategory_expertise"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False
    )
    subcategory_id: Mapped[str] = mapped_column(String(36), nullable=False)
    expertise_level: Mapped[str] = mapped_column(String(20), nullable=False)

    agent: Mapped["AgentModel"] = relationship(back_populates="subcategory_expertise")

    __table_args__ = (
        UniqueConstraint("agent_id", "subcategory_id", name="uq_agent_subcategory"),
    )


class TicketModel(Base):
    __tablename__ = "tickets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")
    category_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    subcategory_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("agents.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now(), onupdate=func.now()
    )

    assignee: Mapped["AgentModel | None"] = relationship(back_populates="tickets")

    __table_args__ = (
        Index("idx_tickets_assignee_status", "assigned_to", "status"),
        Index("idx_tickets_category", "category_id"),
    )


class AssignmentLogModel(Base):
    __tablename__ = "assignment_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False
    )
    agent_id: Mapped[str] = mapped_column(String(36), ForeignKey("agents.id"), nullable=False)
    previous_agent_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("agents.id"), nullable=True
    )
    reason_code: Mapped[str] = mapped_column(String(50), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("idx_assignment_log_ticket", "ticket_id"),
        Index("idx_assignment_log_agent", "agent_id"),
    )


class AssignmentRuleModel(Base):
    __tablename__ = "assignment_rules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    assign_to_agent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("agents.id", ondelete="CASCADE"), nullable=False
    )
    priorities: Mapped[list[str]] = mapped_column(ARRAY(String(20)), nullable=False, default=list)
    category_ids: Mapped[list[str]] = mapped_column(ARRAY(String(36)), nullable=False, default=list)
    keywords: Mapped[list[str]] = mapped_column(ARRAY(String(100)), nullable=False, default=list)
    active_from: Mapped[time | None] = mapped_column(Time, nullable=True)
    active_until: Mapped[time | None] = mapped_column(Time, nullable=True)
