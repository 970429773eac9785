"""Initial schema — agents, tickets, assignment log and rules.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY

from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Agents
    op.create_table(
        "agents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(200), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="agent"),
        sa.Column("max_concurrent_tickets", sa.Integer, nullable=False, server_default="10"),
        sa.Column("current_workload", sa.Integer, nullable=False, server_default="0"),
        sa.Column("weighted_workload", sa.Float, nullable=False, server_default="0"),
        sa.Column("availability", sa.String(20), nullable=False, server_default="available"),
        sa.Column("resolution_rate", sa.Float, nullable=True),
        sa.Column("avg_resolution_time_hours", sa.Float, nullable=True),
        sa.Column("satisfaction_score", sa.Float, nullable=True),
        sa.Column("last_activity", sa.DateTime, nullable=True),
        sa.Column("last_assigned_at", sa.DateTime, nullable=True),
        sa.CheckConstraint("max_concurrent_tickets > 0", name="ck_agents_capacity_positive"),
        sa.CheckConstraint(
            "current_workload >= 0 AND current_workload <= max_concurrent_tickets",
            name="ck_agents_workload_within_capacity",
        ),
    )
    op.create_index("idx_agents_role", "agents", ["role"])

    # Expertise
    op.create_table(
        "agent_category_expertise",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "agent_id",
            sa.String(36),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("category_id", sa.String(36), nullable=False),
        sa.Column("expertise_level", sa.String(20), nullable=False),
        sa.UniqueConstraint("agent_id", "category_id", name="uq_agent_category"),
    )
    op.create_table(
        "agent_subcategory_expertise",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "agent_id",
            sa.String(36),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("subcategory_id", sa.String(36), nullable=False),
        sa.Column("expertise_level", sa.String(20), nullable=False),
        sa.UniqueConstraint("agent_id", "subcategory_id", name="uq_agent_subcategory"),
    )

    # Tickets
    op.create_table(
        "tickets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("category_id", sa.String(36), nullable=True),
        sa.Column("subcategory_id", sa.String(36), nullable=True),
        sa.Column("assigned_to", sa.String(36), sa.ForeignKey("agents.id"), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_tickets_assignee_status", "tickets", ["assigned_to", "status"])
    op.create_index("idx_tickets_category", "tickets", ["category_id"])

    # Assignment log
    op.create_table(
        "assignment_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ticket_id",
            sa.String(36),
            sa.ForeignKey("tickets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("agent_id", sa.String(36), sa.ForeignKey("agents.id"), nullable=False),
        sa.Column("previous_agent_id", sa.String(36), sa.ForeignKey("agents.id"), nullable=True),
        sa.Column("reason_code", sa.String(50), nullable=False),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("confidence", sa.Float, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_assignment_log_ticket", "assignment_log", ["ticket_id"])
    op.create_index("idx_assignment_log_agent", "assignment_log", ["agent_id"])

    # Assignment rules
    op.create_table(
        "assignment_rules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("priority", sa.Integer, nullable=False, server_default="0"),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default="true"),
        sa.Column(
            "assign_to_agent_id",
            sa.String(36),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("priorities", ARRAY(sa.String(20)), nullable=False, server_default="{}"),
        sa.Column("category_ids", ARRAY(sa.String(36)), nullable=False, server_default="{}"),
        sa.Column("keywords", ARRAY(sa.String(100)), nullable=False, server_default="{}"),
        sa.Column("active_from", sa.Time, nullable=True),
        sa.Column("active_until", sa.Time, nullable=True),
    )


def downgrade() -> None:
    op.drop_table("assignment_rules")
    op.drop_table("assignment_log")
    op.drop_table("tickets")
    op.drop_table("agent_subcategory_expertise")
    op.drop_table("agent_category_expertise")
    op.drop_table("agents")
