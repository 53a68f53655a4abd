"""create workflow rule engine tables

Revision ID: 7c1e2a9d4b10
Revises:
Create Date: 2026-10-18 09:00:00.000000

Creates workflow_rule, workflow_execution, entity_workflow_state and
scheduled_action. Tenants live in the host application, so tenant_id
carries no foreign key.
"""

from collections.abc import Sequence
from typing import Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7c1e2a9d4b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()") if not nullable else None,
        nullable=nullable,
    )


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "workflow_rule",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("priority", sa.Integer(), server_default=sa.text("10"), nullable=False),
        sa.Column("trigger_type", sa.String(), nullable=False),
        sa.Column("trigger_config", sa.JSON(), nullable=False),
        sa.Column("conditions", sa.JSON(), nullable=False),
        sa.Column("actions", sa.JSON(), nullable=False),
        sa.Column("cooldown_hours", sa.Float(), nullable=True),
        sa.Column("max_executions", sa.Integer(), nullable=True),
        sa.Column(
            "requires_approval", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column("approver_role", sa.String(), nullable=True),
        sa.Column("entity_types", sa.JSON(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "trigger_type IN ('status_change', 'time_elapsed', 'event', 'manual')",
            name="workflow_rule_trigger_type_check",
        ),
    )
    op.create_index("ix_workflow_rule_tenant_id", "workflow_rule", ["tenant_id"])
    op.create_index("ix_workflow_rule_trigger_type", "workflow_rule", ["trigger_type"])
    op.create_index(
        "ix_workflow_rule_tenant_active_priority",
        "workflow_rule",
        ["tenant_id", "is_active", "priority"],
    )

    op.create_table(
        "workflow_execution",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("rule_id", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("trigger_data", sa.JSON(), nullable=False),
        sa.Column("conditions_evaluated", sa.JSON(), nullable=False),
        sa.Column("conditions_passed", sa.Boolean(), nullable=False),
        sa.Column("actions_taken", sa.JSON(), nullable=False),
        sa.Column("result", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("requires_approval", sa.Boolean(), nullable=False),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _timestamp("started_at"),
        _timestamp("completed_at", nullable=True),
        sa.ForeignKeyConstraint(["rule_id"], ["workflow_rule.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "result IN ('success', 'partial', 'failed', 'skipped', 'pending_approval')",
            name="workflow_execution_result_check",
        ),
    )
    op.create_index("ix_workflow_execution_tenant_id", "workflow_execution", ["tenant_id"])
    op.create_index("ix_workflow_execution_rule_id", "workflow_execution", ["rule_id"])
    op.create_index(
        "ix_workflow_execution_entity",
        "workflow_execution",
        ["tenant_id", "entity_type", "entity_id"],
    )
    op.create_index(
        "ix_workflow_execution_tenant_started",
        "workflow_execution",
        ["tenant_id", "started_at"],
    )
    op.create_index(
        "ix_workflow_execution_pending",
        "workflow_execution",
        ["tenant_id"],
        postgresql_where=sa.text("result = 'pending_approval'"),
    )

    op.create_table(
        "entity_workflow_state",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("rule_id", sa.String(), nullable=False),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("execution_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_execution_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_execution_id", sa.String(), nullable=True),
        sa.Column("state_data", sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(["rule_id"], ["workflow_rule.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "tenant_id",
            "rule_id",
            "entity_type",
            "entity_id",
            name="uq_entity_workflow_state_rule_entity",
        ),
    )
    op.create_index(
        "ix_entity_workflow_state_tenant_id", "entity_workflow_state", ["tenant_id"]
    )
    op.create_index("ix_entity_workflow_state_rule_id", "entity_workflow_state", ["rule_id"])

    op.create_table(
        "scheduled_action",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("tenant_id", sa.String(), nullable=False),
        sa.Column("rule_id", sa.String(), nullable=False),
        sa.Column("execution_id", sa.String(), nullable=True),
        sa.Column("entity_type", sa.String(), nullable=False),
        sa.Column("entity_id", sa.String(), nullable=False),
        sa.Column("action_type", sa.String(), nullable=False),
        sa.Column("action_config", sa.JSON(), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_if", sa.JSON(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["rule_id"], ["workflow_rule.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["execution_id"], ["workflow_execution.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'executed', 'cancelled', 'failed')",
            name="scheduled_action_status_check",
        ),
    )
    op.create_index("ix_scheduled_action_tenant_id", "scheduled_action", ["tenant_id"])
    op.create_index("ix_scheduled_action_status", "scheduled_action", ["status"])
    op.create_index(
        "ix_scheduled_action_entity",
        "scheduled_action",
        ["tenant_id", "entity_type", "entity_id"],
    )
    op.create_index(
        "ix_scheduled_action_pending_due",
        "scheduled_action",
        ["tenant_id", "scheduled_for"],
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_scheduled_action_pending_due", table_name="scheduled_action")
    op.drop_index("ix_scheduled_action_entity", table_name="scheduled_action")
    op.drop_index("ix_scheduled_action_status", table_name="scheduled_action")
    op.drop_index("ix_scheduled_action_tenant_id", table_name="scheduled_action")
    op.drop_table("scheduled_action")

    op.drop_index("ix_entity_workflow_state_rule_id", table_name="entity_workflow_state")
    op.drop_index("ix_entity_workflow_state_tenant_id", table_name="entity_workflow_state")
    op.drop_table("entity_workflow_state")

    op.drop_index("ix_workflow_execution_pending", table_name="workflow_execution")
    op.drop_index("ix_workflow_execution_tenant_started", table_name="workflow_execution")
    op.drop_index("ix_workflow_execution_entity", table_name="workflow_execution")
    op.drop_index("ix_workflow_execution_rule_id", table_name="workflow_execution")
    op.drop_index("ix_workflow_execution_tenant_id", table_name="workflow_execution")
    op.drop_table("workflow_execution")

    op.drop_index("ix_workflow_rule_tenant_active_priority", table_name="workflow_rule")
    op.drop_index("ix_workflow_rule_trigger_type", table_name="workflow_rule")
    op.drop_index("ix_workflow_rule_tenant_id", table_name="workflow_rule")
    op.drop_table("workflow_rule")
