"""phases, checklists, timer sessions, work logs, audit

Revision ID: 0001_phase_checklist_timer
Revises:
Create Date: 2026-10-17 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_phase_checklist_timer"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=256), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "project_phases",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("phase_name", sa.String(length=128), nullable=False),
        sa.Column("phase_order", sa.Integer(), nullable=False),
        sa.Column("is_custom", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'not_started'"), nullable=False),
        sa.Column("early_access_granted", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("early_access_status", sa.String(length=16), server_default=sa.text("'not_accessible'"), nullable=False),
        sa.Column("early_access_granted_by", sa.Integer(), nullable=True),
        sa.Column("early_access_granted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("early_access_note", sa.Text(), nullable=True),
        sa.Column("warning_flag", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("delay_reason", sa.String(length=16), server_default=sa.text("'none'"), nullable=False),
        sa.Column("planned_start_date", sa.Date(), nullable=True),
        sa.Column("planned_end_date", sa.Date(), nullable=True),
        sa.Column("actual_start_date", sa.Date(), nullable=True),
        sa.Column("actual_end_date", sa.Date(), nullable=True),
        sa.Column("submitted_date", sa.Date(), nullable=True),
        sa.Column("approved_date", sa.Date(), nullable=True),
        sa.Column("predicted_hours", sa.Numeric(10, 2), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "phase_order", name="uq_phases_project_order"),
        sa.CheckConstraint("phase_order > 0", name="ck_phases_order_positive"),
        sa.CheckConstraint(
            "status IN ('not_started','ready','in_progress','submitted','approved','completed')",
            name="ck_phases_status_valid",
        ),
        sa.CheckConstraint(
            "early_access_status IN ('not_accessible','accessible','in_progress')",
            name="ck_phases_early_access_status_valid",
        ),
        sa.CheckConstraint("delay_reason IN ('none','client','company')", name="ck_phases_delay_reason_valid"),
    )
    op.create_index("ix_phases_project_status", "project_phases", ["project_id", "status"])

    op.create_table(
        "phase_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("project_phases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("engineer_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("phase_id", "engineer_id", name="uq_phase_assignment"),
    )
    op.create_index("ix_phase_assignments_engineer", "phase_assignments", ["engineer_id"])

    op.create_table(
        "checklist_templates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("phase_name", sa.String(length=64), nullable=False),
        sa.Column("section_name", sa.String(length=256), nullable=True),
        sa.Column("task_title_ar", sa.Text(), nullable=False),
        sa.Column("task_title_en", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.CheckConstraint("display_order >= 0", name="ck_checklist_templates_order"),
    )
    op.create_index("ix_checklist_templates_phase", "checklist_templates", ["phase_name", "display_order"])

    op.create_table(
        "project_checklist_items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("phase_name", sa.String(length=64), nullable=False),
        sa.Column("section_name", sa.String(length=256), nullable=True),
        sa.Column("task_title_ar", sa.Text(), nullable=False),
        sa.Column("task_title_en", sa.Text(), nullable=True),
        sa.Column("display_order", sa.Integer(), server_default="0", nullable=False),
        sa.Column("is_custom", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("engineer_approved_by", sa.Integer(), nullable=True),
        sa.Column("engineer_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("supervisor_1_approved_by", sa.Integer(), nullable=True),
        sa.Column("supervisor_1_approved_name", sa.String(length=256), nullable=True),
        sa.Column("supervisor_1_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("supervisor_2_approved_by", sa.Integer(), nullable=True),
        sa.Column("supervisor_2_approved_name", sa.String(length=256), nullable=True),
        sa.Column("supervisor_2_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("supervisor_3_approved_by", sa.Integer(), nullable=True),
        sa.Column("supervisor_3_approved_name", sa.String(length=256), nullable=True),
        sa.Column("supervisor_3_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("client_notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_checklist_items_project_phase", "project_checklist_items", ["project_id", "phase_name"])

    op.create_table(
        "checklist_item_engineer_approvals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "item_id",
            sa.Integer(),
            sa.ForeignKey("project_checklist_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("engineer_id", sa.Integer(), nullable=False),
        sa.Column("engineer_name", sa.String(length=256), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("item_id", "engineer_id", name="uq_checklist_engineer_approval"),
    )

    op.create_table(
        "timer_sessions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("engineer_id", sa.Integer(), nullable=False),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("project_phases.id", ondelete="CASCADE"), nullable=False),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("status", sa.String(length=16), server_default=sa.text("'active'"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paused_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("elapsed_time_ms", sa.BigInteger(), server_default="0", nullable=False),
        sa.Column("total_paused_ms", sa.BigInteger(), server_default="0", nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("engineer_id", name="uq_timer_sessions_one_per_engineer"),
        sa.CheckConstraint("status IN ('active','paused')", name="ck_timer_sessions_status"),
        sa.CheckConstraint("elapsed_time_ms >= 0", name="ck_timer_sessions_elapsed_nonneg"),
        sa.CheckConstraint("total_paused_ms >= 0", name="ck_timer_sessions_paused_nonneg"),
    )

    op.create_table(
        "work_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("project_id", sa.Integer(), sa.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False),
        sa.Column("phase_id", sa.Integer(), sa.ForeignKey("project_phases.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("engineer_id", sa.Integer(), nullable=False),
        sa.Column("hours", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.String(length=1000), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("source", sa.String(length=16), server_default=sa.text("'manual'"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("hours > 0", name="ck_work_logs_hours_positive"),
    )
    op.create_index("ix_work_logs_phase", "work_logs", ["phase_id"])
    op.create_index("ix_work_logs_engineer_date", "work_logs", ["engineer_id", "date"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column("details_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_entity", "audit_logs", ["entity_type", "entity_id"])
    op.create_index("ix_audit_created_at", "audit_logs", ["created_at"])


def downgrade():
    op.drop_index("ix_audit_created_at", table_name="audit_logs")
    op.drop_index("ix_audit_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_work_logs_engineer_date", table_name="work_logs")
    op.drop_index("ix_work_logs_phase", table_name="work_logs")
    op.drop_table("work_logs")
    op.drop_table("timer_sessions")
    op.drop_table("checklist_item_engineer_approvals")
    op.drop_index("ix_checklist_items_project_phase", table_name="project_checklist_items")
    op.drop_table("project_checklist_items")
    op.drop_index("ix_checklist_templates_phase", table_name="checklist_templates")
    op.drop_table("checklist_templates")
    op.drop_index("ix_phase_assignments_engineer", table_name="phase_assignments")
    op.drop_table("phase_assignments")
    op.drop_index("ix_phases_project_status", table_name="project_phases")
    op.drop_table("project_phases")
    op.drop_table("projects")
