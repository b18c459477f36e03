"""create box_control_settings, sales_weekly, production_weekly tables

Revision ID: a1c3e5g7i9k1
Revises:
Create Date: 2025-11-03

"""
from alembic import op
import sqlalchemy as sa

revision = "a1c3e5g7i9k1"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    settings = op.create_table(
        "box_control_settings",
        sa.Column("id", sa.Integer, primary_key=True),
        # Targets
        sa.Column("monthly_contribution_target", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("survival_contribution", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("target_boxes_per_month", sa.Integer, nullable=False, server_default="0"),
        sa.Column("target_boxes_per_week", sa.Integer, nullable=False, server_default="0"),
        sa.Column("target_install_pct", sa.Numeric(6, 4), nullable=False, server_default="0"),
        sa.Column("target_extras_pct", sa.Numeric(6, 4), nullable=False, server_default="0"),
        sa.Column("contribution_per_box", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("cost_compliance_target", sa.Numeric(6, 4), nullable=False, server_default="0.90"),
        sa.Column("right_first_time_target", sa.Numeric(6, 4), nullable=False, server_default="0.95"),
        # Optimistic concurrency token
        sa.Column("version_id", sa.Integer, nullable=False, server_default="1"),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("target_install_pct + target_extras_pct <= 1", name="ck_settings_install_extras_sum"),
    )

    # The singleton row always exists
    op.bulk_insert(settings, [{"id": 1}])

    op.create_table(
        "sales_weekly",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("week_commencing", sa.Date, nullable=False),
        sa.Column("boxes_sold", sa.Integer, nullable=False, server_default="0"),
        sa.Column("installs_sold", sa.Integer, nullable=False, server_default="0"),
        sa.Column("box_revenue", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("extras_revenue", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("install_revenue", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("week_commencing", name="uq_sales_weekly_week"),
    )

    op.create_table(
        "production_weekly",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("week_commencing", sa.Date, nullable=False),
        sa.Column("boxes_produced", sa.Integer, nullable=False, server_default="0"),
        sa.Column("installs_completed", sa.Integer, nullable=False, server_default="0"),
        sa.Column("boxes_over_cost", sa.Integer, nullable=False, server_default="0"),
        sa.Column("rework_hours", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("right_first_time_pct", sa.Numeric(6, 4), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("week_commencing", name="uq_production_weekly_week"),
        sa.CheckConstraint("boxes_over_cost <= boxes_produced", name="ck_production_over_cost"),
    )


def downgrade() -> None:
    op.drop_table("production_weekly")
    op.drop_table("sales_weekly")
    op.drop_table("box_control_settings")
