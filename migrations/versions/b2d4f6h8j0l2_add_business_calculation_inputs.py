"""add annual_turnover, base_box_price, gross_margin_pct to box_control_settings

Backfills the new inputs from existing targets so the cascade has something
to work from:
  base_box_price  = contribution_per_box / (gross_margin_pct × (1 + install % + extras %))
  annual_turnover = monthly_contribution_target × 12 / gross_margin_pct

Revision ID: b2d4f6h8j0l2
Revises: a1c3e5g7i9k1
Create Date: 2025-11-17

"""
from alembic import op
import sqlalchemy as sa

revision = "b2d4f6h8j0l2"
down_revision = "a1c3e5g7i9k1"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("box_control_settings", sa.Column("annual_turnover", sa.Numeric(14, 2), nullable=True))
    op.add_column("box_control_settings", sa.Column("base_box_price", sa.Numeric(14, 2), nullable=True))
    op.add_column(
        "box_control_settings",
        sa.Column("gross_margin_pct", sa.Numeric(6, 4), nullable=False, server_default="0.35"),
    )

    op.execute(
        """
        UPDATE box_control_settings
        SET base_box_price = CASE
            WHEN contribution_per_box > 0 AND gross_margin_pct > 0 THEN
                contribution_per_box / (gross_margin_pct * (1 + target_install_pct + target_extras_pct))
            ELSE NULL
        END
        WHERE base_box_price IS NULL
        """
    )
    op.execute(
        """
        UPDATE box_control_settings
        SET annual_turnover = CASE
            WHEN monthly_contribution_target > 0 AND gross_margin_pct > 0 THEN
                (monthly_contribution_target * 12) / gross_margin_pct
            ELSE NULL
        END
        WHERE annual_turnover IS NULL
        """
    )


def downgrade() -> None:
    op.drop_column("box_control_settings", "gross_margin_pct")
    op.drop_column("box_control_settings", "base_box_price")
    op.drop_column("box_control_settings", "annual_turnover")
