"""
SQLAlchemy ORM models (settings singleton + weekly time series)
"""
from decimal import Decimal
from datetime import date as date_type
from sqlalchemy import String, DateTime, Integer, Text, TIMESTAMP, Date, func, Numeric
from sqlalchemy.orm import Mapped, mapped_column

from app.infrastructure.db.session import Base


SETTINGS_ROW_ID = 1


class BoxControlSettings(Base):
    """
    Business targets singleton (always id=1)

    Inputs: annual_turnover, base_box_price, gross_margin_pct, target_install_pct,
    target_extras_pct. Derived (unless overridden): monthly_contribution_target,
    contribution_per_box, target_boxes_per_month, target_boxes_per_week.
    """
    __tablename__ = "box_control_settings"

    id: Mapped[int] = mapped_column(primary_key=True)

    annual_turnover: Mapped[Decimal | None] = mapped_column(Numeric(precision=14, scale=2), nullable=True)
    base_box_price: Mapped[Decimal | None] = mapped_column(Numeric(precision=14, scale=2), nullable=True)
    gross_margin_pct: Mapped[Decimal] = mapped_column(
        Numeric(precision=6, scale=4), nullable=False, server_default="0.35"
    )

    target_install_pct: Mapped[Decimal] = mapped_column(Numeric(precision=6, scale=4), nullable=False, server_default="0")
    target_extras_pct: Mapped[Decimal] = mapped_column(Numeric(precision=6, scale=4), nullable=False, server_default="0")

    monthly_contribution_target: Mapped[Decimal] = mapped_column(
        Numeric(precision=14, scale=2), nullable=False, server_default="0"
    )
    contribution_per_box: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), nullable=False, server_default="0")
    target_boxes_per_month: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    target_boxes_per_week: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")

    # Independent thresholds
    survival_contribution: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), nullable=False, server_default="0")
    cost_compliance_target: Mapped[Decimal] = mapped_column(
        Numeric(precision=6, scale=4), nullable=False, server_default="0.90"
    )
    right_first_time_target: Mapped[Decimal] = mapped_column(
        Numeric(precision=6, scale=4), nullable=False, server_default="0.95"
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )

    __mapper_args__ = {"version_id_col": version_id}


class SalesWeekly(Base):
    """
    Weekly sales figures, one row per week_commencing
    """
    __tablename__ = "sales_weekly"

    id: Mapped[int] = mapped_column(primary_key=True)
    week_commencing: Mapped[date_type] = mapped_column(Date, nullable=False, unique=True, index=True)

    boxes_sold: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    installs_sold: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    box_revenue: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), nullable=False, server_default="0")
    extras_revenue: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), nullable=False, server_default="0")
    install_revenue: Mapped[Decimal] = mapped_column(Numeric(precision=14, scale=2), nullable=False, server_default="0")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )


class ProductionWeekly(Base):
    """
    Weekly production figures, one row per week_commencing
    """
    __tablename__ = "production_weekly"

    id: Mapped[int] = mapped_column(primary_key=True)
    week_commencing: Mapped[date_type] = mapped_column(Date, nullable=False, unique=True, index=True)

    boxes_produced: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    installs_completed: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    boxes_over_cost: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    rework_hours: Mapped[Decimal] = mapped_column(Numeric(precision=10, scale=2), nullable=False, server_default="0")
    right_first_time_pct: Mapped[Decimal | None] = mapped_column(Numeric(precision=6, scale=4), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False
    )
    updated_at: Mapped[DateTime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
