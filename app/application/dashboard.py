"""
Box Control dashboard: weekly records rolled up against business targets.

Pure read-layer: never mutates settings or records.

Windows (relative to the reference date):
  MTD       : weeks in the reference calendar month
  last 4wk  : 4 most recent weeks on or before the reference date
  forward   : next 4 sales weeks on or after the reference date (display only)

KPIs and RAG:
  contribution          MTD revenue × margin   red < survival ≤ amber < target ≤ green
  install %             installs / boxes (4wk) red < target_install_pct
  extras %              extras / box revenue   red < target_extras_pct
  contribution per box  MTD, fallback setting  red < 600 ≤ amber < 640 ≤ green
  cost compliance       on-cost share (4wk)    red < cost_compliance_target
  rework per box        hours / box (4wk)      green < 0.25 ≤ amber < 0.5 ≤ red
  right first time      mean (4wk)             unclassified
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain import formulas
from app.domain.errors import SettingsNotInitialized
from app.domain.formulas import ZERO, safe_ratio, to_decimal
from app.application.box_settings import SettingsService
from app.application.weekly_records import (
    WeeklyRecordsService, KIND_SALES, KIND_PRODUCTION, DEFAULT_WINDOW_WEEKS, month_bounds,
)

TRAILING_WEEKS = DEFAULT_WINDOW_WEEKS
FORWARD_WEEKS = DEFAULT_WINDOW_WEEKS

KPI_LABELS: dict[str, str] = {
    "contribution": "Contribution (MTD)",
    "install_pct": "Install % (last 4 weeks)",
    "extras_pct": "Extras % (last 4 weeks)",
    "contribution_per_box": "Contribution per box (MTD)",
    "cost_compliance": "Cost compliance (last 4 weeks)",
    "rework_per_box": "Rework hours per box (last 4 weeks)",
    "right_first_time": "Right first time (last 4 weeks)",
}


@dataclass(frozen=True)
class KpiResult:
    value: Decimal | None
    rag: str | None  # None = not classified


@dataclass(frozen=True)
class SalesTotals:
    boxes_sold: int = 0
    installs_sold: int = 0
    box_revenue: Decimal = ZERO
    extras_revenue: Decimal = ZERO
    install_revenue: Decimal = ZERO

    @property
    def total_revenue(self) -> Decimal:
        return self.box_revenue + self.extras_revenue + self.install_revenue


@dataclass(frozen=True)
class ProductionTotals:
    boxes_produced: int = 0
    installs_completed: int = 0
    boxes_over_cost: int = 0
    rework_hours: Decimal = ZERO


@dataclass(frozen=True)
class PeriodInfo:
    month_label: str
    month_start: date
    month_end: date
    last_4_weeks_start: date | None
    last_4_weeks_end: date | None


@dataclass(frozen=True)
class DashboardReport:
    reference_date: date
    period: PeriodInfo
    sales_mtd: SalesTotals
    production_mtd: ProductionTotals
    sales_last_4_weeks: SalesTotals
    production_last_4_weeks: ProductionTotals
    kpis: dict[str, KpiResult]
    avg_boxes_per_week: Decimal
    sales_weeks: list = field(default_factory=list)
    production_weeks: list = field(default_factory=list)
    forward_look: list = field(default_factory=list)

    @property
    def contribution_mtd(self) -> Decimal:
        return self.kpis["contribution"].value


# ── Window helpers (pure) ─────────────────────────────────────────────────────

def _week(record) -> date:
    return record.week_commencing


def in_month(records: Sequence, reference_date: date) -> list:
    return sorted(
        (r for r in records
         if _week(r).year == reference_date.year and _week(r).month == reference_date.month),
        key=_week,
    )


def last_n_weeks(records: Sequence, reference_date: date, n: int = TRAILING_WEEKS) -> list:
    """n most recent records on or before reference_date, newest first."""
    eligible = [r for r in records if _week(r) <= reference_date]
    return sorted(eligible, key=_week, reverse=True)[:n]


def next_n_weeks(records: Sequence, reference_date: date, n: int = FORWARD_WEEKS) -> list:
    """n nearest records on or after reference_date, ascending."""
    eligible = [r for r in records if _week(r) >= reference_date]
    return sorted(eligible, key=_week)[:n]


def _int_sum(records: Sequence, name: str) -> int:
    return sum(int(getattr(r, name, None) or 0) for r in records)


def _dec_sum(records: Sequence, name: str) -> Decimal:
    return sum((to_decimal(getattr(r, name, None)) for r in records), ZERO)


def sum_sales(records: Sequence) -> SalesTotals:
    return SalesTotals(
        boxes_sold=_int_sum(records, "boxes_sold"),
        installs_sold=_int_sum(records, "installs_sold"),
        box_revenue=_dec_sum(records, "box_revenue"),
        extras_revenue=_dec_sum(records, "extras_revenue"),
        install_revenue=_dec_sum(records, "install_revenue"),
    )


def sum_production(records: Sequence) -> ProductionTotals:
    return ProductionTotals(
        boxes_produced=_int_sum(records, "boxes_produced"),
        installs_completed=_int_sum(records, "installs_completed"),
        boxes_over_cost=_int_sum(records, "boxes_over_cost"),
        rework_hours=_dec_sum(records, "rework_hours"),
    )


def _setting(settings, name: str) -> Decimal:
    if isinstance(settings, Mapping):
        return to_decimal(settings.get(name))
    return to_decimal(getattr(settings, name, None))


def _mean_right_first_time(records: Sequence) -> Decimal | None:
    values = [to_decimal(r.right_first_time_pct) for r in records
              if getattr(r, "right_first_time_pct", None) is not None]
    if not values:
        return None
    return sum(values, ZERO) / len(values)


# ── Aggregation + classification (pure) ──────────────────────────────────────

def compute_dashboard(
    settings,
    sales_records: Sequence,
    production_records: Sequence,
    reference_date: date,
) -> DashboardReport:
    """
    Roll weekly records up into MTD / last-4-weeks figures and classify each KPI.

    Args:
        settings: settings row or mapping; null fields count as 0
        sales_records / production_records: any records with the weekly fields;
            windows are applied here, so a superset is fine
        reference_date: "today" for windowing

    Raises:
        SettingsNotInitialized: settings is None
    """
    if settings is None:
        raise SettingsNotInitialized("Settings must be created before building the dashboard")

    sales_month = in_month(sales_records, reference_date)
    production_month = in_month(production_records, reference_date)
    sales_recent = last_n_weeks(sales_records, reference_date)
    production_recent = last_n_weeks(production_records, reference_date)

    sales_mtd = sum_sales(sales_month)
    production_mtd = sum_production(production_month)
    sales_4wk = sum_sales(sales_recent)
    production_4wk = sum_production(production_recent)

    gross_margin = _setting(settings, "gross_margin_pct")
    contribution_mtd = sales_mtd.total_revenue * gross_margin

    install_pct = safe_ratio(sales_4wk.installs_sold, sales_4wk.boxes_sold)
    extras_pct = safe_ratio(sales_4wk.extras_revenue, sales_4wk.box_revenue)

    if sales_mtd.boxes_sold > 0:
        contribution_per_box = contribution_mtd / sales_mtd.boxes_sold
    else:
        contribution_per_box = _setting(settings, "contribution_per_box")

    produced = production_4wk.boxes_produced
    cost_compliance = safe_ratio(produced - production_4wk.boxes_over_cost, produced)
    rework_per_box = safe_ratio(production_4wk.rework_hours, produced)
    avg_boxes_per_week = safe_ratio(produced, len(production_recent))

    kpis = {
        "contribution": KpiResult(
            contribution_mtd,
            formulas.rag_banded(
                contribution_mtd,
                red_below=_setting(settings, "survival_contribution"),
                green_from=_setting(settings, "monthly_contribution_target"),
            ),
        ),
        "install_pct": KpiResult(
            install_pct,
            formulas.rag_against_target(install_pct, _setting(settings, "target_install_pct")),
        ),
        "extras_pct": KpiResult(
            extras_pct,
            formulas.rag_against_target(extras_pct, _setting(settings, "target_extras_pct")),
        ),
        "contribution_per_box": KpiResult(
            contribution_per_box,
            formulas.rag_banded(
                contribution_per_box,
                red_below=formulas.CONTRIBUTION_PER_BOX_RED_BELOW,
                green_from=formulas.CONTRIBUTION_PER_BOX_GREEN_FROM,
            ),
        ),
        "cost_compliance": KpiResult(
            cost_compliance,
            formulas.rag_against_target(cost_compliance, _setting(settings, "cost_compliance_target")),
        ),
        "rework_per_box": KpiResult(
            rework_per_box,
            formulas.rag_penalty(
                rework_per_box,
                amber_from=formulas.REWORK_PER_BOX_AMBER_FROM,
                red_from=formulas.REWORK_PER_BOX_RED_FROM,
            ),
        ),
        # No agreed threshold yet: reported, not classified
        "right_first_time": KpiResult(_mean_right_first_time(production_recent), None),
    }

    month_start, month_end = month_bounds(reference_date)
    sales_dates = sorted(_week(r) for r in sales_recent)
    period = PeriodInfo(
        month_label=reference_date.strftime("%B %Y"),
        month_start=month_start,
        month_end=month_end,
        last_4_weeks_start=sales_dates[0] if sales_dates else None,
        last_4_weeks_end=sales_dates[-1] if sales_dates else None,
    )

    return DashboardReport(
        reference_date=reference_date,
        period=period,
        sales_mtd=sales_mtd,
        production_mtd=production_mtd,
        sales_last_4_weeks=sales_4wk,
        production_last_4_weeks=production_4wk,
        kpis=kpis,
        avg_boxes_per_week=avg_boxes_per_week,
        sales_weeks=sales_recent,
        production_weeks=production_recent,
        forward_look=next_n_weeks(sales_records, reference_date),
    )


def today_local() -> date:
    """Today in the configured business timezone."""
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()


class DashboardService:
    def __init__(self, db: Session):
        self.db = db

    def build(self, reference_date: date | None = None) -> DashboardReport:
        """
        Load settings + the three windows and compute the report.

        Raises:
            SettingsNotInitialized: the settings row is missing
        """
        if reference_date is None:
            reference_date = today_local()

        settings = SettingsService(self.db).get_settings()
        records = WeeklyRecordsService(self.db)

        sales = _unique_by_week(
            records.month_to_date(KIND_SALES, reference_date)
            + records.trailing(KIND_SALES, reference_date, TRAILING_WEEKS)
            + records.forward(KIND_SALES, reference_date, FORWARD_WEEKS)
        )
        production = _unique_by_week(
            records.month_to_date(KIND_PRODUCTION, reference_date)
            + records.trailing(KIND_PRODUCTION, reference_date, TRAILING_WEEKS)
        )
        return compute_dashboard(settings, sales, production, reference_date)


def _unique_by_week(records: list) -> list:
    seen: dict[date, Any] = {}
    for r in records:
        seen.setdefault(r.week_commencing, r)
    return list(seen.values())
