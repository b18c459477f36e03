"""
Dashboard API endpoint
"""
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_auth
from app.api.v1.weekly import ProductionWeekResponse, SalesWeekResponse
from app.application.dashboard import DashboardReport, DashboardService, KPI_LABELS
from app.domain.errors import SettingsNotInitialized


router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"], dependencies=[Depends(require_auth)])


# === Response models ===

class SalesTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    boxes_sold: int
    installs_sold: int
    box_revenue: Decimal
    extras_revenue: Decimal
    install_revenue: Decimal
    total_revenue: Decimal


class ProductionTotalsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    boxes_produced: int
    installs_completed: int
    boxes_over_cost: int
    rework_hours: Decimal


class PeriodResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    month_label: str
    month_start: date
    month_end: date
    last_4_weeks_start: date | None
    last_4_weeks_end: date | None


class KpiResponse(BaseModel):
    label: str
    value: Decimal | None
    rag: str | None  # red / amber / green, None = unclassified


class DashboardResponse(BaseModel):
    reference_date: date
    period: PeriodResponse
    sales_mtd: SalesTotalsResponse
    production_mtd: ProductionTotalsResponse
    sales_last_4_weeks: SalesTotalsResponse
    production_last_4_weeks: ProductionTotalsResponse
    kpis: dict[str, KpiResponse]
    avg_boxes_per_week: Decimal
    sales_weeks: list[SalesWeekResponse]
    production_weeks: list[ProductionWeekResponse]
    forward_look: list[SalesWeekResponse]


def _report_response(report: DashboardReport) -> DashboardResponse:
    return DashboardResponse(
        reference_date=report.reference_date,
        period=PeriodResponse.model_validate(report.period),
        sales_mtd=SalesTotalsResponse.model_validate(report.sales_mtd),
        production_mtd=ProductionTotalsResponse.model_validate(report.production_mtd),
        sales_last_4_weeks=SalesTotalsResponse.model_validate(report.sales_last_4_weeks),
        production_last_4_weeks=ProductionTotalsResponse.model_validate(report.production_last_4_weeks),
        kpis={
            key: KpiResponse(label=KPI_LABELS.get(key, key), value=kpi.value, rag=kpi.rag)
            for key, kpi in report.kpis.items()
        },
        avg_boxes_per_week=report.avg_boxes_per_week,
        sales_weeks=[SalesWeekResponse.model_validate(r) for r in report.sales_weeks],
        production_weeks=[ProductionWeekResponse.model_validate(r) for r in report.production_weeks],
        forward_look=[SalesWeekResponse.model_validate(r) for r in report.forward_look],
    )


# === Endpoints ===

@router.get("", response_model=DashboardResponse)
def dashboard(reference_date: date | None = None, db: Session = Depends(get_db)):
    """KPI report for the month / last 4 weeks around reference_date (default: today)"""
    try:
        report = DashboardService(db).build(reference_date)
    except SettingsNotInitialized as e:
        raise HTTPException(status_code=503, detail=str(e))
    return _report_response(report)
