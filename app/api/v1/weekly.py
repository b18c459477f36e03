"""
Weekly sales / production API endpoints
"""
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, StrictFloat, StrictInt
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_auth
from app.application.weekly_records import WeeklyRecordsService, KIND_SALES, KIND_PRODUCTION
from app.domain.errors import PersistenceError, RecordValidationError


router = APIRouter(prefix="/api/v1", tags=["weekly"], dependencies=[Depends(require_auth)])

# Ranges and whole-number checks happen in WeeklyRecordsService
NumberInput = StrictInt | StrictFloat | str | None


# === Request/Response models ===

class SalesWeekRequest(BaseModel):
    boxes_sold: NumberInput = None
    installs_sold: NumberInput = None
    box_revenue: NumberInput = None
    extras_revenue: NumberInput = None
    install_revenue: NumberInput = None
    notes: str | None = None


class ProductionWeekRequest(BaseModel):
    boxes_produced: NumberInput = None
    installs_completed: NumberInput = None
    boxes_over_cost: NumberInput = None
    rework_hours: NumberInput = None
    right_first_time_pct: NumberInput = None  # 0..1, optional
    notes: str | None = None


class SalesWeekResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_commencing: date
    boxes_sold: int
    installs_sold: int
    box_revenue: Decimal
    extras_revenue: Decimal
    install_revenue: Decimal
    notes: str | None


class ProductionWeekResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    week_commencing: date
    boxes_produced: int
    installs_completed: int
    boxes_over_cost: int
    rework_hours: Decimal
    right_first_time_pct: Decimal | None
    notes: str | None


_RESPONSES = {
    KIND_SALES: SalesWeekResponse,
    KIND_PRODUCTION: ProductionWeekResponse,
}


# === Helpers ===

def _list(kind: str, db: Session) -> list:
    out = _RESPONSES[kind]
    return [out.model_validate(r) for r in WeeklyRecordsService(db).list_records(kind)]


def _get(kind: str, week: date, db: Session):
    row = WeeklyRecordsService(db).get_week(kind, week)
    if row is None:
        raise HTTPException(status_code=404, detail=f"No {kind} record for week {week.isoformat()}")
    return _RESPONSES[kind].model_validate(row)


def _upsert(kind: str, week: date, req: BaseModel, db: Session):
    data = {**req.model_dump(), "week_commencing": week}
    try:
        row = WeeklyRecordsService(db).upsert(kind, data)
    except RecordValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return _RESPONSES[kind].model_validate(row)


# === Sales ===

@router.get("/sales", response_model=list[SalesWeekResponse])
def list_sales(db: Session = Depends(get_db)):
    """All sales weeks, newest first"""
    return _list(KIND_SALES, db)


@router.get("/sales/{week}", response_model=SalesWeekResponse)
def get_sales_week(week: date, db: Session = Depends(get_db)):
    return _get(KIND_SALES, week, db)


@router.put("/sales/{week}", response_model=SalesWeekResponse)
def upsert_sales_week(week: date, req: SalesWeekRequest, db: Session = Depends(get_db)):
    """Create or replace the sales figures for a week"""
    return _upsert(KIND_SALES, week, req, db)


# === Production ===

@router.get("/production", response_model=list[ProductionWeekResponse])
def list_production(db: Session = Depends(get_db)):
    """All production weeks, newest first"""
    return _list(KIND_PRODUCTION, db)


@router.get("/production/{week}", response_model=ProductionWeekResponse)
def get_production_week(week: date, db: Session = Depends(get_db)):
    return _get(KIND_PRODUCTION, week, db)


@router.put("/production/{week}", response_model=ProductionWeekResponse)
def upsert_production_week(week: date, req: ProductionWeekRequest, db: Session = Depends(get_db)):
    """Create or replace the production figures for a week"""
    return _upsert(KIND_PRODUCTION, week, req, db)
