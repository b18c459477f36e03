"""
Weekly sales / production records, idempotent upsert keyed by week_commencing
and the window queries the dashboard needs.

Windows (relative to a reference date):
  mtd      : weeks in the reference calendar month, ascending
  trailing : N most recent weeks on or before the reference date, newest first
  forward  : N nearest weeks on or after the reference date, ascending
  week     : a single week
  all      : full history, newest first
"""
from __future__ import annotations

import calendar
import logging
from datetime import date, datetime
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import PersistenceError, RecordValidationError
from app.domain.formulas import MAX_AMOUNT, MAX_COUNT, MAX_HOURS
from app.infrastructure.db.models import SalesWeekly, ProductionWeekly
from app.utils.validation import parse_non_negative_decimal, parse_non_negative_int

logger = logging.getLogger(__name__)

KIND_SALES = "sales"
KIND_PRODUCTION = "production"

WINDOW_MTD = "mtd"
WINDOW_TRAILING = "trailing"
WINDOW_FORWARD = "forward"
WINDOW_WEEK = "week"
WINDOW_ALL = "all"

DEFAULT_WINDOW_WEEKS = 4

_MODELS = {
    KIND_SALES: SalesWeekly,
    KIND_PRODUCTION: ProductionWeekly,
}

# (required integers, optional integers, optional decimals)
_SALES_FIELDS = (("boxes_sold", "installs_sold"), (), ("box_revenue", "extras_revenue", "install_revenue"))
_PRODUCTION_FIELDS = (("boxes_produced", "installs_completed"), ("boxes_over_cost",), ("rework_hours",))

# Column capacity per decimal field; money otherwise
_DECIMAL_LIMITS = {"rework_hours": MAX_HOURS}


def month_bounds(reference_date: date) -> tuple[date, date]:
    """First and last day of the calendar month containing reference_date."""
    last_day = calendar.monthrange(reference_date.year, reference_date.month)[1]
    return reference_date.replace(day=1), reference_date.replace(day=last_day)


def parse_week(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise RecordValidationError("week_commencing must be a date (YYYY-MM-DD)", field="week_commencing")


def _clean(data: Mapping[str, Any], fields: tuple[tuple[str, ...], tuple[str, ...], tuple[str, ...]]) -> dict[str, Any]:
    required_ints, optional_ints, decimals = fields
    cleaned: dict[str, Any] = {"week_commencing": parse_week(data.get("week_commencing"))}

    for name in required_ints + optional_ints:
        raw = data.get(name)
        if raw is None or raw == "":
            if name in required_ints:
                raise RecordValidationError(f"{name} is required", field=name)
            raw = 0
        try:
            cleaned[name] = parse_non_negative_int(raw, MAX_COUNT)
        except ValueError as exc:
            raise RecordValidationError(f"Invalid value for {name}: {exc}", field=name) from exc

    for name in decimals:
        raw = data.get(name)
        if raw is None or raw == "":
            raw = 0
        try:
            cleaned[name] = parse_non_negative_decimal(raw, _DECIMAL_LIMITS.get(name, MAX_AMOUNT))
        except ValueError as exc:
            raise RecordValidationError(f"Invalid value for {name}: {exc}", field=name) from exc

    notes = data.get("notes")
    if isinstance(notes, str) and notes.strip():
        cleaned["notes"] = notes.strip()
    else:
        cleaned["notes"] = None
    return cleaned


def validate_sales(data: Mapping[str, Any]) -> dict[str, Any]:
    return _clean(data, _SALES_FIELDS)


def validate_production(data: Mapping[str, Any]) -> dict[str, Any]:
    cleaned = _clean(data, _PRODUCTION_FIELDS)
    if cleaned["boxes_over_cost"] > cleaned["boxes_produced"]:
        raise RecordValidationError("boxes_over_cost cannot exceed boxes_produced", field="boxes_over_cost")

    raw_rft = data.get("right_first_time_pct")
    if raw_rft is None or raw_rft == "":
        cleaned["right_first_time_pct"] = None
    else:
        try:
            rft = parse_non_negative_decimal(raw_rft)
        except ValueError as exc:
            raise RecordValidationError(f"Invalid value for right_first_time_pct: {exc}", field="right_first_time_pct") from exc
        if rft > 1:
            raise RecordValidationError("right_first_time_pct cannot exceed 1.0 (100%)", field="right_first_time_pct")
        cleaned["right_first_time_pct"] = rft
    return cleaned


class WeeklyRecordsService:
    def __init__(self, db: Session) -> None:
        self._db = db

    # ── Upsert ────────────────────────────────────────────────────────────

    def upsert_sales(self, data: Mapping[str, Any]) -> SalesWeekly:
        return self._upsert(SalesWeekly, validate_sales(data))

    def upsert_production(self, data: Mapping[str, Any]) -> ProductionWeekly:
        return self._upsert(ProductionWeekly, validate_production(data))

    def upsert(self, kind: str, data: Mapping[str, Any]):
        if kind == KIND_SALES:
            return self.upsert_sales(data)
        if kind == KIND_PRODUCTION:
            return self.upsert_production(data)
        raise ValueError(f"Unknown record kind: {kind}")

    def _upsert(self, model, cleaned: dict[str, Any]):
        week = cleaned["week_commencing"]
        row = self._db.query(model).filter(model.week_commencing == week).first()
        created = row is None
        if created:
            row = model(week_commencing=week)
            self._db.add(row)
        for name, value in cleaned.items():
            setattr(row, name, value)

        try:
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            if not created:
                raise PersistenceError(f"Error saving {model.__tablename__} {week}: {exc}") from exc
            # Lost an insert race on the same week: last writer wins
            row = self._db.query(model).filter(model.week_commencing == week).first()
            if row is None:
                raise PersistenceError(f"Error saving {model.__tablename__} {week}: {exc}") from exc
            for name, value in cleaned.items():
                setattr(row, name, value)
            self._commit(model, week)
            created = False
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.exception("Upsert into %s failed for week %s", model.__tablename__, week)
            raise PersistenceError(f"Error saving {model.__tablename__} {week}: {exc}") from exc

        self._db.refresh(row)
        logger.info("%s %s week %s", "Inserted" if created else "Updated", model.__tablename__, week)
        return row

    def _commit(self, model, week: date) -> None:
        try:
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.exception("Upsert into %s failed for week %s", model.__tablename__, week)
            raise PersistenceError(f"Error saving {model.__tablename__} {week}: {exc}") from exc

    # ── Reads ─────────────────────────────────────────────────────────────

    def get_week(self, kind: str, week_commencing: date):
        model = _model(kind)
        return self._db.query(model).filter(model.week_commencing == week_commencing).first()

    def list_records(self, kind: str) -> list:
        model = _model(kind)
        return self._db.query(model).order_by(model.week_commencing.desc()).all()

    def month_to_date(self, kind: str, reference_date: date) -> list:
        model = _model(kind)
        first, last = month_bounds(reference_date)
        return (
            self._db.query(model)
            .filter(model.week_commencing >= first, model.week_commencing <= last)
            .order_by(model.week_commencing)
            .all()
        )

    def trailing(self, kind: str, reference_date: date, n: int = DEFAULT_WINDOW_WEEKS) -> list:
        model = _model(kind)
        return (
            self._db.query(model)
            .filter(model.week_commencing <= reference_date)
            .order_by(model.week_commencing.desc())
            .limit(n)
            .all()
        )

    def forward(self, kind: str, reference_date: date, n: int = DEFAULT_WINDOW_WEEKS) -> list:
        model = _model(kind)
        return (
            self._db.query(model)
            .filter(model.week_commencing >= reference_date)
            .order_by(model.week_commencing)
            .limit(n)
            .all()
        )

    def fetch(
        self,
        kind: str,
        window: str,
        reference_date: date | None = None,
        n: int = DEFAULT_WINDOW_WEEKS,
    ) -> list:
        """Dispatch to one of the window queries; WINDOW_WEEK returns [] or [record]."""
        if window == WINDOW_ALL:
            return self.list_records(kind)
        if reference_date is None:
            raise ValueError(f"Window {window!r} needs a reference date")
        if window == WINDOW_MTD:
            return self.month_to_date(kind, reference_date)
        if window == WINDOW_TRAILING:
            return self.trailing(kind, reference_date, n)
        if window == WINDOW_FORWARD:
            return self.forward(kind, reference_date, n)
        if window == WINDOW_WEEK:
            row = self.get_week(kind, reference_date)
            return [row] if row is not None else []
        raise ValueError(f"Unknown window: {window}")


def _model(kind: str):
    try:
        return _MODELS[kind]
    except KeyError:
        raise ValueError(f"Unknown record kind: {kind}") from None
