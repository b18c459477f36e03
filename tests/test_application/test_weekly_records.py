"""
Tests for WeeklyRecordsService: upsert-by-week, validation and window queries
"""
from datetime import date
from decimal import Decimal

import pytest

from app.application.weekly_records import (
    KIND_PRODUCTION,
    KIND_SALES,
    WINDOW_ALL,
    WINDOW_FORWARD,
    WINDOW_MTD,
    WINDOW_TRAILING,
    WINDOW_WEEK,
    WeeklyRecordsService,
    month_bounds,
)
from app.domain.errors import RecordValidationError
from app.infrastructure.db.models import ProductionWeekly, SalesWeekly


def _svc(db):
    return WeeklyRecordsService(db)


def _sales(week, boxes=10, **extra):
    data = {"week_commencing": week, "boxes_sold": boxes, "installs_sold": 2}
    data.update(extra)
    return data


def _production(week, produced=10, **extra):
    data = {"week_commencing": week, "boxes_produced": produced, "installs_completed": 2}
    data.update(extra)
    return data


def _seed_sales(db, weeks):
    svc = _svc(db)
    for i, week in enumerate(weeks):
        svc.upsert_sales(_sales(week, boxes=i + 1))


# ── Upsert ──────────────────────────────────────────────────────────────────


def test_upsert_sales_inserts_with_defaults(db_session):
    row = _svc(db_session).upsert_sales(_sales("2024-03-04"))
    assert row.id is not None
    assert row.week_commencing == date(2024, 3, 4)
    assert row.box_revenue == Decimal("0")
    assert row.notes is None


def test_upsert_same_week_updates_in_place(db_session):
    svc = _svc(db_session)
    first = svc.upsert_sales(_sales(date(2024, 3, 4), boxes=5, box_revenue="7500"))
    second = svc.upsert_sales(_sales(date(2024, 3, 4), boxes=8, box_revenue="12000", notes=" late order "))

    assert second.id == first.id
    assert db_session.query(SalesWeekly).count() == 1
    assert second.boxes_sold == 8
    assert second.box_revenue == Decimal("12000")
    assert second.notes == "late order"


def test_upsert_twice_with_same_data_is_idempotent(db_session):
    svc = _svc(db_session)
    data = _production(date(2024, 3, 4), rework_hours="2.5", right_first_time_pct="0.9")
    svc.upsert_production(data)
    row = svc.upsert_production(data)
    assert db_session.query(ProductionWeekly).count() == 1
    assert row.rework_hours == Decimal("2.5")
    assert row.right_first_time_pct == Decimal("0.9")


def test_upsert_dispatch_by_kind(db_session):
    svc = _svc(db_session)
    assert isinstance(svc.upsert(KIND_SALES, _sales("2024-03-04")), SalesWeekly)
    assert isinstance(svc.upsert(KIND_PRODUCTION, _production("2024-03-04")), ProductionWeekly)
    with pytest.raises(ValueError):
        svc.upsert("stock", {})


# ── Validation ──────────────────────────────────────────────────────────────


@pytest.mark.parametrize("data, field", [
    ({"week_commencing": "not-a-date", "boxes_sold": 1, "installs_sold": 0}, "week_commencing"),
    ({"week_commencing": "2024-03-04", "installs_sold": 0}, "boxes_sold"),
    ({"week_commencing": "2024-03-04", "boxes_sold": -1, "installs_sold": 0}, "boxes_sold"),
    ({"week_commencing": "2024-03-04", "boxes_sold": "2.5", "installs_sold": 0}, "boxes_sold"),
    ({"week_commencing": "2024-03-04", "boxes_sold": 1, "installs_sold": 0, "box_revenue": "abc"}, "box_revenue"),
    ({"week_commencing": "2024-03-04", "boxes_sold": 1, "installs_sold": 0, "box_revenue": "1e30"}, "box_revenue"),
    ({"week_commencing": "2024-03-04", "boxes_sold": 2 ** 31, "installs_sold": 0}, "boxes_sold"),
])
def test_invalid_sales_rejected(db_session, data, field):
    with pytest.raises(RecordValidationError) as exc:
        _svc(db_session).upsert_sales(data)
    assert exc.value.field == field
    assert db_session.query(SalesWeekly).count() == 0


def test_over_cost_cannot_exceed_produced(db_session):
    with pytest.raises(RecordValidationError) as exc:
        _svc(db_session).upsert_production(_production("2024-03-04", produced=3, boxes_over_cost=4))
    assert exc.value.field == "boxes_over_cost"


def test_right_first_time_above_one_rejected(db_session):
    with pytest.raises(RecordValidationError):
        _svc(db_session).upsert_production(_production("2024-03-04", right_first_time_pct="1.2"))


def test_rework_hours_beyond_column_rejected(db_session):
    with pytest.raises(RecordValidationError) as exc:
        _svc(db_session).upsert_production(_production("2024-03-04", rework_hours="100000000"))
    assert exc.value.field == "rework_hours"
    assert db_session.query(ProductionWeekly).count() == 0


def test_right_first_time_optional(db_session):
    row = _svc(db_session).upsert_production(_production("2024-03-04"))
    assert row.right_first_time_pct is None
    assert row.boxes_over_cost == 0


# ── Windows ─────────────────────────────────────────────────────────────────


WEEKS = [
    date(2024, 2, 19),
    date(2024, 2, 26),
    date(2024, 3, 4),
    date(2024, 3, 11),
    date(2024, 3, 18),
    date(2024, 3, 25),
    date(2024, 4, 1),
]


def test_month_bounds_leap_february():
    assert month_bounds(date(2024, 2, 14)) == (date(2024, 2, 1), date(2024, 2, 29))


def test_month_to_date_whole_calendar_month_ascending(db_session):
    _seed_sales(db_session, WEEKS)
    rows = _svc(db_session).month_to_date(KIND_SALES, date(2024, 3, 12))
    assert [r.week_commencing for r in rows] == WEEKS[2:6]


def test_trailing_excludes_future_weeks(db_session):
    _seed_sales(db_session, WEEKS)
    rows = _svc(db_session).trailing(KIND_SALES, date(2024, 3, 12))
    assert [r.week_commencing for r in rows] == [
        date(2024, 3, 11), date(2024, 3, 4), date(2024, 2, 26), date(2024, 2, 19),
    ]


def test_trailing_with_short_history(db_session):
    _seed_sales(db_session, WEEKS[:2])
    rows = _svc(db_session).trailing(KIND_SALES, date(2024, 3, 12), n=4)
    assert len(rows) == 2


def test_forward_nearest_first(db_session):
    _seed_sales(db_session, WEEKS)
    rows = _svc(db_session).forward(KIND_SALES, date(2024, 3, 12), n=2)
    assert [r.week_commencing for r in rows] == [date(2024, 3, 18), date(2024, 3, 25)]


def test_fetch_dispatches_windows(db_session):
    _seed_sales(db_session, WEEKS)
    svc = _svc(db_session)
    ref = date(2024, 3, 4)

    assert len(svc.fetch(KIND_SALES, WINDOW_ALL)) == len(WEEKS)
    assert len(svc.fetch(KIND_SALES, WINDOW_MTD, ref)) == 4
    assert len(svc.fetch(KIND_SALES, WINDOW_TRAILING, ref, n=2)) == 2
    assert svc.fetch(KIND_SALES, WINDOW_FORWARD, ref, n=1)[0].week_commencing == ref
    assert svc.fetch(KIND_SALES, WINDOW_WEEK, ref)[0].boxes_sold == 3
    assert svc.fetch(KIND_SALES, WINDOW_WEEK, date(2024, 3, 5)) == []


def test_fetch_rejects_unknown_window_and_kind(db_session):
    svc = _svc(db_session)
    with pytest.raises(ValueError):
        svc.fetch(KIND_SALES, "quarter", date(2024, 3, 4))
    with pytest.raises(ValueError):
        svc.fetch(KIND_SALES, WINDOW_MTD)
    with pytest.raises(ValueError):
        svc.list_records("stock")
