"""
Seed demo settings and 8 weeks of sales / production figures.
Run:  python seed_test_data.py
"""
from datetime import date, timedelta
from decimal import Decimal

from app.infrastructure.db.session import session_scope
from app.application.box_settings import SettingsService
from app.application.weekly_records import WeeklyRecordsService

with session_scope() as db:
    settings = SettingsService(db).update_settings({
        "annual_turnover": "1200000",
        "base_box_price": "1500",
        "gross_margin_pct": "0.35",
        "target_install_pct": "0.25",
        "target_extras_pct": "0.10",
        "survival_contribution": "25000",
        "cost_compliance_target": "0.90",
        "right_first_time_target": "0.95",
    })
    print(
        f"Settings v{settings.version_id}: monthly target {settings.monthly_contribution_target}, "
        f"per box {settings.contribution_per_box}, "
        f"{settings.target_boxes_per_month}/month, {settings.target_boxes_per_week}/week"
    )

    records = WeeklyRecordsService(db)
    today = date.today()
    this_monday = today - timedelta(days=today.weekday())

    for i in range(8):
        week = this_monday - timedelta(weeks=7 - i)
        boxes = 12 + i % 3
        records.upsert_sales({
            "week_commencing": week,
            "boxes_sold": boxes,
            "installs_sold": boxes // 4,
            "box_revenue": Decimal(boxes * 1500),
            "extras_revenue": Decimal(boxes * 140),
            "install_revenue": Decimal(boxes // 4 * 400),
        })
        records.upsert_production({
            "week_commencing": week,
            "boxes_produced": boxes + 1,
            "installs_completed": boxes // 4,
            "boxes_over_cost": i % 2,
            "rework_hours": Decimal("3.5") + i,
            "right_first_time_pct": Decimal("0.92"),
        })
        print(f"  week {week}: {boxes} boxes sold")

    print("Seed complete")
