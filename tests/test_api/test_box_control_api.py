"""
Tests for the JSON API: password gate, settings, weekly records, dashboard
"""
import pytest
from decimal import Decimal
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from unittest.mock import patch

import app.infrastructure.db.session as db_session_module
from app.main import app
from app.api.deps import get_db
from app.auth import check_dashboard_password, hash_password
from app.config import Settings
from app.infrastructure.db.models import BoxControlSettings


@pytest.fixture
def client(session_factory):
    """Test client bound to the in-memory database"""
    def _get_test_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_test_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def authenticated_client(client):
    """Client that has passed the password gate"""
    with patch("app.api.v1.auth.check_dashboard_password", return_value=True):
        response = client.post("/login", json={"password": "letmein"})
    assert response.status_code == 200
    return client


# ── Password gate ───────────────────────────────────────────────────────────


def test_api_requires_login(client):
    for path in ("/api/v1/settings", "/api/v1/sales", "/api/v1/production", "/api/v1/dashboard"):
        assert client.get(path).status_code == 401


def test_wrong_password_rejected(client):
    with patch("app.api.v1.auth.check_dashboard_password", return_value=False):
        response = client.post("/login", json={"password": "nope"})
    assert response.status_code == 401
    assert client.get("/api/v1/settings").status_code == 401


def test_logout_closes_session(authenticated_client):
    assert authenticated_client.get("/api/v1/settings").status_code == 200
    authenticated_client.post("/logout")
    assert authenticated_client.get("/api/v1/settings").status_code == 401


def test_password_check_against_configured_hash():
    configured = Settings(DASHBOARD_PASSWORD_HASH=hash_password("letmein"))
    with patch("app.auth.get_settings", return_value=configured):
        assert check_dashboard_password("letmein") is True
        assert check_dashboard_password("letmeout") is False


def test_password_check_without_hash_always_fails():
    with patch("app.auth.get_settings", return_value=Settings(DASHBOARD_PASSWORD_HASH="")):
        assert check_dashboard_password("") is False
        assert check_dashboard_password("anything") is False


def test_health_is_public(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.text == "ok"


def test_ready_checks_database(client, db_engine, monkeypatch):
    monkeypatch.setattr(db_session_module, "_engine", db_engine)
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.text == "ok"


def test_ready_reports_unreachable_database(client):
    down = OperationalError("SELECT 1", {}, Exception("connection refused"))
    with patch("app.main.check_db_connection", side_effect=down):
        assert client.get("/ready").status_code == 503


# ── Settings ────────────────────────────────────────────────────────────────


def test_read_settings_creates_defaults(authenticated_client):
    response = authenticated_client.get("/api/v1/settings")
    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["gross_margin_pct"]) == Decimal("0.35")
    assert data["annual_turnover"] is None
    assert data["version_id"] == 1


def test_update_settings_returns_derived_targets(authenticated_client):
    response = authenticated_client.post("/api/v1/settings", json={
        "annual_turnover": 120000,
        "gross_margin_pct": "0.4",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert Decimal(body["settings"]["monthly_contribution_target"]) == Decimal("4000")
    assert body["settings"]["version_id"] == 2


def test_update_settings_unknown_field_is_400(authenticated_client):
    response = authenticated_client.post("/api/v1/settings", json={"favourite_colour": "blue"})
    assert response.status_code == 400
    assert "favourite_colour" in response.json()["detail"]


def test_update_settings_percentage_sum_is_400(authenticated_client):
    response = authenticated_client.post("/api/v1/settings", json={
        "target_install_pct": "0.7",
        "target_extras_pct": "0.4",
    })
    assert response.status_code == 400


def test_update_settings_stale_version_is_409(authenticated_client):
    authenticated_client.post("/api/v1/settings", json={"survival_contribution": 2500, "expected_version": 1})
    response = authenticated_client.post(
        "/api/v1/settings", json={"survival_contribution": 3000, "expected_version": 1}
    )
    assert response.status_code == 409


def test_update_settings_wrong_json_types_are_422(authenticated_client):
    assert authenticated_client.post("/api/v1/settings", json={"expected_version": "one"}).status_code == 422
    assert authenticated_client.post("/api/v1/settings", json={"base_box_price": [500]}).status_code == 422


def test_update_settings_out_of_range_amount_is_400(authenticated_client):
    response = authenticated_client.post("/api/v1/settings", json={"annual_turnover": "1e30"})
    assert response.status_code == 400
    assert authenticated_client.get("/api/v1/settings").json()["annual_turnover"] is None


def test_settings_decimals_serialised_as_strings(authenticated_client):
    data = authenticated_client.get("/api/v1/settings").json()
    assert isinstance(data["gross_margin_pct"], str)
    assert isinstance(data["target_boxes_per_month"], int)


def test_preview_reports_sources_without_saving(authenticated_client):
    authenticated_client.get("/api/v1/settings")
    response = authenticated_client.post("/api/v1/settings/preview", json={
        "monthly_contribution_target": 4000,
        "contribution_per_box": "227.5",
    })
    assert response.status_code == 200
    body = response.json()
    assert body["changes"]["target_boxes_per_month"] == 18
    assert body["sources"]["contribution_per_box"] == "explicit"
    assert body["sources"]["target_boxes_per_week"] == "derived"
    assert body["sources"]["annual_turnover"] == "current"

    saved = authenticated_client.get("/api/v1/settings").json()
    assert saved["target_boxes_per_month"] == 0


def test_preview_accepts_expected_version(authenticated_client):
    authenticated_client.get("/api/v1/settings")
    response = authenticated_client.post("/api/v1/settings/preview", json={
        "survival_contribution": 2500,
        "expected_version": 1,
    })
    assert response.status_code == 200
    assert response.json()["sources"]["survival_contribution"] == "explicit"


def test_preview_without_settings_row_is_503_and_creates_nothing(authenticated_client, session_factory):
    response = authenticated_client.post("/api/v1/settings/preview", json={"annual_turnover": 120000})
    assert response.status_code == 503
    db = session_factory()
    try:
        assert db.query(BoxControlSettings).count() == 0
    finally:
        db.close()


# ── Weekly records ──────────────────────────────────────────────────────────


def test_put_and_get_sales_week(authenticated_client):
    response = authenticated_client.put("/api/v1/sales/2024-03-04", json={
        "boxes_sold": 5,
        "installs_sold": 1,
        "box_revenue": "7500",
    })
    assert response.status_code == 200
    assert response.json()["week_commencing"] == "2024-03-04"

    response = authenticated_client.put("/api/v1/sales/2024-03-04", json={"boxes_sold": 6, "installs_sold": 1})
    assert response.status_code == 200

    listed = authenticated_client.get("/api/v1/sales").json()
    assert len(listed) == 1
    assert listed[0]["boxes_sold"] == 6

    assert authenticated_client.get("/api/v1/sales/2024-03-04").json()["boxes_sold"] == 6
    assert authenticated_client.get("/api/v1/sales/2024-03-11").status_code == 404


def test_put_sales_invalid_is_400(authenticated_client):
    response = authenticated_client.put("/api/v1/sales/2024-03-04", json={"boxes_sold": -1, "installs_sold": 0})
    assert response.status_code == 400


def test_put_sales_revenue_beyond_column_is_400(authenticated_client):
    response = authenticated_client.put("/api/v1/sales/2024-03-04", json={
        "boxes_sold": 1,
        "installs_sold": 0,
        "box_revenue": "1e30",
    })
    assert response.status_code == 400
    assert authenticated_client.get("/api/v1/sales").json() == []


def test_put_sales_wrong_json_type_is_422(authenticated_client):
    response = authenticated_client.put("/api/v1/sales/2024-03-04", json={"boxes_sold": {"n": 1}, "installs_sold": 0})
    assert response.status_code == 422


def test_put_production_over_cost_is_400(authenticated_client):
    response = authenticated_client.put("/api/v1/production/2024-03-04", json={
        "boxes_produced": 2,
        "installs_completed": 0,
        "boxes_over_cost": 3,
    })
    assert response.status_code == 400


def test_put_and_list_production(authenticated_client):
    response = authenticated_client.put("/api/v1/production/2024-03-04", json={
        "boxes_produced": 6,
        "installs_completed": 1,
        "rework_hours": "2.5",
        "right_first_time_pct": "0.9",
    })
    assert response.status_code == 200
    listed = authenticated_client.get("/api/v1/production").json()
    assert Decimal(listed[0]["rework_hours"]) == Decimal("2.5")


# ── Dashboard ───────────────────────────────────────────────────────────────


def test_dashboard_report(authenticated_client):
    authenticated_client.post("/api/v1/settings", json={
        "survival_contribution": 2500,
        "monthly_contribution_target": 4000,
    })
    authenticated_client.put("/api/v1/sales/2024-03-04", json={
        "boxes_sold": 5, "installs_sold": 1, "box_revenue": "7500", "extras_revenue": "500",
    })
    authenticated_client.put("/api/v1/production/2024-03-04", json={
        "boxes_produced": 5, "installs_completed": 1, "rework_hours": "1",
    })

    response = authenticated_client.get("/api/v1/dashboard", params={"reference_date": "2024-03-12"})
    assert response.status_code == 200
    data = response.json()

    # 8000 × 0.35
    assert Decimal(data["kpis"]["contribution"]["value"]) == Decimal("2800")
    assert data["kpis"]["contribution"]["rag"] == "amber"
    assert data["kpis"]["rework_per_box"]["rag"] == "green"
    assert data["kpis"]["right_first_time"]["rag"] is None
    assert data["period"]["month_label"] == "March 2024"
    assert len(data["sales_weeks"]) == 1


def test_dashboard_without_settings_row_is_503(authenticated_client, session_factory):
    params = {"reference_date": "2024-03-12"}
    assert authenticated_client.get("/api/v1/dashboard", params=params).status_code == 503
    db = session_factory()
    try:
        assert db.query(BoxControlSettings).count() == 0
    finally:
        db.close()

    authenticated_client.get("/api/v1/settings")
    response = authenticated_client.get("/api/v1/dashboard", params=params)
    assert response.status_code == 200
    assert Decimal(response.json()["kpis"]["install_pct"]["value"]) == Decimal("0")
