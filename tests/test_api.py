"""
Tests for water_api/main.py

The PostgreSQL dependency is swapped for an in-memory snapshot through
FastAPI's dependency_overrides, so no database is needed.
"""
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from water_api.main import app, get_source
from waterrisk.sources import SnapshotWaterDataSource, WaterDataFetchError

ORG = "org-1"


class BrokenSource(SnapshotWaterDataSource):
    def facilities(self, organization_id):
        raise WaterDataFetchError("facilities", "server closed the connection")


@pytest.fixture
def client():
    source = SnapshotWaterDataSource(
        organization_id=ORG,
        facilities=[
            {"id": "F1", "name": "Desert Plant", "country_code": "SA"},
            {"id": "F2", "name": "Leeds", "country_code": "GB"},
        ],
        operational_records=[{"facility_id": "F1", "intake": 150, "discharge": 50}],
    )
    app.dependency_overrides[get_source] = lambda: source
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestWaterRisks:

    def test_risks_payload(self, client):
        resp = client.get(f"/api/organizations/{ORG}/water-risks")
        assert resp.status_code == 200
        data = resp.json()
        assert data["organization_id"] == ORG
        risks = {r["facility_id"]: r for r in data["risks"]}
        assert risks["F1"]["risk_level"] == "high"
        assert risks["F1"]["operational_scarcity_weighted"] == pytest.approx(100 * 52.3)
        assert risks["F2"]["has_operational_data"] is False
        assert data["summary"]["overall_risk_level"] == "high"
        assert isinstance(data["events"], list)

    def test_summary_payload(self, client):
        resp = client.get(f"/api/organizations/{ORG}/water-risk-summary")
        assert resp.status_code == 200
        assert resp.json() == {
            "high_count": 1,
            "medium_count": 0,
            "low_count": 1,
            "total_facilities": 2,
            "overall_risk_level": "high",
        }

    def test_unknown_organisation_is_empty(self, client):
        resp = client.get("/api/organizations/someone-else/water-risk-summary")
        assert resp.status_code == 200
        assert resp.json()["total_facilities"] == 0
        assert resp.json()["overall_risk_level"] == "low"

    def test_inverted_period_rejected(self, client):
        resp = client.get(
            f"/api/organizations/{ORG}/water-risks",
            params={"period_start": "2024-12-31", "period_end": "2024-01-01"},
        )
        assert resp.status_code == 400

    def test_invalid_date_rejected(self, client):
        resp = client.get(f"/api/organizations/{ORG}/water-risks", params={"period_start": "soon"})
        assert resp.status_code == 422

    def test_fetch_error_is_bad_gateway(self):
        app.dependency_overrides[get_source] = lambda: BrokenSource(organization_id=ORG)
        try:
            resp = TestClient(app).get(f"/api/organizations/{ORG}/water-risks")
        finally:
            app.dependency_overrides.clear()
        assert resp.status_code == 502
        assert "facilities" in resp.json()["detail"]

    def test_missing_database_url_is_unavailable(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        resp = TestClient(app).get(f"/api/organizations/{ORG}/water-risks")
        assert resp.status_code == 503


class TestHealth:

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        resp = TestClient(app).get("/api/health")
        assert resp.json() == {"status": "ok", "database": "not_configured"}

    def test_unreachable(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://nowhere/db")
        with patch("waterrisk.db.test_connection", return_value=(False, "refused")):
            resp = TestClient(app).get("/api/health")
        assert resp.json()["database"] == "unreachable"

    def test_reachable(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "postgresql://somewhere/db")
        with patch("waterrisk.db.test_connection", return_value=(True, None)):
            resp = TestClient(app).get("/api/health")
        assert resp.json() == {"status": "ok", "database": "ok"}
