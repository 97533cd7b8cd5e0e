"""
Tests for the run_water_risk.py command-line runner (snapshot mode only).
"""
import io
import json

import pytest
from rich.console import Console

import run_water_risk


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("DATABASE_URL", "LOG_LEVEL", "WATER_RISK_FETCH_TIMEOUT"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def snapshot_file(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps({
        "organization_id": "org-1",
        "facilities": [
            {"id": "F1", "name": "Valencia", "country_code": "ES"},
            {"id": "F2", "name": "Remote", "country_code": None},
        ],
        "operational_records": [{"facility_id": "F1", "intake": 20, "discharge": 4}],
    }))
    return path


def test_snapshot_run_writes_json(snapshot_file, tmp_path):
    out = tmp_path / "out" / "risk.json"
    code = run_water_risk.main(["--snapshot", str(snapshot_file), "--json-out", str(out), "--show-events"])
    assert code == 0
    data = json.loads(out.read_text())
    risks = {r["facility_id"]: r for r in data["risks"]}
    assert risks["F1"]["total_scarcity_weighted"] == pytest.approx(16 * 12.5)
    assert risks["F2"]["country_code"] == "GLOBAL"
    assert data["summary"]["overall_risk_level"] == "high"


def test_missing_snapshot_file_fails(tmp_path):
    assert run_water_risk.main(["--snapshot", str(tmp_path / "nope.json")]) == 1


def test_database_run_needs_url():
    assert run_water_risk.main(["--organization-id", "org-1"]) == 1


def test_init_schema_needs_url():
    assert run_water_risk.main(["--init-schema"]) == 1


def test_target_required():
    with pytest.raises(SystemExit):
        run_water_risk.main([])


def test_bracketed_names_print_literally(tmp_path, monkeypatch):
    recorder = Console(record=True, width=300, file=io.StringIO())
    monkeypatch.setattr(run_water_risk, "console", recorder)
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps({
        "organization_id": "org-[b]1",
        "facilities": [{"id": "F[1]", "name": "Tank [/x] North", "country_code": "ES"}],
        "operational_records": [
            {"facility_id": "F[1]", "intake": 5, "discharge": 1},
            {"facility_id": "[red]ghost", "intake": 1, "discharge": 0},
        ],
    }))
    out = tmp_path / "risk.json"

    code = run_water_risk.main(["--snapshot", str(path), "--json-out", str(out), "--show-events"])

    assert code == 0
    [risk] = json.loads(out.read_text())["risks"]
    assert risk["facility_name"] == "Tank [/x] North"
    printed = recorder.export_text()
    assert "Tank [/x] North" in printed
    assert "org-[b]1" in printed
    assert "[red]ghost" in printed


class TestPeriodArguments:

    def test_malformed_date_is_rejected(self, snapshot_file):
        with pytest.raises(SystemExit):
            run_water_risk.main(["--snapshot", str(snapshot_file), "--period-start", "2024-1-1"])

    def test_reversed_window_is_rejected(self, snapshot_file):
        with pytest.raises(SystemExit):
            run_water_risk.main([
                "--snapshot", str(snapshot_file),
                "--period-start", "2024-12-31", "--period-end", "2024-01-01",
            ])

    def test_valid_window_filters_activity(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({
            "organization_id": "org-1",
            "facilities": [{"id": "F1", "name": "Valencia", "country_code": "ES"}],
            "operational_records": [
                {"facility_id": "F1", "intake": 10, "discharge": 0,
                 "reporting_period_start": "2024-02-01", "reporting_period_end": "2024-02-29"},
                {"facility_id": "F1", "intake": 99, "discharge": 0,
                 "reporting_period_start": "2023-02-01", "reporting_period_end": "2023-02-28"},
            ],
        }))
        out = tmp_path / "risk.json"

        code = run_water_risk.main([
            "--snapshot", str(path), "--json-out", str(out),
            "--period-start", "2024-01-01", "--period-end", "2024-12-31",
        ])

        assert code == 0
        [risk] = json.loads(out.read_text())["risks"]
        assert risk["operational_net"] == pytest.approx(10)
