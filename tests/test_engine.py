"""
End-to-end tests for waterrisk/engine.py

Every scenario runs the real pipeline (concurrent fetch → validation →
aggregation → classification) against an in-memory SnapshotWaterDataSource,
so no database is involved.
"""
import asyncio
import time
from unittest.mock import patch

import pytest

from waterrisk.constants import (
    DUPLICATE_EMBEDDED_SOURCE,
    MALFORMED_RECORD,
    MISSING_FACILITY_LOCATION,
    ORPHAN_OPERATIONAL_RECORD,
    UNATTRIBUTED_MATERIAL,
    UNKNOWN_SCARCITY_FACTOR,
)
from waterrisk.engine import (
    assess_snapshot,
    compute_facility_water_risks,
    load_snapshot,
    run_assessment,
)
from waterrisk.events import EventLog
from waterrisk.scarcity_factors import ScarcityFactorRepository
from waterrisk.sources import SnapshotWaterDataSource, WaterDataFetchError

ORG = "org-1"


def snapshot_source(**datasets):
    datasets.setdefault("scarcity_factors", {"XX": 54.8, "YY": 8.2, "GB": 0.42, "ES": 12.5})
    return SnapshotWaterDataSource(organization_id=ORG, **datasets)


def run(source, **kwargs):
    return asyncio.run(run_assessment(ORG, source, **kwargs))


def by_id(risks):
    return {r.facility_id: r for r in risks}


# ─────────────────────────────────────────────────────────────────────────────
# Core scenarios
# ─────────────────────────────────────────────────────────────────────────────

class TestScenarios:

    def test_high_scarcity_operational_only(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "name": "Desert Plant", "country_code": "XX"}],
            operational_records=[
                {"facility_id": "F1", "intake": 120, "discharge": 50},
                {"facility_id": "F1", "intake": 30, "discharge": 0},
            ],
        )
        result = run(source)
        [risk] = result.risks

        assert risk.operational_net == pytest.approx(100)
        assert risk.operational_scarcity_weighted == pytest.approx(5480)
        assert risk.total_scarcity_weighted == pytest.approx(5480)
        assert risk.risk_level == "high"
        assert result.summary.overall_risk_level == "high"
        assert result.summary.high_count == 1

    def test_medium_scarcity(self):
        source = snapshot_source(
            facilities=[{"id": "F2", "name": "River Mill", "country_code": "YY"}],
            operational_records=[{"facility_id": "F2", "intake": 50, "discharge": 0}],
        )
        [risk] = run(source).risks
        assert risk.operational_scarcity_weighted == pytest.approx(410)
        assert risk.embedded_scarcity_weighted == 0
        assert risk.total_scarcity_weighted == pytest.approx(410)
        assert risk.risk_level == "medium"
        assert risk.has_operational_data is True

    def test_owned_source_wins_over_contract_manufacturer(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "name": "Valencia", "country_code": "ES"}],
            owned_allocations=[
                {"facility_id": "F1", "product_id": "P1", "water_volume": 200, "production_volume": 1000},
            ],
            contract_allocations=[
                {"facility_id": "F1", "product_id": "P1", "water_volume": 500, "production_volume": 2000},
            ],
        )
        result = run(source)
        [risk] = result.risks

        assert risk.embedded_water_raw == pytest.approx(200)
        assert risk.production_volume == pytest.approx(1000)
        assert risk.embedded_source == "owned"
        [duplicate] = [e for e in result.events if e.code == DUPLICATE_EMBEDDED_SOURCE]
        assert duplicate.facility_id == "F1"
        assert duplicate.detail["discarded_water_volume"] == pytest.approx(500)

    def test_null_origin_material_split_across_producers(self):
        source = snapshot_source(
            facilities=[
                {"id": "F1", "name": "A", "country_code": "GB"},
                {"id": "F2", "name": "B", "country_code": "GB"},
                {"id": "F3", "name": "C", "country_code": "GB"},
            ],
            owned_allocations=[
                {"facility_id": fid, "product_id": "P1", "water_volume": 1, "production_volume": 1}
                for fid in ("F1", "F2", "F3")
            ],
            material_impacts=[
                {"material_id": "M1", "product_id": "P1", "water_volume": 30, "origin_country_code": None},
            ],
        )
        risks = by_id(run(source).risks)
        for fid in ("F1", "F2", "F3"):
            assert risks[fid].embedded_scarcity_weighted == pytest.approx(10.0)

    def test_no_facilities(self):
        result = run(snapshot_source())
        assert result.risks == []
        assert result.summary.total_facilities == 0
        assert result.summary.overall_risk_level == "low"


# ─────────────────────────────────────────────────────────────────────────────
# Edge cases
# ─────────────────────────────────────────────────────────────────────────────

class TestEdgeCases:

    def test_facility_without_any_data_still_reported(self):
        source = snapshot_source(facilities=[{"id": "F1", "name": "Idle", "country_code": "GB"}])
        [risk] = run(source).risks
        assert risk.has_operational_data is False
        assert risk.total_scarcity_weighted == 0
        assert risk.risk_level == "low"

    def test_missing_location_uses_global_default(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "name": "Nowhere", "country_code": None}],
            operational_records=[{"facility_id": "F1", "intake": 10}],
        )
        result = run(source)
        [risk] = result.risks
        assert risk.country_code == "GLOBAL"
        assert risk.scarcity_factor == 1.0
        assert risk.risk_level == "medium"
        assert risk.operational_scarcity_weighted == pytest.approx(10)
        assert MISSING_FACILITY_LOCATION in [e.code for e in result.events]

    def test_unknown_country_uses_default(self):
        source = snapshot_source(facilities=[{"id": "F1", "country_code": "QQ"}])
        result = run(source)
        assert result.risks[0].scarcity_factor == 1.0
        assert result.risks[0].country_code == "QQ"
        assert UNKNOWN_SCARCITY_FACTOR in [e.code for e in result.events]

    def test_facility_factors_come_from_one_batch_lookup(self):
        source = snapshot_source(
            facilities=[
                {"id": "F1", "country_code": "es"},
                {"id": "F2", "country_code": "ES"},
                {"id": "F3", "country_code": "QQ"},
            ],
        )
        with patch.object(
            ScarcityFactorRepository, "factors_for_many",
            autospec=True, side_effect=ScarcityFactorRepository.factors_for_many,
        ) as batch:
            result = run(source)
        batch.assert_called_once()
        risks = by_id(result.risks)
        assert risks["F1"].scarcity_factor == pytest.approx(12.5)
        assert risks["F2"].scarcity_factor == pytest.approx(12.5)
        assert risks["F3"].scarcity_factor == 1.0

    def test_orphan_operational_record(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "country_code": "GB"}],
            operational_records=[{"facility_id": "GHOST", "intake": 99}],
        )
        result = run(source)
        assert [r.facility_id for r in result.risks] == ["F1"]
        [orphan] = [e for e in result.events if e.code == ORPHAN_OPERATIONAL_RECORD]
        assert orphan.facility_id == "GHOST"

    def test_unattributed_material_is_reported(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "country_code": "GB"}],
            material_impacts=[{"material_id": "M1", "product_id": "NOPE", "water_volume": 5}],
        )
        result = run(source)
        assert result.risks[0].embedded_scarcity_weighted == 0
        assert UNATTRIBUTED_MATERIAL in [e.code for e in result.events]

    def test_duplicate_facility_and_bad_rows(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "country_code": "GB"}, {"id": "F1", "country_code": "ES"}],
            operational_records=[{"facility_id": "F1", "intake": -3}],
        )
        result = run(source)
        assert len(result.risks) == 1
        assert result.risks[0].country_code == "GB"
        assert result.risks[0].has_operational_data is False
        assert [e.code for e in result.events].count(MALFORMED_RECORD) == 2

    def test_period_filter_reaches_source(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "country_code": "GB"}],
            operational_records=[
                {"facility_id": "F1", "intake": 100, "reporting_period_start": "2023-01-01",
                 "reporting_period_end": "2023-01-31"},
                {"facility_id": "F1", "intake": 10, "reporting_period_start": "2024-01-01",
                 "reporting_period_end": "2024-01-31"},
            ],
        )
        [risk] = run(source, period_start="2024-01-01", period_end="2024-12-31").risks
        assert risk.operational_intake == pytest.approx(10)


# ─────────────────────────────────────────────────────────────────────────────
# Invariants
# ─────────────────────────────────────────────────────────────────────────────

class TestInvariants:

    source = snapshot_source(
        facilities=[
            {"id": "F1", "name": "A", "country_code": "ES"},
            {"id": "F2", "name": "B", "country_code": "GB"},
            {"id": "F3", "name": "C", "country_code": "XX"},
        ],
        operational_records=[
            {"facility_id": "F1", "intake": 40, "discharge": 12},
            {"facility_id": "F3", "intake": 5, "discharge": 9},
        ],
        owned_allocations=[
            {"facility_id": "F1", "product_id": "P1", "water_volume": 8, "production_volume": 10},
            {"facility_id": "F2", "product_id": "P1", "water_volume": 4, "production_volume": 5},
        ],
        contract_allocations=[
            {"facility_id": "F3", "product_id": "P2", "water_volume": 2, "production_volume": 1},
        ],
        material_impacts=[
            {"material_id": "M1", "product_id": "P1", "water_volume": 7, "origin_country_code": "YY"},
            {"material_id": "M2", "product_id": "P1", "water_volume": 3, "origin_country_code": "ES"},
        ],
    )

    def test_idempotent(self):
        events_a, events_b = EventLog(), EventLog()
        snapshot = asyncio.run(load_snapshot(self.source, ORG, EventLog()))
        assert assess_snapshot(snapshot, events_a) == assess_snapshot(snapshot, events_b)
        assert events_a.codes() == events_b.codes()

    def test_total_is_operational_plus_embedded(self):
        risks = asyncio.run(compute_facility_water_risks(ORG, self.source))
        for risk in risks:
            assert risk.total_scarcity_weighted == pytest.approx(
                risk.operational_scarcity_weighted + risk.embedded_scarcity_weighted
            )

    def test_material_weight_is_conserved(self):
        risks = asyncio.run(compute_facility_water_risks(ORG, self.source))
        embedded = sum(r.embedded_scarcity_weighted for r in risks)
        assert embedded == pytest.approx(7 * 8.2 + 3 * 12.5)

    def test_summary_counts_match_risks(self):
        result = run(self.source)
        s = result.summary
        assert s.total_facilities == len(result.risks) == 3
        assert s.high_count + s.medium_count + s.low_count == s.total_facilities
        assert (s.high_count, s.medium_count, s.low_count) == (2, 0, 1)

    def test_negative_net_is_kept(self):
        risk = by_id(run(self.source).risks)["F3"]
        assert risk.operational_net == pytest.approx(-4)
        assert risk.operational_scarcity_weighted == pytest.approx(-4 * 54.8)


# ─────────────────────────────────────────────────────────────────────────────
# Failure handling
# ─────────────────────────────────────────────────────────────────────────────

class FailingSource(SnapshotWaterDataSource):
    def material_impacts(self, organization_id):
        raise WaterDataFetchError("material_water_impacts", "connection reset")


class SlowSource(SnapshotWaterDataSource):
    def facilities(self, organization_id):
        time.sleep(0.3)
        return super().facilities(organization_id)


class TestFailures:

    def test_fetch_error_aborts_run(self):
        with pytest.raises(WaterDataFetchError) as excinfo:
            run(FailingSource(organization_id=ORG))
        assert excinfo.value.dataset == "material_water_impacts"

    def test_timeout_becomes_fetch_error(self):
        with pytest.raises(WaterDataFetchError, match="timed out"):
            run(SlowSource(organization_id=ORG), timeout=0.01)

    def test_assessment_serialises(self):
        source = snapshot_source(
            facilities=[{"id": "F1", "country_code": None}],
        )
        data = run(source).to_dict()
        assert data["organization_id"] == ORG
        assert data["risks"][0]["country_code"] == "GLOBAL"
        assert data["summary"]["total_facilities"] == 1
        assert data["events"][0]["code"] == MISSING_FACILITY_LOCATION
