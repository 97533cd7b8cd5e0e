"""
waterrisk – Facility water-scarcity risk engine.

Aggregates operational, embedded and origin-weighted material water per
facility, weights each stream by the AWARE factor of the right geography,
and rolls the results into an organisation-level risk summary.
"""
from waterrisk.engine import (
    WaterRiskAssessment,
    compute_facility_water_risks,
    run_assessment,
)
from waterrisk.events import EventLog, WaterRiskEvent
from waterrisk.risk import (
    FacilityWaterRisk,
    WaterRiskSummary,
    classify_risk_level,
    summarize,
)
from waterrisk.sources import (
    PostgresWaterDataSource,
    SnapshotWaterDataSource,
    WaterDataFetchError,
)

__version__ = "1.0.0"

__all__ = [
    "EventLog",
    "FacilityWaterRisk",
    "PostgresWaterDataSource",
    "SnapshotWaterDataSource",
    "WaterDataFetchError",
    "WaterRiskAssessment",
    "WaterRiskEvent",
    "WaterRiskSummary",
    "classify_risk_level",
    "compute_facility_water_risks",
    "run_assessment",
    "summarize",
]
