"""
risk.py – Risk classification, per-facility result records, and the
organisation-level summary.

Classification follows the AWARE convention:
    factor >= 10  → high   (order of magnitude above world average)
    factor >= 1   → medium (at or above world average)
    otherwise     → low
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from waterrisk.aggregators import EmbeddedWaterTotals, OperationalWaterTotals
from waterrisk.constants import (
    GLOBAL_SCOPE,
    HIGH_RISK_THRESHOLD,
    MEDIUM_RISK_THRESHOLD,
    RISK_HIGH,
    RISK_LEVELS,
    RISK_LOW,
    RISK_MEDIUM,
    UNKNOWN_FACILITY_NAME,
)
from waterrisk.scarcity_factors import scarcity_weighted
from waterrisk.schemas import Facility


def classify_risk_level(scarcity_factor: float) -> str:
    """Map a scarcity factor to high / medium / low."""
    if scarcity_factor >= HIGH_RISK_THRESHOLD:
        return RISK_HIGH
    if scarcity_factor >= MEDIUM_RISK_THRESHOLD:
        return RISK_MEDIUM
    return RISK_LOW


def overall_risk_level(high_count: int, medium_count: int, low_count: int) -> str:
    """Worst case dominates: one high-risk facility makes the organisation high."""
    if high_count > 0:
        return RISK_HIGH
    if medium_count > 0:
        return RISK_MEDIUM
    return RISK_LOW


# ─────────────────────────────────────────────────────────────────────────────
# Result dataclasses
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FacilityWaterRisk:
    """Scarcity-weighted water profile of one facility (all volumes in m³)."""
    facility_id: str
    facility_name: str
    country_code: str
    scarcity_factor: float
    risk_level: str
    operational_intake: float
    operational_discharge: float
    operational_net: float
    operational_recycled: float
    embedded_water_raw: float
    operational_scarcity_weighted: float
    embedded_scarcity_weighted: float
    total_scarcity_weighted: float
    production_volume: float
    linked_products: list[str] = field(default_factory=list)
    has_operational_data: bool = False
    embedded_source: str | None = None
    latitude: float | None = None
    longitude: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class WaterRiskSummary:
    """Organisation-level roll-up of facility risk levels."""
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    total_facilities: int = 0
    overall_risk_level: str = RISK_LOW

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ─────────────────────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────────────────────

def build_facility_risk(
    facility: Facility,
    operational: OperationalWaterTotals,
    embedded: EmbeddedWaterTotals | None,
    embedded_origin_weighted: float,
    scarcity_factor: float,
) -> FacilityWaterRisk:
    """
    Join one facility's aggregates into a FacilityWaterRisk.

    Operational water is weighted by the facility's own factor.  Embedded
    water arrives already weighted by material origin and is not re-weighted.
    """
    operational_weighted = scarcity_weighted(operational.net, scarcity_factor)
    embedded_weighted = embedded_origin_weighted

    return FacilityWaterRisk(
        facility_id=facility.id,
        facility_name=facility.name or UNKNOWN_FACILITY_NAME,
        country_code=facility.country_code or GLOBAL_SCOPE,
        scarcity_factor=scarcity_factor,
        risk_level=classify_risk_level(scarcity_factor),
        operational_intake=operational.intake,
        operational_discharge=operational.discharge,
        operational_net=operational.net,
        operational_recycled=operational.recycled,
        embedded_water_raw=embedded.total_water if embedded else 0.0,
        operational_scarcity_weighted=operational_weighted,
        embedded_scarcity_weighted=embedded_weighted,
        total_scarcity_weighted=operational_weighted + embedded_weighted,
        production_volume=embedded.total_production if embedded else 0.0,
        linked_products=list(embedded.linked_products) if embedded else [],
        has_operational_data=operational.has_data,
        embedded_source=embedded.source if embedded else None,
        latitude=facility.latitude,
        longitude=facility.longitude,
    )


def summarize_water_risks(risks: Iterable[FacilityWaterRisk]) -> WaterRiskSummary:
    """Count facilities by risk level and derive the overall level."""
    counts = {level: 0 for level in RISK_LEVELS}
    total = 0
    for risk in risks:
        counts[risk.risk_level] += 1
        total += 1
    return WaterRiskSummary(
        high_count=counts[RISK_HIGH],
        medium_count=counts[RISK_MEDIUM],
        low_count=counts[RISK_LOW],
        total_facilities=total,
        overall_risk_level=overall_risk_level(
            counts[RISK_HIGH], counts[RISK_MEDIUM], counts[RISK_LOW]
        ),
    )


summarize = summarize_water_risks
