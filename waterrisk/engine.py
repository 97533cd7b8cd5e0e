"""
engine.py – Facility water-risk orchestrator.

Two phases:

1. ``load_snapshot`` – read the five organisation datasets concurrently
   (``asyncio.gather`` over ``asyncio.to_thread``), validate the rows into
   typed records, then load scarcity factors for every facility country and
   material-origin country in one batched read.  Any failed read aborts the
   run with WaterDataFetchError.
2. ``assess_snapshot`` – a pure, synchronous fold over the snapshot.  Running
   it twice on the same snapshot yields identical output.

Usage
──────
    from waterrisk.engine import run_assessment
    from waterrisk.sources import PostgresWaterDataSource

    assessment = asyncio.run(run_assessment("org-uuid", PostgresWaterDataSource()))
    assessment.summary.overall_risk_level
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from waterrisk.aggregators import (
    NO_OPERATIONAL_DATA,
    aggregate_embedded_water,
    aggregate_operational_water,
    aggregate_origin_weighted_water,
    map_products_to_facilities,
)
from waterrisk.constants import (
    DATASET_CONTRACT_ALLOCATIONS,
    DATASET_FACILITIES,
    DATASET_MATERIALS,
    DATASET_OPERATIONAL,
    DATASET_OWNED_ALLOCATIONS,
    DATASET_SCARCITY_FACTORS,
    DEFAULT_SCARCITY_FACTOR,
    MALFORMED_RECORD,
    MISSING_FACILITY_LOCATION,
    ORPHAN_OPERATIONAL_RECORD,
    SOURCE_CONTRACT_MANUFACTURER,
    SOURCE_OWNED,
    UNKNOWN_SCARCITY_FACTOR,
)
from waterrisk.events import EventLog, WaterRiskEvent
from waterrisk.risk import (
    FacilityWaterRisk,
    WaterRiskSummary,
    build_facility_risk,
    summarize_water_risks,
)
from waterrisk.scarcity_factors import ScarcityFactorRepository
from waterrisk.schemas import (
    EmbeddedAllocation,
    Facility,
    MaterialWaterImpact,
    OperationalWaterRecord,
    ScarcityFactor,
    parse_records,
)
from waterrisk.sources import WaterDataFetchError, WaterDataSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WaterRiskSnapshot:
    """Validated, immutable inputs for one organisation."""
    organization_id: str
    facilities: tuple[Facility, ...] = ()
    operational_records: tuple[OperationalWaterRecord, ...] = ()
    owned_allocations: tuple[EmbeddedAllocation, ...] = ()
    contract_allocations: tuple[EmbeddedAllocation, ...] = ()
    material_impacts: tuple[MaterialWaterImpact, ...] = ()
    scarcity_factors: ScarcityFactorRepository = field(default_factory=ScarcityFactorRepository)


@dataclass
class WaterRiskAssessment:
    """Facility risks, the organisation summary, and the run's events."""
    organization_id: str
    risks: list[FacilityWaterRisk]
    summary: WaterRiskSummary
    events: list[WaterRiskEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "organization_id": self.organization_id,
            "risks": [r.to_dict() for r in self.risks],
            "summary": self.summary.to_dict(),
            "events": [e.to_dict() for e in self.events],
        }


# ─────────────────────────────────────────────────────────────────────────────
# Phase 1 – concurrent fetch
# ─────────────────────────────────────────────────────────────────────────────

async def _fetch_datasets(
    source: WaterDataSource,
    organization_id: str,
    period_start: str | None,
    period_end: str | None,
) -> list[list[dict[str, Any]]]:
    return await asyncio.gather(
        asyncio.to_thread(source.facilities, organization_id),
        asyncio.to_thread(
            source.operational_records, organization_id,
            period_start=period_start, period_end=period_end,
        ),
        asyncio.to_thread(source.owned_allocations, organization_id),
        asyncio.to_thread(
            source.contract_allocations, organization_id,
            period_start=period_start, period_end=period_end,
        ),
        asyncio.to_thread(source.material_impacts, organization_id),
    )


async def load_snapshot(
    source: WaterDataSource,
    organization_id: str,
    events: EventLog,
    *,
    period_start: str | None = None,
    period_end: str | None = None,
    timeout: float | None = None,
) -> WaterRiskSnapshot:
    """
    Read and validate one organisation's snapshot.

    Raises
    ──────
    WaterDataFetchError if any dataset read fails or the reads exceed ``timeout``.
    """
    fetch = _fetch_datasets(source, organization_id, period_start, period_end)
    try:
        if timeout is not None:
            results = await asyncio.wait_for(fetch, timeout)
        else:
            results = await fetch
    except asyncio.TimeoutError as exc:
        raise WaterDataFetchError("snapshot", f"timed out after {timeout}s") from exc
    facility_rows, operational_rows, owned_rows, contracted_rows, material_rows = results

    facilities = parse_records(Facility, facility_rows, events, dataset=DATASET_FACILITIES)
    operational = parse_records(
        OperationalWaterRecord, operational_rows, events, dataset=DATASET_OPERATIONAL
    )
    owned = parse_records(
        EmbeddedAllocation, owned_rows, events,
        dataset=DATASET_OWNED_ALLOCATIONS, overrides={"source": SOURCE_OWNED},
    )
    contracted = parse_records(
        EmbeddedAllocation, contracted_rows, events,
        dataset=DATASET_CONTRACT_ALLOCATIONS, overrides={"source": SOURCE_CONTRACT_MANUFACTURER},
    )
    materials = parse_records(MaterialWaterImpact, material_rows, events, dataset=DATASET_MATERIALS)

    country_codes = sorted(
        {f.country_code for f in facilities if f.country_code}
        | {m.origin_country_code for m in materials if m.origin_country_code}
    )
    factor_rows = await asyncio.to_thread(source.scarcity_factors, country_codes) if country_codes else []
    factors = parse_records(ScarcityFactor, factor_rows, events, dataset=DATASET_SCARCITY_FACTORS)

    logger.info(
        "Loaded snapshot for %s | facilities=%d operational=%d owned=%d contracted=%d "
        "materials=%d factors=%d",
        organization_id, len(facilities), len(operational), len(owned),
        len(contracted), len(materials), len(factors),
    )
    return WaterRiskSnapshot(
        organization_id=organization_id,
        facilities=tuple(facilities),
        operational_records=tuple(operational),
        owned_allocations=tuple(owned),
        contract_allocations=tuple(contracted),
        material_impacts=tuple(materials),
        scarcity_factors=ScarcityFactorRepository(factors),
    )


# ─────────────────────────────────────────────────────────────────────────────
# Phase 2 – pure aggregation
# ─────────────────────────────────────────────────────────────────────────────

def assess_snapshot(snapshot: WaterRiskSnapshot, events: EventLog) -> list[FacilityWaterRisk]:
    """Join the three aggregations into one FacilityWaterRisk per facility."""
    repo = snapshot.scarcity_factors

    operational = aggregate_operational_water(snapshot.operational_records)
    embedded = aggregate_embedded_water(
        snapshot.owned_allocations, snapshot.contract_allocations, events
    )
    product_map = map_products_to_facilities(snapshot.owned_allocations)
    origin_weighted = aggregate_origin_weighted_water(
        snapshot.material_impacts, product_map, repo, events
    )

    facility_factors = repo.factors_for_many(f.country_code for f in snapshot.facilities)

    known_ids = {f.id for f in snapshot.facilities}
    for facility_id in sorted(set(operational) - known_ids):
        events.warning(
            ORPHAN_OPERATIONAL_RECORD,
            facility_id=facility_id,
            record_count=operational[facility_id].record_count,
        )

    risks: list[FacilityWaterRisk] = []
    seen: set[str] = set()
    for facility in snapshot.facilities:
        if facility.id in seen:
            events.warning(
                MALFORMED_RECORD,
                facility_id=facility.id,
                dataset=DATASET_FACILITIES,
                errors=["duplicate facility id"],
            )
            continue
        seen.add(facility.id)

        known = facility_factors.get(facility.country_code) if facility.country_code else None
        if facility.country_code is None:
            events.info(MISSING_FACILITY_LOCATION, facility_id=facility.id)
        elif known is None:
            events.info(
                UNKNOWN_SCARCITY_FACTOR,
                facility_id=facility.id,
                country_code=facility.country_code,
            )
        factor = known.scarcity_factor if known is not None else DEFAULT_SCARCITY_FACTOR

        risk = build_facility_risk(
            facility,
            operational.get(facility.id, NO_OPERATIONAL_DATA),
            embedded.get(facility.id),
            origin_weighted.get(facility.id, 0.0),
            factor,
        )
        logger.debug(
            "Facility %s | net %.4f × %.4f + embedded %.4f = %.4f (%s)",
            facility.id, risk.operational_net, factor,
            risk.embedded_scarcity_weighted, risk.total_scarcity_weighted, risk.risk_level,
        )
        risks.append(risk)
    return risks


# ─────────────────────────────────────────────────────────────────────────────
# Public entry points
# ─────────────────────────────────────────────────────────────────────────────

async def compute_facility_water_risks(
    organization_id: str,
    source: WaterDataSource,
    *,
    events: EventLog | None = None,
    period_start: str | None = None,
    period_end: str | None = None,
    timeout: float | None = None,
) -> list[FacilityWaterRisk]:
    """
    Compute one FacilityWaterRisk per registered facility of the organisation.

    Facilities with no data still appear (``has_operational_data = False``).
    Pass an EventLog to receive duplicate-source and attribution warnings.
    """
    events = events if events is not None else EventLog()
    snapshot = await load_snapshot(
        source, organization_id, events,
        period_start=period_start, period_end=period_end, timeout=timeout,
    )
    return assess_snapshot(snapshot, events)


async def run_assessment(
    organization_id: str,
    source: WaterDataSource,
    *,
    period_start: str | None = None,
    period_end: str | None = None,
    timeout: float | None = None,
) -> WaterRiskAssessment:
    """Compute facility risks and the organisation summary in one call."""
    events = EventLog()
    risks = await compute_facility_water_risks(
        organization_id, source, events=events,
        period_start=period_start, period_end=period_end, timeout=timeout,
    )
    summary = summarize_water_risks(risks)
    logger.info(
        "Water risk assessment complete | org=%s facilities=%d high=%d medium=%d low=%d "
        "overall=%s events=%d",
        organization_id, summary.total_facilities, summary.high_count,
        summary.medium_count, summary.low_count, summary.overall_risk_level, len(events),
    )
    return WaterRiskAssessment(
        organization_id=organization_id,
        risks=risks,
        summary=summary,
        events=events.events,
    )
