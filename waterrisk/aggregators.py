"""
aggregators.py – Per-facility water aggregation.

Three independent reducers, each a pure fold from typed input records to a
``{facility_id: total}`` map.  None of them touches the database; the
orchestrator (engine.py) feeds them a validated snapshot.

Aggregation formula references
──────────────────────────────
 Stream                 Weighting geography     Formula
 ─────────────────────────────────────────────────────────────────────────
 Operational water      facility country        Σ intake − Σ discharge
 Embedded water (raw)   n/a                     Σ water_volume, one source only
 Material water         material ORIGIN country Σ volume × origin_factor
                                                ÷ n production facilities

Usage
──────
    ops = aggregate_operational_water(records)
    embedded = aggregate_embedded_water(owned, contracted, events)
    product_map = map_products_to_facilities(owned)
    origin = aggregate_origin_weighted_water(materials, product_map, repo, events)
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from waterrisk.constants import (
    DUPLICATE_EMBEDDED_SOURCE,
    SOURCE_CONTRACT_MANUFACTURER,
    SOURCE_OWNED,
    UNATTRIBUTED_MATERIAL,
    UNKNOWN_PRODUCT_NAME,
    UNKNOWN_SCARCITY_FACTOR,
    ZERO_PRODUCTION_VOLUME,
)
from waterrisk.events import EventLog
from waterrisk.scarcity_factors import ScarcityFactorRepository, scarcity_weighted
from waterrisk.schemas import EmbeddedAllocation, MaterialWaterImpact, OperationalWaterRecord

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Result dataclasses (lightweight, no DB dependency)
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class OperationalWaterTotals:
    """Summed direct metering for one facility (m³)."""
    intake: float = 0.0
    discharge: float = 0.0
    recycled: float = 0.0
    record_count: int = 0

    @property
    def net(self) -> float:
        # Recycled water is a circularity metric, not a consumption offset.
        return self.intake - self.discharge

    @property
    def has_data(self) -> bool:
        return self.record_count > 0


NO_OPERATIONAL_DATA = OperationalWaterTotals()


@dataclass(frozen=True)
class EmbeddedWaterTotals:
    """Embedded water for one facility, taken from exactly one source."""
    source: str
    total_water: float = 0.0
    total_production: float = 0.0
    linked_products: tuple[str, ...] = field(default_factory=tuple)


# ─────────────────────────────────────────────────────────────────────────────
# 1. Operational water
# Formula: net = Σ intake − Σ discharge   (recycled tracked, not subtracted)
# ─────────────────────────────────────────────────────────────────────────────

def aggregate_operational_water(
    records: Iterable[OperationalWaterRecord],
) -> dict[str, OperationalWaterTotals]:
    """
    Sum intake, discharge and recycled volumes per facility.

    Records are summed, never averaged.  Facilities with no records are
    absent from the returned map; the caller substitutes NO_OPERATIONAL_DATA
    so they still surface with ``has_operational_data = False``.
    """
    totals: dict[str, OperationalWaterTotals] = {}
    for record in records:
        current = totals.get(record.facility_id, NO_OPERATIONAL_DATA)
        totals[record.facility_id] = OperationalWaterTotals(
            intake=current.intake + record.intake,
            discharge=current.discharge + record.discharge,
            recycled=current.recycled + record.recycled,
            record_count=current.record_count + 1,
        )
    return totals


# ─────────────────────────────────────────────────────────────────────────────
# 2. Embedded water – owned production sites vs contract manufacturers
# Policy: owned data wins; a CM allocation for an owned facility is dropped.
# ─────────────────────────────────────────────────────────────────────────────

def _accumulate_allocation(
    current: EmbeddedWaterTotals | None,
    allocation: EmbeddedAllocation,
    source: str,
) -> EmbeddedWaterTotals:
    if current is None:
        current = EmbeddedWaterTotals(source=source)
    product = allocation.product_name or allocation.product_id or UNKNOWN_PRODUCT_NAME
    products = current.linked_products
    if product not in products:
        products = products + (product,)
    return EmbeddedWaterTotals(
        source=source,
        total_water=current.total_water + allocation.water_volume,
        total_production=current.total_production + allocation.production_volume,
        linked_products=products,
    )


def aggregate_embedded_water(
    owned: Iterable[EmbeddedAllocation],
    contracted: Iterable[EmbeddedAllocation],
    events: EventLog,
) -> dict[str, EmbeddedWaterTotals]:
    """
    Merge owned production-site and contract-manufacturer allocations.

    Owned allocations are processed first.  Any contract-manufacturer
    allocation whose facility already has owned data is skipped entirely
    and reported as DUPLICATE_EMBEDDED_SOURCE, so no facility ever carries
    the sum of both sources.  Allocations with no production volume are
    dropped with a ZERO_PRODUCTION_VOLUME warning and count for neither
    source.
    """
    totals: dict[str, EmbeddedWaterTotals] = {}
    owned_ids: set[str] = set()

    for allocation in owned:
        if not _has_production_volume(allocation, events):
            continue
        owned_ids.add(allocation.facility_id)
        totals[allocation.facility_id] = _accumulate_allocation(
            totals.get(allocation.facility_id), allocation, SOURCE_OWNED
        )

    duplicates = 0
    for allocation in contracted:
        if allocation.facility_id in owned_ids:
            duplicates += 1
            events.warning(
                DUPLICATE_EMBEDDED_SOURCE,
                facility_id=allocation.facility_id,
                reason="duplicate_source",
                product_id=allocation.product_id,
                discarded_water_volume=allocation.water_volume,
            )
            continue
        if not _has_production_volume(allocation, events):
            continue
        totals[allocation.facility_id] = _accumulate_allocation(
            totals.get(allocation.facility_id), allocation, SOURCE_CONTRACT_MANUFACTURER
        )

    if duplicates:
        logger.info(
            "Skipped %d contract-manufacturer allocation(s) for facilities with owned data",
            duplicates,
        )
    return totals


def _has_production_volume(allocation: EmbeddedAllocation, events: EventLog) -> bool:
    # Zero-volume allocations are unattributable: warn and drop them.
    if allocation.production_volume <= 0:
        events.warning(
            ZERO_PRODUCTION_VOLUME,
            facility_id=allocation.facility_id,
            product_id=allocation.product_id,
            source=allocation.source,
            discarded_water_volume=allocation.water_volume,
        )
        return False
    return True


# ─────────────────────────────────────────────────────────────────────────────
# 3. Origin-weighted material water
# Formula: per material, volume × factor(origin) ÷ n facilities making the product
# ─────────────────────────────────────────────────────────────────────────────

def map_products_to_facilities(
    allocations: Iterable[EmbeddedAllocation],
) -> dict[str, list[str]]:
    """
    Map each product to the facilities that produce it, in first-seen order.

    Built from owned production-site allocations: those are the only records
    that state where a product is physically made.
    """
    mapping: dict[str, list[str]] = {}
    for allocation in allocations:
        facilities = mapping.setdefault(allocation.product_id, [])
        if allocation.facility_id not in facilities:
            facilities.append(allocation.facility_id)
    return mapping


def aggregate_origin_weighted_water(
    materials: Iterable[MaterialWaterImpact],
    product_to_facilities: Mapping[str, list[str]],
    scarcity_factors: ScarcityFactorRepository,
    events: EventLog,
) -> dict[str, float]:
    """
    Weight each material's water by its ORIGIN country factor and split it
    evenly across the facilities that produce the material's product.

    The facility's own country is never used here.  Materials whose product
    has no known production facility are dropped (UNATTRIBUTED_MATERIAL);
    the weighted total is otherwise conserved across the split.
    """
    totals: dict[str, float] = {}
    for material in materials:
        if material.water_volume <= 0:
            continue

        origin = material.origin_country_code
        if origin is not None and origin not in scarcity_factors:
            events.info(
                UNKNOWN_SCARCITY_FACTOR,
                material_id=material.material_id,
                country_code=origin,
            )
        origin_factor = scarcity_factors.value_or_default(origin)
        weighted = scarcity_weighted(material.water_volume, origin_factor)

        facilities = product_to_facilities.get(material.product_id) or []
        if not facilities:
            events.warning(
                UNATTRIBUTED_MATERIAL,
                material_id=material.material_id,
                product_id=material.product_id,
                weighted_water=weighted,
            )
            continue

        share = weighted / len(facilities)
        for facility_id in facilities:
            totals[facility_id] = totals.get(facility_id, 0.0) + share
        logger.debug(
            "Material %s | %.4f m³ × %.4f (%s) = %.4f → %d facilit(y/ies)",
            material.material_id, material.water_volume, origin_factor,
            origin or "default", weighted, len(facilities),
        )
    return totals
