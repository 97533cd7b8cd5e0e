"""
queries.py – Read-only dataset queries for one organisation.

Each ``fetch_*`` function runs one SELECT over an open psycopg2 connection
and returns plain dict rows shaped like the matching schemas.py model.
Source-specific unit handling happens here, at the adapter boundary:

 Dataset                          Derivation
 ─────────────────────────────────────────────────────────────────────────
 Owned production sites           water = water_per_unit × volume × share
                                  production = volume × share
                                  share = share_of_production_percent / 100
                                  (NULL share → 100 %)
 Contract-manufacturer allocations water (m³) = allocated_water_litres / 1000

None of these queries depends on another's result, so the data source can
run them concurrently.  All rows are ordered by primary key so repeated runs
fold values in the same order.
"""
from __future__ import annotations

from typing import Any, Iterable

from waterrisk.constants import LITRES_PER_M3, SOURCE_CONTRACT_MANUFACTURER, SOURCE_OWNED
from waterrisk.db import query

# ─── SQL ──────────────────────────────────────────────────────────────────

FACILITIES_SQL = """
    SELECT id,
           name,
           location_country_code AS country_code,
           address_lat           AS latitude,
           address_lng           AS longitude
    FROM facilities
    WHERE organization_id = %s
    ORDER BY name, id
"""

OPERATIONAL_SQL = """
    SELECT facility_id,
           water_intake    AS intake,
           water_discharge AS discharge,
           water_recycled  AS recycled
    FROM facility_activity_entries
    WHERE organization_id = %s
"""

OWNED_ALLOCATIONS_SQL = """
    SELECT ps.facility_id,
           pcf.product_id,
           p.name AS product_name,
           COALESCE((pcf.aggregated_impacts ->> 'water_consumption')::numeric, 0) AS water_per_unit,
           ps.production_volume,
           ps.share_of_production_percent
    FROM product_carbon_footprint_production_sites ps
    JOIN product_carbon_footprints pcf ON pcf.id = ps.product_carbon_footprint_id
    LEFT JOIN products p ON p.id = pcf.product_id
    WHERE pcf.organization_id = %s
      AND pcf.status = 'completed'
      AND ps.facility_id IS NOT NULL
    ORDER BY ps.id
"""

CONTRACT_ALLOCATIONS_SQL = """
    SELECT cma.facility_id,
           cma.product_id,
           p.name AS product_name,
           cma.allocated_water_litres,
           cma.client_production_volume
    FROM contract_manufacturer_allocations cma
    LEFT JOIN products p ON p.id = cma.product_id
    WHERE cma.organization_id = %s
      AND cma.facility_id IS NOT NULL
"""

MATERIALS_SQL = """
    SELECT m.id AS material_id,
           pcf.product_id,
           m.origin_country_code,
           m.impact_water AS water_volume
    FROM product_carbon_footprint_materials m
    JOIN product_carbon_footprints pcf ON pcf.id = m.product_carbon_footprint_id
    WHERE pcf.organization_id = %s
      AND pcf.status = 'completed'
      AND m.impact_water IS NOT NULL
    ORDER BY m.id
"""

# Latest published year wins when a country has several rows.
SCARCITY_FACTORS_SQL = """
    SELECT DISTINCT ON (country_code)
           country_code,
           aware_factor AS scarcity_factor,
           country_name,
           region,
           baseline_water_stress
    FROM aware_factors
    WHERE country_code = ANY(%s)
    ORDER BY country_code, year DESC NULLS LAST, created_at DESC
"""


# ─── helpers ──────────────────────────────────────────────────────────────

def _with_period(
    sql: str,
    params: list[Any],
    *,
    alias: str = "",
    period_start: str | None,
    period_end: str | None,
    order_by: str,
) -> str:
    """Append the optional reporting-period window and a stable ORDER BY."""
    prefix = f"{alias}." if alias else ""
    if period_start:
        sql += f" AND ({prefix}reporting_period_start >= %s OR {prefix}reporting_period_start IS NULL)"
        params.append(period_start)
    if period_end:
        sql += f" AND ({prefix}reporting_period_end <= %s OR {prefix}reporting_period_end IS NULL)"
        params.append(period_end)
    return sql + f" ORDER BY {order_by}"


def _number(value: Any, default: float = 0.0) -> float:
    if value is None:
        return default
    return float(value)


def owned_allocation_row(row: dict[str, Any]) -> dict[str, Any]:
    """Turn a production-site row into an EmbeddedAllocation-shaped dict."""
    share = _number(row.get("share_of_production_percent"), 100.0) / 100.0
    volume = _number(row.get("production_volume"))
    water_per_unit = _number(row.get("water_per_unit"))
    return {
        "facility_id": row.get("facility_id"),
        "product_id": row.get("product_id"),
        "product_name": row.get("product_name"),
        "water_volume": water_per_unit * volume * share,
        "production_volume": volume * share,
        "source": SOURCE_OWNED,
    }


def contract_allocation_row(row: dict[str, Any]) -> dict[str, Any]:
    """Turn a contract-manufacturer row into an EmbeddedAllocation-shaped dict."""
    litres = row.get("allocated_water_litres")
    return {
        "facility_id": row.get("facility_id"),
        "product_id": row.get("product_id"),
        "product_name": row.get("product_name"),
        "water_volume": None if litres is None else float(litres) / LITRES_PER_M3,
        "production_volume": row.get("client_production_volume"),
        "source": SOURCE_CONTRACT_MANUFACTURER,
    }


# ─── fetchers ─────────────────────────────────────────────────────────────

def fetch_facilities(conn, organization_id: str) -> list[dict[str, Any]]:
    return query(conn, FACILITIES_SQL, (organization_id,))


def fetch_operational_records(
    conn,
    organization_id: str,
    *,
    period_start: str | None = None,
    period_end: str | None = None,
) -> list[dict[str, Any]]:
    params: list[Any] = [organization_id]
    sql = _with_period(
        OPERATIONAL_SQL, params,
        period_start=period_start, period_end=period_end,
        order_by="id",
    )
    return query(conn, sql, params)


def fetch_owned_allocations(conn, organization_id: str) -> list[dict[str, Any]]:
    rows = query(conn, OWNED_ALLOCATIONS_SQL, (organization_id,))
    return [owned_allocation_row(r) for r in rows]


def fetch_contract_allocations(
    conn,
    organization_id: str,
    *,
    period_start: str | None = None,
    period_end: str | None = None,
) -> list[dict[str, Any]]:
    params: list[Any] = [organization_id]
    sql = _with_period(
        CONTRACT_ALLOCATIONS_SQL, params,
        alias="cma", period_start=period_start, period_end=period_end,
        order_by="cma.id",
    )
    return [contract_allocation_row(r) for r in query(conn, sql, params)]


def fetch_material_impacts(conn, organization_id: str) -> list[dict[str, Any]]:
    return query(conn, MATERIALS_SQL, (organization_id,))


def fetch_scarcity_factors(conn, country_codes: Iterable[str | None]) -> list[dict[str, Any]]:
    """One batched lookup for every requested country (no N+1)."""
    codes = sorted({c.strip().upper() for c in country_codes if c and c.strip()})
    if not codes:
        return []
    return query(conn, SCARCITY_FACTORS_SQL, (codes,))
