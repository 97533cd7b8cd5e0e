"""
Seed a synthetic organisation for the water-risk engine.

Inserts one demo organisation with:
- five facilities (ES, IN, GB, SA and one with no country on file)
- 12 months (2024-01 through 2024-12) of facility_activity_entries per metered site
- products + completed footprints with owned production sites and materials
- contract-manufacturer allocations, one of which overlaps an owned site
  (exercises the duplicate-source rule)
- a material whose product has no production site (unattributed)

Prints the organisation id to pass to run_water_risk.py.
Additive: each run creates a fresh organisation. Run after schema is applied
(python run_water_risk.py --init-schema).
"""
from __future__ import annotations

import json
import os
from datetime import date, timedelta
from pathlib import Path

import psycopg2
from dotenv import load_dotenv

_repo_root = Path(__file__).resolve().parent
load_dotenv(_repo_root / ".env")

DATABASE_URL = os.environ.get("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL not set. Add it to .env at repo root.")

ORGANIZATION_NAME = "Synthetic Beverages Ltd"

# name, country, lat, lng, monthly intake m³, discharge fraction, recycled fraction
FACILITIES = [
    ("Valencia Bottling", "ES", 39.4699, -0.3763, 820.0, 0.55, 0.10),
    ("Pune Brewery", "IN", 18.5204, 73.8567, 1250.0, 0.40, 0.05),
    ("Leeds Packaging", "GB", 53.8008, -1.5491, 310.0, 0.85, 0.20),
    ("Riyadh Co-Packer", "SA", 24.7136, 46.6753, None, None, None),
    ("Remote Warehouse", None, None, None, 45.0, 0.90, 0.0),
]

MONTHS_START = date(2024, 1, 1)
MONTHS_END = date(2024, 12, 1)


def _month_range():
    y, m = MONTHS_START.year, MONTHS_START.month
    while (y, m) <= (MONTHS_END.year, MONTHS_END.month):
        yield date(y, m, 1)
        m += 1
        if m > 12:
            m = 1
            y += 1


def _period_end(period_start: date) -> date:
    """Last day of the month."""
    if period_start.month == 12:
        return date(period_start.year + 1, 1, 1) - timedelta(days=1)
    return date(period_start.year, period_start.month + 1, 1) - timedelta(days=1)


def main() -> None:
    conn = psycopg2.connect(DATABASE_URL)
    try:
        with conn.cursor() as cur:
            counts = {
                "facilities": 0,
                "facility_activity_entries": 0,
                "products": 0,
                "product_carbon_footprints": 0,
                "production_sites": 0,
                "materials": 0,
                "contract_manufacturer_allocations": 0,
            }

            cur.execute(
                "INSERT INTO organizations (name) VALUES (%s) RETURNING id",
                (ORGANIZATION_NAME,),
            )
            org_id = cur.fetchone()[0]

            # ─── Facilities + monthly metering ────────────────────────────────
            facility_ids: dict[str, str] = {}
            for name, country, lat, lng, intake, discharge_frac, recycled_frac in FACILITIES:
                cur.execute(
                    """
                    INSERT INTO facilities (organization_id, name, location_country_code, address_lat, address_lng)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING id
                    """,
                    (org_id, name, country, lat, lng),
                )
                facility_ids[name] = cur.fetchone()[0]
                counts["facilities"] += 1

                if intake is None:
                    continue  # contract manufacturer: no direct metering
                for period_start in _month_range():
                    seasonal = intake * (1 + 0.15 * ((period_start.month % 6) - 2) / 3)
                    cur.execute(
                        """
                        INSERT INTO facility_activity_entries
                        (organization_id, facility_id, reporting_period_start, reporting_period_end,
                         water_intake, water_discharge, water_recycled)
                        VALUES (%s, %s, %s, %s, %s, %s, %s)
                        """,
                        (
                            org_id,
                            facility_ids[name],
                            period_start,
                            _period_end(period_start),
                            round(seasonal, 3),
                            round(seasonal * discharge_frac, 3),
                            round(seasonal * recycled_frac, 3),
                        ),
                    )
                    counts["facility_activity_entries"] += 1

            # ─── Products + footprints ────────────────────────────────────────
            def insert_product(name: str, water_per_unit: float) -> tuple[str, str]:
                cur.execute(
                    "INSERT INTO products (organization_id, name) VALUES (%s, %s) RETURNING id",
                    (org_id, name),
                )
                product_id = cur.fetchone()[0]
                counts["products"] += 1
                cur.execute(
                    """
                    INSERT INTO product_carbon_footprints (organization_id, product_id, status, aggregated_impacts)
                    VALUES (%s, %s, 'completed', %s::jsonb)
                    RETURNING id
                    """,
                    (org_id, product_id, json.dumps({"water_consumption": water_per_unit})),
                )
                counts["product_carbon_footprints"] += 1
                return product_id, cur.fetchone()[0]

            def insert_site(pcf_id: str, facility: str, share: float | None, volume: float) -> None:
                cur.execute(
                    """
                    INSERT INTO product_carbon_footprint_production_sites
                    (product_carbon_footprint_id, facility_id, share_of_production_percent, production_volume)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (pcf_id, facility_ids[facility], share, volume),
                )
                counts["production_sites"] += 1

            def insert_material(pcf_id: str, name: str, water_m3: float, origin: str | None) -> None:
                cur.execute(
                    """
                    INSERT INTO product_carbon_footprint_materials
                    (product_carbon_footprint_id, material_name, impact_water, origin_country_code)
                    VALUES (%s, %s, %s, %s)
                    """,
                    (pcf_id, name, water_m3, origin),
                )
                counts["materials"] += 1

            # Orange juice: split 60/40 across Valencia and Pune
            juice_id, juice_pcf = insert_product("Orange Juice 1L", 0.0012)
            insert_site(juice_pcf, "Valencia Bottling", 60, 250000)
            insert_site(juice_pcf, "Pune Brewery", 40, 250000)
            insert_material(juice_pcf, "Oranges", 420.0, "ES")
            insert_material(juice_pcf, "Sugar", 95.0, "IN")
            insert_material(juice_pcf, "PET bottle", 12.5, None)

            # Lager: single site, NULL share means 100 %
            lager_id, lager_pcf = insert_product("Pale Lager 330ml", 0.0004)
            insert_site(lager_pcf, "Pune Brewery", None, 600000)
            insert_material(lager_pcf, "Barley malt", 310.0, "AU")
            insert_material(lager_pcf, "Hops", 18.0, "DE")

            # Cartons: made at Leeds, zero volume recorded this year
            carton_id, carton_pcf = insert_product("Gift Carton", 0.0001)
            insert_site(carton_pcf, "Leeds Packaging", 100, 0)
            insert_material(carton_pcf, "Board", 8.0, "SE")

            # Sparkling water: footprint without a production site
            _, sparkling_pcf = insert_product("Sparkling Water 500ml", 0.0006)
            insert_material(sparkling_pcf, "CO2", 3.5, "NL")

            # ─── Contract manufacturer allocations ────────────────────────────
            allocations = [
                # Riyadh co-packs lager: the only embedded source for that site
                (lager_id, "Riyadh Co-Packer", 150000, 92000.0),
                # Valencia also reported by a CM: owned data wins, this one is dropped
                (juice_id, "Valencia Bottling", 50000, 500000.0),
                (carton_id, "Riyadh Co-Packer", 20000, 4000.0),
            ]
            for product_id, facility, volume, litres in allocations:
                cur.execute(
                    """
                    INSERT INTO contract_manufacturer_allocations
                    (organization_id, product_id, facility_id, reporting_period_start, reporting_period_end,
                     client_production_volume, allocated_water_litres)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (org_id, product_id, facility_ids[facility], MONTHS_START, _period_end(MONTHS_END), volume, litres),
                )
                counts["contract_manufacturer_allocations"] += 1

        conn.commit()
        print("Synthetic water-risk data seeded successfully.")
        print(f"  organization_id: {org_id}")
        for table, n in counts.items():
            print(f"  {table}: {n}")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
