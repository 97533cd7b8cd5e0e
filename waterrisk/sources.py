"""
sources.py – Data sources that supply one organisation's snapshot.

``PostgresWaterDataSource`` runs each dataset query on its own short-lived
connection, so the engine can issue them concurrently from worker threads.
``SnapshotWaterDataSource`` serves a frozen in-memory snapshot (JSON files,
tests, offline runs).

A failed read raises ``WaterDataFetchError`` naming the dataset; there is no
partial-result mode.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

import psycopg2

from waterrisk import queries
from waterrisk.constants import (
    DATASET_CONTRACT_ALLOCATIONS,
    DATASET_FACILITIES,
    DATASET_MATERIALS,
    DATASET_OPERATIONAL,
    DATASET_OWNED_ALLOCATIONS,
    DATASET_SCARCITY_FACTORS,
)
from waterrisk.db import get_connection
from waterrisk.scarcity_factors import AWARE_FACTORS, normalise_country_code

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class WaterDataFetchError(RuntimeError):
    """A whole input dataset could not be read."""

    def __init__(self, dataset: str, cause: BaseException | str) -> None:
        self.dataset = dataset
        super().__init__(f"Failed to fetch {dataset}: {cause}")


class WaterDataSource(Protocol):
    """Read-only access to the datasets the engine needs."""

    def facilities(self, organization_id: str) -> list[Row]: ...

    def operational_records(
        self, organization_id: str, *, period_start: str | None = None, period_end: str | None = None,
    ) -> list[Row]: ...

    def owned_allocations(self, organization_id: str) -> list[Row]: ...

    def contract_allocations(
        self, organization_id: str, *, period_start: str | None = None, period_end: str | None = None,
    ) -> list[Row]: ...

    def material_impacts(self, organization_id: str) -> list[Row]: ...

    def scarcity_factors(self, country_codes: Iterable[str]) -> list[Row]: ...


# ─────────────────────────────────────────────────────────────────────────────
# PostgreSQL
# ─────────────────────────────────────────────────────────────────────────────

class PostgresWaterDataSource:
    """Reads every dataset from PostgreSQL, one connection per read."""

    def __init__(
        self,
        database_url: str | None = None,
        connect: Callable[[str | None], Any] = get_connection,
    ) -> None:
        self.database_url = database_url
        self._connect = connect

    def _run(self, dataset: str, fetch: Callable[..., list[Row]], *args: Any, **kwargs: Any) -> list[Row]:
        try:
            conn = self._connect(self.database_url)
        except psycopg2.Error as exc:
            logger.error("Connection for %s failed: %s", dataset, exc)
            raise WaterDataFetchError(dataset, exc) from exc
        try:
            rows = fetch(conn, *args, **kwargs)
        except psycopg2.Error as exc:
            logger.error("Query for %s failed: %s", dataset, exc)
            raise WaterDataFetchError(dataset, exc) from exc
        finally:
            conn.close()
        logger.debug("Fetched %d %s row(s)", len(rows), dataset)
        return rows

    def facilities(self, organization_id: str) -> list[Row]:
        return self._run(DATASET_FACILITIES, queries.fetch_facilities, organization_id)

    def operational_records(self, organization_id, *, period_start=None, period_end=None):
        return self._run(
            DATASET_OPERATIONAL, queries.fetch_operational_records, organization_id,
            period_start=period_start, period_end=period_end,
        )

    def owned_allocations(self, organization_id: str) -> list[Row]:
        return self._run(DATASET_OWNED_ALLOCATIONS, queries.fetch_owned_allocations, organization_id)

    def contract_allocations(self, organization_id, *, period_start=None, period_end=None):
        return self._run(
            DATASET_CONTRACT_ALLOCATIONS, queries.fetch_contract_allocations, organization_id,
            period_start=period_start, period_end=period_end,
        )

    def material_impacts(self, organization_id: str) -> list[Row]:
        return self._run(DATASET_MATERIALS, queries.fetch_material_impacts, organization_id)

    def scarcity_factors(self, country_codes: Iterable[str]) -> list[Row]:
        codes = list(country_codes)
        if not codes:
            return []
        return self._run(DATASET_SCARCITY_FACTORS, queries.fetch_scarcity_factors, codes)


# ─────────────────────────────────────────────────────────────────────────────
# In-memory snapshot
# ─────────────────────────────────────────────────────────────────────────────

def _in_period(row: Row, period_start: str | None, period_end: str | None) -> bool:
    # ISO dates compare correctly as strings; NULL bounds always pass.
    start = row.get("reporting_period_start")
    end = row.get("reporting_period_end")
    if period_start and start is not None and str(start) < period_start:
        return False
    if period_end and end is not None and str(end) > period_end:
        return False
    return True


def _reference_rows() -> list[Row]:
    return [
        {
            "country_code": code,
            "scarcity_factor": factor,
            "country_name": name,
            "region": region,
            "baseline_water_stress": stress,
        }
        for code, (factor, name, region, stress) in AWARE_FACTORS.items()
    ]


class SnapshotWaterDataSource:
    """
    Serves a frozen snapshot for a single organisation.

    Rows are taken as already shaped like the schemas.py models (m³ water
    volumes, ``facility_id`` keys); no unit conversion happens here.
    Keys: facilities, operational_records, owned_allocations,
    contract_allocations, material_impacts and (optionally)
    scarcity_factors, given either as a list of rows or as a
    ``{country_code: factor}`` mapping.  Without scarcity_factors the
    built-in AWARE reference table is used.  When ``organization_id`` is
    set, any other organisation sees an empty snapshot.
    """

    def __init__(
        self,
        *,
        organization_id: str | None = None,
        facilities: list[Row] | None = None,
        operational_records: list[Row] | None = None,
        owned_allocations: list[Row] | None = None,
        contract_allocations: list[Row] | None = None,
        material_impacts: list[Row] | None = None,
        scarcity_factors: list[Row] | dict[str, float] | None = None,
    ) -> None:
        self.organization_id = organization_id
        self._facilities = list(facilities or [])
        self._operational = list(operational_records or [])
        self._owned = list(owned_allocations or [])
        self._contracted = list(contract_allocations or [])
        self._materials = list(material_impacts or [])
        if scarcity_factors is None:
            self._factors = _reference_rows()
        elif isinstance(scarcity_factors, dict):
            self._factors = [
                {"country_code": code, "scarcity_factor": value}
                for code, value in scarcity_factors.items()
            ]
        else:
            self._factors = list(scarcity_factors)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SnapshotWaterDataSource":
        return cls(
            organization_id=payload.get("organization_id"),
            facilities=payload.get("facilities"),
            operational_records=payload.get("operational_records"),
            owned_allocations=payload.get("owned_allocations"),
            contract_allocations=payload.get("contract_allocations"),
            material_impacts=payload.get("material_impacts"),
            scarcity_factors=payload.get("scarcity_factors"),
        )

    @classmethod
    def from_json_file(cls, path: Path | str) -> "SnapshotWaterDataSource":
        path = Path(path)
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise WaterDataFetchError(f"snapshot file {path}", exc) from exc
        if not isinstance(payload, dict):
            raise WaterDataFetchError(f"snapshot file {path}", "top-level JSON must be an object")
        return cls.from_dict(payload)

    def _rows(self, organization_id: str, rows: list[Row]) -> list[Row]:
        if self.organization_id is not None and str(organization_id) != str(self.organization_id):
            return []
        return [dict(r) for r in rows]

    def facilities(self, organization_id: str) -> list[Row]:
        return self._rows(organization_id, self._facilities)

    def operational_records(self, organization_id, *, period_start=None, period_end=None):
        rows = self._rows(organization_id, self._operational)
        return [r for r in rows if _in_period(r, period_start, period_end)]

    def owned_allocations(self, organization_id: str) -> list[Row]:
        return self._rows(organization_id, self._owned)

    def contract_allocations(self, organization_id, *, period_start=None, period_end=None):
        rows = self._rows(organization_id, self._contracted)
        return [r for r in rows if _in_period(r, period_start, period_end)]

    def material_impacts(self, organization_id: str) -> list[Row]:
        return self._rows(organization_id, self._materials)

    def scarcity_factors(self, country_codes: Iterable[str]) -> list[Row]:
        wanted = {normalise_country_code(c) for c in country_codes} - {None}
        return [
            dict(r) for r in self._factors
            if normalise_country_code(str(r.get("country_code") or "")) in wanted
        ]
