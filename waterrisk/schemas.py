"""
schemas.py – Pydantic models for the engine's input records.

Rows arrive from the storage layer as loosely-typed dicts.  Each one is
validated into a tagged record here; optional fields stay ``None`` and are
resolved by explicit default functions downstream (never ad-hoc fallbacks).

NULL numeric columns are read as 0.  Negative volumes are rejected.
"""
from __future__ import annotations

from typing import Any, Iterable, Literal, Optional, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from waterrisk.constants import DATASET_FACILITIES, MALFORMED_RECORD, SOURCE_OWNED
from waterrisk.events import EventLog

RecordT = TypeVar("RecordT", bound=BaseModel)


def _normalise_country(value: Any) -> Optional[str]:
    if value is None:
        return None
    code = str(value).strip().upper()
    return code or None


def _zero_if_null(value: Any) -> Any:
    return 0.0 if value is None else value


def _as_id(value: Any) -> Any:
    # Accept integer/UUID primary keys; the engine keys everything by str.
    if value is None:
        return value
    text = str(value).strip()
    return text or None


# ─────────────────────────────────────────────────────────────
# Reference data
# ─────────────────────────────────────────────────────────────

class ScarcityFactor(BaseModel):
    """AWARE water-scarcity characterisation factor for one country."""

    country_code: str = Field(..., description="ISO 3166-1 alpha-2 code, upper case")
    scarcity_factor: float = Field(..., ge=0, description="Dimensionless AWARE factor")
    country_name: Optional[str] = None
    region: Optional[str] = None
    baseline_water_stress: Optional[float] = None

    model_config = {"frozen": True}

    @field_validator("country_code", mode="before")
    @classmethod
    def _upper(cls, v: Any) -> Any:
        code = _normalise_country(v)
        return code if code is not None else v

    @property
    def risk_level(self) -> str:
        from waterrisk.risk import classify_risk_level
        return classify_risk_level(self.scarcity_factor)


# ─────────────────────────────────────────────────────────────
# Facility registry
# ─────────────────────────────────────────────────────────────

class Facility(BaseModel):
    """A physical site owned or used by the organisation."""

    id: str
    name: Optional[str] = None
    country_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("country_code", mode="before")
    @classmethod
    def _country(cls, v: Any) -> Optional[str]:
        return _normalise_country(v)


# ─────────────────────────────────────────────────────────────
# Operational water (direct metering)
# ─────────────────────────────────────────────────────────────

class OperationalWaterRecord(BaseModel):
    """One activity entry of metered intake / discharge / recycling (m³)."""

    facility_id: str
    intake: float = Field(0.0, ge=0)
    discharge: float = Field(0.0, ge=0)
    recycled: float = Field(0.0, ge=0)

    @field_validator("facility_id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("intake", "discharge", "recycled", mode="before")
    @classmethod
    def _nulls(cls, v: Any) -> Any:
        return _zero_if_null(v)


# ─────────────────────────────────────────────────────────────
# Embedded water (production sites + contract manufacturers)
# ─────────────────────────────────────────────────────────────

class EmbeddedAllocation(BaseModel):
    """Water embedded in a product, attributed to the facility that made it (m³)."""

    facility_id: str
    product_id: str
    product_name: Optional[str] = None
    water_volume: float = Field(0.0, ge=0)
    production_volume: float = Field(0.0, ge=0)
    source: Literal["owned", "contract_manufacturer"] = SOURCE_OWNED

    @field_validator("facility_id", "product_id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("water_volume", "production_volume", mode="before")
    @classmethod
    def _nulls(cls, v: Any) -> Any:
        return _zero_if_null(v)


class MaterialWaterImpact(BaseModel):
    """Raw water footprint of one material in a product's bill of materials (m³)."""

    material_id: str
    product_id: str
    origin_country_code: Optional[str] = None
    water_volume: float = Field(0.0, ge=0)

    @field_validator("material_id", "product_id", mode="before")
    @classmethod
    def _id(cls, v: Any) -> Any:
        return _as_id(v)

    @field_validator("origin_country_code", mode="before")
    @classmethod
    def _country(cls, v: Any) -> Optional[str]:
        return _normalise_country(v)

    @field_validator("water_volume", mode="before")
    @classmethod
    def _nulls(cls, v: Any) -> Any:
        return _zero_if_null(v)


# ─────────────────────────────────────────────────────────────
# Row validation helper
# ─────────────────────────────────────────────────────────────

def parse_records(
    model: type[RecordT],
    rows: Iterable[dict[str, Any]],
    events: EventLog,
    *,
    dataset: str,
    overrides: dict[str, Any] | None = None,
) -> list[RecordT]:
    """
    Validate raw rows into ``model`` instances.

    A row that fails validation is skipped and reported as a
    MALFORMED_RECORD warning; it never aborts the batch.
    ``overrides`` are merged into every row (e.g. the allocation source tag).
    """
    records: list[RecordT] = []
    for index, row in enumerate(rows):
        data = dict(row)
        if overrides:
            data.update(overrides)
        try:
            records.append(model.model_validate(data))
        except ValidationError as exc:
            facility_id = data.get("facility_id") or (data.get("id") if dataset == DATASET_FACILITIES else None)
            events.warning(
                MALFORMED_RECORD,
                facility_id=str(facility_id) if facility_id is not None else None,
                dataset=dataset,
                row_index=index,
                errors=[
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ],
            )
    return records
