"""
scarcity_factors.py – AWARE water-scarcity factors and the per-request lookup.

Factors are dimensionless: 1.0 is the world average, higher is scarcer.
Scarcity-weighted water = volume (m³) × factor ("world-equivalent" m³).

Source for the reference table: AWARE v1.3 country-level factors
(WULCA / UNEP-SETAC Life Cycle Initiative), as seeded into ``aware_factors``
by schema/water_risk.sql.  Curating these values is not this module's job;
production runs load the organisation's reference table from the database.
"""
from __future__ import annotations

from typing import Iterable, Mapping

from waterrisk.constants import DEFAULT_SCARCITY_FACTOR
from waterrisk.schemas import ScarcityFactor


# ─────────────────────────────────────────────────────────────
# Reference table (country_code → factor, name, region, baseline stress)
# ─────────────────────────────────────────────────────────────
AWARE_FACTORS: dict[str, tuple[float, str, str, float]] = {
    # Europe
    "GB": (0.42, "United Kingdom", "Northern Europe", 0.13),
    "IE": (0.18, "Ireland", "Northern Europe", 0.04),
    "FR": (1.24, "France", "Western Europe", 0.17),
    "DE": (0.89, "Germany", "Western Europe", 0.22),
    "ES": (12.5, "Spain", "Southern Europe", 0.32),
    "IT": (4.82, "Italy", "Southern Europe", 0.28),
    "PT": (8.34, "Portugal", "Southern Europe", 0.25),
    "NL": (0.56, "Netherlands", "Western Europe", 0.21),
    "BE": (0.78, "Belgium", "Western Europe", 0.31),
    "AT": (0.31, "Austria", "Central Europe", 0.07),
    "CH": (0.25, "Switzerland", "Central Europe", 0.05),
    "PL": (0.95, "Poland", "Eastern Europe", 0.19),
    "CZ": (1.12, "Czech Republic", "Eastern Europe", 0.16),
    "SE": (0.15, "Sweden", "Northern Europe", 0.03),
    "NO": (0.08, "Norway", "Northern Europe", 0.02),
    "DK": (0.38, "Denmark", "Northern Europe", 0.11),
    "FI": (0.12, "Finland", "Northern Europe", 0.02),
    # Americas
    "US": (2.45, "United States", "North America", 0.24),
    "CA": (0.35, "Canada", "North America", 0.08),
    "MX": (5.67, "Mexico", "Central America", 0.35),
    "BR": (0.89, "Brazil", "South America", 0.09),
    "AR": (2.34, "Argentina", "South America", 0.21),
    "CL": (6.78, "Chile", "South America", 0.48),
    # Asia-Pacific
    "AU": (9.45, "Australia", "Oceania", 0.42),
    "NZ": (0.28, "New Zealand", "Oceania", 0.05),
    "JP": (1.56, "Japan", "East Asia", 0.19),
    "CN": (3.89, "China", "East Asia", 0.43),
    "KR": (1.78, "South Korea", "East Asia", 0.26),
    "IN": (8.92, "India", "South Asia", 0.54),
    "SG": (0.45, "Singapore", "Southeast Asia", 0.12),
    "TH": (1.23, "Thailand", "Southeast Asia", 0.11),
    "VN": (0.98, "Vietnam", "Southeast Asia", 0.09),
    "ID": (0.78, "Indonesia", "Southeast Asia", 0.06),
    "MY": (0.56, "Malaysia", "Southeast Asia", 0.05),
    # Africa & Middle East
    "ZA": (14.2, "South Africa", "Southern Africa", 0.42),
    "EG": (25.8, "Egypt", "North Africa", 0.85),
    "MA": (18.4, "Morocco", "North Africa", 0.45),
    "AE": (45.6, "United Arab Emirates", "Middle East", 0.95),
    "SA": (52.3, "Saudi Arabia", "Middle East", 0.98),
    "IL": (32.1, "Israel", "Middle East", 0.72),
}


def reference_factors() -> list[ScarcityFactor]:
    """Return the built-in reference table as ScarcityFactor records."""
    return [
        ScarcityFactor(
            country_code=code,
            scarcity_factor=factor,
            country_name=name,
            region=region,
            baseline_water_stress=stress,
        )
        for code, (factor, name, region, stress) in AWARE_FACTORS.items()
    ]


def normalise_country_code(country_code: str | None) -> str | None:
    """Upper-case and strip a country code; blank → None."""
    if not country_code:
        return None
    code = country_code.strip().upper()
    return code or None


def scarcity_weighted(volume_m3: float, scarcity_factor: float) -> float:
    """Scarcity-weighted ("world-equivalent") water volume."""
    return volume_m3 * scarcity_factor


class ScarcityFactorRepository:
    """
    Immutable country → ScarcityFactor lookup, built fresh for each run.

    Lookups are pure: no I/O, no side effects.  Loading the factors is the
    data source's job (one batched query, see queries.fetch_scarcity_factors).
    """

    def __init__(self, factors: Iterable[ScarcityFactor] = ()) -> None:
        self._factors: dict[str, ScarcityFactor] = {}
        for factor in factors:
            self._factors[factor.country_code] = factor

    @classmethod
    def from_reference(cls) -> "ScarcityFactorRepository":
        return cls(reference_factors())

    @classmethod
    def from_mapping(cls, values: Mapping[str, float]) -> "ScarcityFactorRepository":
        """Build from a plain ``{country_code: factor}`` mapping."""
        return cls(
            ScarcityFactor(country_code=code, scarcity_factor=value)
            for code, value in values.items()
        )

    def factor_for(self, country_code: str | None) -> ScarcityFactor | None:
        code = normalise_country_code(country_code)
        if code is None:
            return None
        return self._factors.get(code)

    def factors_for_many(self, country_codes: Iterable[str | None]) -> dict[str, ScarcityFactor]:
        """Batch lookup keyed by normalised code; blank and unknown codes are omitted."""
        result: dict[str, ScarcityFactor] = {}
        for raw in country_codes:
            code = normalise_country_code(raw)
            if code is None or code in result:
                continue
            factor = self._factors.get(code)
            if factor is not None:
                result[code] = factor
        return result

    def value_or_default(self, country_code: str | None) -> float:
        """Factor value, or DEFAULT_SCARCITY_FACTOR (1.0) when absent/unknown."""
        factor = self.factor_for(country_code)
        if factor is None:
            return DEFAULT_SCARCITY_FACTOR
        return factor.scarcity_factor

    def __contains__(self, country_code: object) -> bool:
        return isinstance(country_code, str) and self.factor_for(country_code) is not None

    def __len__(self) -> int:
        return len(self._factors)
