"""
constants.py – Shared labels, thresholds, and warning codes.

Every numeric constant that is part of the observable contract lives here so
a recalibration changes one value, not several copies.
"""

# ── AWARE characterisation convention ─────────────────────────
# 1.0 = world average; >= 10 = an order of magnitude above average.
DEFAULT_SCARCITY_FACTOR = 1.0
HIGH_RISK_THRESHOLD = 10.0
MEDIUM_RISK_THRESHOLD = 1.0

# ── Risk level labels ─────────────────────────────────────────
RISK_HIGH = "high"
RISK_MEDIUM = "medium"
RISK_LOW = "low"

RISK_LEVELS = [RISK_HIGH, RISK_MEDIUM, RISK_LOW]

# ── Location scope ────────────────────────────────────────────
# Facilities without a country code are reported under this scope.
GLOBAL_SCOPE = "GLOBAL"
UNKNOWN_FACILITY_NAME = "Unknown Facility"
UNKNOWN_PRODUCT_NAME = "Unknown"

# ── Embedded water sources ────────────────────────────────────
SOURCE_OWNED = "owned"
SOURCE_CONTRACT_MANUFACTURER = "contract_manufacturer"

# ── Unit conversion ───────────────────────────────────────────
LITRES_PER_M3 = 1_000.0

# ── Event severities ──────────────────────────────────────────
SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"

# ── Event codes ───────────────────────────────────────────────
DUPLICATE_EMBEDDED_SOURCE = "DUPLICATE_EMBEDDED_SOURCE"
UNATTRIBUTED_MATERIAL = "UNATTRIBUTED_MATERIAL"
UNKNOWN_SCARCITY_FACTOR = "UNKNOWN_SCARCITY_FACTOR"
MISSING_FACILITY_LOCATION = "MISSING_FACILITY_LOCATION"
ZERO_PRODUCTION_VOLUME = "ZERO_PRODUCTION_VOLUME"
MALFORMED_RECORD = "MALFORMED_RECORD"
ORPHAN_OPERATIONAL_RECORD = "ORPHAN_OPERATIONAL_RECORD"

# ── Dataset labels (used in fetch errors and malformed-record events) ──
DATASET_FACILITIES = "facilities"
DATASET_OPERATIONAL = "operational_water"
DATASET_OWNED_ALLOCATIONS = "owned_allocations"
DATASET_CONTRACT_ALLOCATIONS = "contract_manufacturer_allocations"
DATASET_MATERIALS = "material_water_impacts"
DATASET_SCARCITY_FACTORS = "scarcity_factors"
