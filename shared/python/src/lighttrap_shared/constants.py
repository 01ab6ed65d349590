"""
constants.py — shared constants used across the pipeline.

Column layouts, source-header aliases, the QC code catalogue and the fixed
output file names live here so the loader, transforms and writer agree on
one schema. Release-specific policy (accepted codes, deny-lists, aliases)
is NOT defined here; it comes from the versioned release config.
"""

from __future__ import annotations

from typing import Final, Literal

JoinPolicy = Literal["fail", "drop", "keep"]

# ---------------------------------------------------------------------------
# QC code catalogue: code -> description
# Assignment happens upstream; the pipeline only reads these.
# ---------------------------------------------------------------------------
QC_CODE_DESCRIPTIONS: Final[dict[str, str]] = {
    "NONE": "No known data-quality issue",
    "BAT": "Trap fished for over 25 hours",
    "HRS": "Timer on/off times were off by 1+ hr",
    "SUB": "Count estimated from a subsample",
    "MET": "Missing metadata (hours or nights fished)",
    "DNF": "Trap did not fish properly",
    "ERR": "Protocols not followed properly and counts likely not accurate",
    "INC": "Trap did not fish for over 25% of nights in a month (Apr 15 to Sep 1)",
}

# ---------------------------------------------------------------------------
# Source header aliases (keys are snake_cased source headers)
# ---------------------------------------------------------------------------
COUNT_COLUMN_ALIASES: Final[dict[str, str]] = {
    "code": "site_code",
    "error_code": "qc_code",
    "qaqc_code": "qc_code",
    "metacarcinus_magister_megalopae": "megalopae_count",
    "metacarcinus_magister_instar": "instar_count",
    "total_mmagister": "total_count",
    "cpue_night": "cpue_per_night",
    "cpue_hour": "cpue_per_hour",
    "subsample": "subsample_flag",
}

MEASUREMENT_COLUMN_ALIASES: Final[dict[str, str]] = {
    "site": "site_name",
    "carapace_width": "carapace_width_mm",
    "cw_mm": "carapace_width_mm",
}

STATION_COLUMN_ALIASES: Final[dict[str, str]] = {
    "code": "site_code",
    "site": "site_name",
    "lat": "latitude",
    "lon": "longitude",
    "long": "longitude",
}

# ---------------------------------------------------------------------------
# Source schemas: required columns abort the run when absent, optional
# columns are null-filled.
# ---------------------------------------------------------------------------
COUNT_REQUIRED_COLUMNS: Final[tuple[str, ...]] = (
    "site_code",
    "date",
    "nights_fished",
    "hours_fished",
    "megalopae_count",
    "instar_count",
    "qc_code",
)
COUNT_OPTIONAL_COLUMNS: Final[tuple[str, ...]] = (
    "year",
    "month",
    "weather",
    "subsample_flag",
    "total_count",
    "cpue_per_night",
    "cpue_per_hour",
)

MEASUREMENT_REQUIRED_COLUMNS: Final[tuple[str, ...]] = (
    "site_name",
    "date",
    "carapace_width_mm",
)
MEASUREMENT_OPTIONAL_COLUMNS: Final[tuple[str, ...]] = ()

STATION_REQUIRED_COLUMNS: Final[tuple[str, ...]] = (
    "site_code",
    "site_name",
    "latitude",
    "longitude",
)
STATION_OPTIONAL_COLUMNS: Final[tuple[str, ...]] = ("organization",)

# Provenance columns carried until the writer so errors can name a row
SOURCE_FILE_COL: Final[str] = "source_file"
SOURCE_ROW_COL: Final[str] = "source_row"
PROVENANCE_COLUMNS: Final[tuple[str, ...]] = (SOURCE_FILE_COL, SOURCE_ROW_COL)

# ---------------------------------------------------------------------------
# Output layouts (column order of the written tables)
# ---------------------------------------------------------------------------
COUNT_OUTPUT_COLUMNS: Final[tuple[str, ...]] = (
    "visit_key",
    "site_code",
    "site_name",
    "latitude",
    "longitude",
    "year",
    "month",
    "date",
    "nights_fished",
    "hours_fished",
    "weather",
    "subsample_flag",
    "megalopae_count",
    "instar_count",
    "total_count",
    "cpue_per_night",
    "cpue_per_hour",
    "qc_code",
)
EXCLUDED_OUTPUT_COLUMNS: Final[tuple[str, ...]] = (*COUNT_OUTPUT_COLUMNS, "qc_reason")

MEASUREMENT_OUTPUT_COLUMNS: Final[tuple[str, ...]] = (
    "visit_key",
    "site_code",
    "site_name",
    "date",
    "carapace_width_mm",
)

VISIT_OUTPUT_COLUMNS: Final[tuple[str, ...]] = (
    *COUNT_OUTPUT_COLUMNS,
    "specimen_number",
    "specimen_id",
    "carapace_width_mm",
)

# ---------------------------------------------------------------------------
# Output files: table key -> file name
# ---------------------------------------------------------------------------
OUTPUT_FILES: Final[dict[str, str]] = {
    "counts_raw": "Master_raw_LightTrap_Counts.csv",
    "counts_master": "Master_QAQC_LightTrap_Counts.csv",
    "counts_excluded": "Master_Removed_Counts.csv",
    "counts_public": "Master_QAQC_LightTrap_Counts_publicrepository.csv",
    "measurements_master": "Master_QAQC_CarapaceWidth_Measurements.csv",
    "measurements_public": "Master_QAQC_CarapaceWidth_Measurements_publicrepository.csv",
    "visits_public": "Master_QAQC_StationVisits_publicrepository.csv",
}
MANIFEST_FILE: Final[str] = "run_manifest.json"
LOCK_FILE: Final[str] = ".lighttrap.lock"

# Values read as null from every source file
NULL_MARKERS: Final[list[str]] = ["", "NA", "N/A", "na"]
# Null rendering in written tables (readr's write_csv default)
OUTPUT_NULL_VALUE: Final[str] = "NA"

DEFAULT_VISIT_KEY_PREFIX: Final[str] = "SOC"
