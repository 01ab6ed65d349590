"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()    — resolves paths to tests/fixtures/
  write_csv()       — writes an ad-hoc CSV under tmp_path
  release_toml()    — writes a release config pointing at the fixture files
  release_config()  — the loaded ReleaseConfig for release_toml
  stations_df       — validated station table from the fixture file
  qc_policy         — the 2025-10 QC policy
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import polars as pl
import pytest

from lighttrap_shared.config import QCPolicy, ReleaseConfig, load_release_config

FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[[str, str], Path]:
    """
    Write text to tmp_path/name and return the path.

    Usage in tests:
        def test_something(write_csv):
            path = write_csv("counts.csv", "Code,Date\\nCRA,2023-06-05\\n")
    """

    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


# ---------------------------------------------------------------------------
# Release config
# ---------------------------------------------------------------------------

RELEASE_TOML = """\
policy_version = "test-2025-10"
visit_key_prefix = "SOC"
join_policy = "fail"
data_dir = "{data_dir}"
output_dir = "out"
stations_file = "Master_Stations.csv"

[count_files]
2023 = "2023_CountData_QC.csv"
2024 = "2024_CountData_QC.csv"

[measurement_files]
2023 = "2023_Megalopae_Carapace_Widths.csv"
2024 = "2024_Megalopae_Carapace_Widths.csv"

[qc]
accepted = ["NONE", "HRS", "BAT", "SUB"]
excluded = ["MET", "DNF", "ERR", "INC"]

[redaction]
count_site_codes = ["PRP", "PRI"]
measurement_site_names = ["Pender Harbour"]

[site_aliases]
"Campbell River Aquarium" = "Campbell River"
"Hot Spring Cove" = "Hotsprings Cove"
"""


@pytest.fixture
def release_toml(tmp_path: Path) -> Path:
    path = tmp_path / "release.toml"
    path.write_text(RELEASE_TOML.format(data_dir=FIXTURES_DIR.as_posix()), encoding="utf-8")
    return path


@pytest.fixture
def release_config(release_toml: Path) -> ReleaseConfig:
    return load_release_config(release_toml)


@pytest.fixture
def qc_policy() -> QCPolicy:
    return QCPolicy(
        accepted=["NONE", "HRS", "BAT", "SUB"],
        excluded=["MET", "DNF", "ERR", "INC"],
    )


# ---------------------------------------------------------------------------
# Sample DataFrames
# ---------------------------------------------------------------------------

@pytest.fixture
def stations_df() -> pl.DataFrame:
    """Station table as StationSource returns it for Master_Stations.csv."""
    return pl.DataFrame(
        {
            "site_code": ["CRA", "HSC", "PRP", "PRI"],
            "site_name": ["Campbell River", "Hotsprings Cove", "Pender Harbour", "Prince Rupert"],
            "organization": [None, None, None, None],
            "latitude": [50.0331, 49.3653, 49.6305, 54.3150],
            "longitude": [-125.2467, -126.2711, -124.0306, -130.3208],
            "source_file": ["Master_Stations.csv"] * 4,
            "source_row": [2, 3, 4, 5],
        },
        schema_overrides={"organization": pl.String},
    )
