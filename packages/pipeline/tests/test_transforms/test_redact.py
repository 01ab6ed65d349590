"""
tests/test_transforms/test_redact.py — Tests for site redaction and deny-list divergence.
"""

from __future__ import annotations

import polars as pl

from lighttrap_pipeline.transforms.redact import (
    find_list_divergence,
    redact_counts,
    redact_measurements,
)

DENIED_CODES = ["PRP", "PDH", "POW", "BOO", "LYA", "WIN", "PRI", "MAS"]
DENIED_NAMES = [
    "Pender Harbour",
    "Sechelt Inlet",
    "Powell River",
    "Boot Cove",
    "Lyall Harbour",
    "Winter Cove",
]


class TestRedactCounts:
    def test_removes_denied_codes_case_insensitive(self):
        df = pl.DataFrame({"site_code": ["CRA", "PRP", "prp", "HSC", "PRI"]})
        out = redact_counts(df, ["PRP", "pri"])
        assert out["site_code"].to_list() == ["CRA", "HSC"]

    def test_idempotent(self):
        df = pl.DataFrame({"site_code": ["CRA", "PRP", "HSC", "MAS"]})
        once = redact_counts(df, DENIED_CODES)
        twice = redact_counts(once, DENIED_CODES)
        assert once.equals(twice)

    def test_empty_list_is_noop(self):
        df = pl.DataFrame({"site_code": ["CRA", "PRP"]})
        assert redact_counts(df, []).equals(df)

    def test_null_codes_kept(self):
        df = pl.DataFrame({"site_code": ["CRA", None]}, schema={"site_code": pl.String})
        assert redact_counts(df, ["PRP"]).height == 2


class TestRedactMeasurements:
    def test_whitespace_and_case_normalised(self):
        df = pl.DataFrame(
            {"site_name": ["Pender Harbour", "pender  harbour ", "Campbell River", "BOOT COVE"]}
        )
        out = redact_measurements(df, DENIED_NAMES)
        assert out["site_name"].to_list() == ["Campbell River"]

    def test_idempotent(self):
        df = pl.DataFrame({"site_name": ["Winter Cove", "Hotsprings Cove", "Sechelt Inlet"]})
        once = redact_measurements(df, DENIED_NAMES)
        assert once.equals(redact_measurements(once, DENIED_NAMES))
        assert once["site_name"].to_list() == ["Hotsprings Cove"]

    def test_alias_spelled_entry_matches_canonical_name(self):
        df = pl.DataFrame({"site_name": ["Campbell River", "Hotsprings Cove", "campbell  river"]})
        aliases = {"Campbell River Aquarium": "Campbell River"}
        out = redact_measurements(df, ["campbell river aquarium"], aliases)
        assert out["site_name"].to_list() == ["Hotsprings Cove"]

    def test_alias_spelled_row_matches_canonical_entry(self):
        df = pl.DataFrame({"site_name": ["Hot Spring Cove", "Campbell River"]})
        out = redact_measurements(df, ["Hotsprings Cove"], {"Hot Spring Cove": "Hotsprings Cove"})
        assert out["site_name"].to_list() == ["Campbell River"]


class TestFindListDivergence:
    def test_denied_code_without_name_reported(self, stations_df):
        result = find_list_divergence(stations_df, DENIED_CODES, DENIED_NAMES)
        assert result["codes_without_name"] == ["PRI"]
        assert result["names_without_code"] == []
        assert result["unknown_codes"] == ["BOO", "LYA", "MAS", "PDH", "POW", "WIN"]
        assert "sechelt inlet" in result["unknown_names"]

    def test_denied_name_without_code_reported(self, stations_df):
        result = find_list_divergence(stations_df, ["PRP"], ["Pender Harbour", "Hotsprings Cove"])
        assert result["names_without_code"] == ["Hotsprings Cove"]
        assert result["codes_without_name"] == []

    def test_aliases_applied_to_names(self, stations_df):
        result = find_list_divergence(
            stations_df,
            ["HSC"],
            ["Hot Spring Cove"],
            {"Hot Spring Cove": "Hotsprings Cove"},
        )
        assert not any(result.values())

    def test_consistent_lists(self, stations_df):
        result = find_list_divergence(stations_df, ["prp"], ["pender harbour"])
        assert result == {
            "codes_without_name": [],
            "names_without_code": [],
            "unknown_codes": [],
            "unknown_names": [],
        }
