"""
tests/test_transforms/test_qaqc.py — Tests for the QC partition.
"""

from __future__ import annotations

import polars as pl
import pytest

from lighttrap_shared.errors import UnknownQCCodeError
from lighttrap_pipeline.transforms.qaqc import partition_by_qc


def _counts(codes: list[str | None]) -> pl.DataFrame:
    n = len(codes)
    return pl.DataFrame(
        {
            "site_code": [f"S{i}" for i in range(n)],
            "qc_code": codes,
            "source_file": ["2023.csv"] * n,
            "source_row": list(range(2, n + 2)),
        },
        schema_overrides={"qc_code": pl.String},
    )


class TestPartitionByQC:
    def test_scenario_none_hrs_bat_met(self, qc_policy):
        parts = partition_by_qc(_counts(["none", "HRS", "BAT", "MET"]), qc_policy)
        assert parts.accepted["qc_code"].to_list() == ["NONE", "HRS", "BAT"]
        assert parts.excluded["qc_code"].to_list() == ["MET"]

    def test_partition_total_and_disjoint(self, qc_policy):
        df = _counts(["NONE", "MET", "SUB", "DNF", "ERR", "HRS", "INC", "none"])
        parts = partition_by_qc(df, qc_policy)
        assert parts.total == df.height
        accepted = set(parts.accepted["site_code"].to_list())
        excluded = set(parts.excluded["site_code"].to_list())
        assert accepted.isdisjoint(excluded)
        assert accepted | excluded == set(df["site_code"].to_list())

    def test_order_preserved(self, qc_policy):
        parts = partition_by_qc(_counts(["SUB", "MET", "NONE", "HRS"]), qc_policy)
        assert parts.accepted["site_code"].to_list() == ["S0", "S2", "S3"]

    @pytest.mark.parametrize("raw", ["None", "none", " NONE ", "NONE"])
    def test_codes_normalised(self, qc_policy, raw):
        parts = partition_by_qc(_counts([raw]), qc_policy)
        assert parts.accepted["qc_code"].to_list() == ["NONE"]

    def test_excluded_gain_reason(self, qc_policy):
        parts = partition_by_qc(_counts(["NONE", "DNF"]), qc_policy)
        assert parts.excluded["qc_reason"].to_list() == ["Trap did not fish properly"]
        assert "qc_reason" not in parts.accepted.columns

    def test_policy_description_overrides_catalogue(self, qc_policy):
        policy = qc_policy.model_copy(update={"descriptions": {"MET": "No effort recorded"}})
        parts = partition_by_qc(_counts(["MET"]), policy)
        assert parts.excluded["qc_reason"].to_list() == ["No effort recorded"]

    def test_unknown_code_reports_count_and_location(self, qc_policy):
        with pytest.raises(UnknownQCCodeError) as excinfo:
            partition_by_qc(_counts(["NONE", "xyz", "HRS", "XYZ"]), qc_policy)
        err = excinfo.value
        assert err.code == "XYZ"
        assert err.context["rows"] == 2
        assert err.context["source_row"] == 3

    def test_blank_code_is_unknown(self, qc_policy):
        with pytest.raises(UnknownQCCodeError) as excinfo:
            partition_by_qc(_counts(["NONE", None]), qc_policy)
        assert excinfo.value.code is None
        assert excinfo.value.context["source_row"] == 3

    def test_empty_input(self, qc_policy):
        parts = partition_by_qc(_counts([]), qc_policy)
        assert parts.accepted.is_empty()
        assert parts.excluded.is_empty()
        assert "qc_reason" in parts.excluded.columns
