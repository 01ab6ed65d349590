"""
tests/test_sources/test_yearly.py — Tests for the yearly count/measurement sources.
"""

from __future__ import annotations

from datetime import date

import polars as pl
import pytest

from lighttrap_shared.errors import (
    MissingSourceError,
    RecordValidationError,
    SchemaMismatchError,
    VisitKeyCollisionError,
)
from lighttrap_pipeline.sources.yearly import CountSource, MeasurementSource

COUNT_HEADER = (
    "Code,Date,Nights_Fished,Hours_Fished,Metacarcinus_magister_megalopae,"
    "Metacarcinus_magister_instar,Error_Code\n"
)


class TestHeaderNormalisation:
    """BaseSource._to_snake_case() on the R-era headers."""

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Error_Code", "error_code"),
            ("TotalMmagister", "total_mmagister"),
            ("CPUE_Night", "cpue_night"),
            ("QAQC_Code", "qaqc_code"),
            ("Hours Fished", "hours_fished"),
            ("\ufeffCode", "code"),
            ("CW_mm", "cw_mm"),
        ],
    )
    def test_snake_case(self, header, expected):
        assert CountSource._to_snake_case(header) == expected


class TestCountSourceFixtures:
    @pytest.fixture
    def source(self, fixture_path):
        return CountSource(
            {
                2024: fixture_path / "2024_CountData_QC.csv",
                2023: fixture_path / "2023_CountData_QC.csv",
            },
            visit_key_prefix="SOC",
        )

    @pytest.mark.asyncio
    async def test_years_concatenated_in_ascending_order(self, source):
        df = await source.run()
        assert df["year"].to_list() == [2023] * 5 + [2024] * 3

    @pytest.mark.asyncio
    async def test_trailing_blank_row_dropped(self, source):
        df = await source.run()
        assert df.height == 8

    @pytest.mark.asyncio
    async def test_extra_columns_dropped(self, source):
        df = await source.run()
        for col in ("battery", "submissionid", "comments", "site"):
            assert col not in df.columns

    @pytest.mark.asyncio
    async def test_missing_optional_columns_derived(self, source):
        df = await source.run()
        row = df.filter(pl.col("visit_key") == "SOC-CRA-2024-6-10").row(0, named=True)
        assert row["year"] == 2024
        assert row["month"] == 6
        assert row["total_count"] == 24
        assert row["cpue_per_night"] == pytest.approx(12.0)
        assert row["cpue_per_hour"] == pytest.approx(0.5)
        assert row["weather"] is None

    @pytest.mark.asyncio
    async def test_typed_schema(self, source):
        df = await source.run()
        assert df.schema["date"] == pl.Date
        assert df.schema["megalopae_count"] == pl.Int64
        assert df.schema["hours_fished"] == pl.Float64
        assert df["date"][0] == date(2023, 6, 5)

    @pytest.mark.asyncio
    async def test_visit_keys_assigned(self, source):
        df = await source.run()
        assert df["visit_key"].to_list()[:3] == [
            "SOC-CRA-2023-6-5",
            "SOC-CRA-2023-6-6",
            "SOC-HSC-2023-6-5",
        ]

    @pytest.mark.asyncio
    async def test_provenance_kept(self, source, fixture_path):
        df = await source.run()
        first = df.row(0, named=True)
        assert first["source_file"] == str(fixture_path / "2023_CountData_QC.csv")
        assert first["source_row"] == 2

    def test_metadata_lists_years_in_order(self, source):
        meta = source.get_metadata()
        assert meta["source_name"] == "counts"
        assert list(meta["files"]) == ["2023", "2024"]


class TestCountSourceErrors:
    @pytest.mark.asyncio
    async def test_missing_required_column_names_year_and_column(self, write_csv):
        path = write_csv(
            "2022.csv",
            "Code,Date,Nights_Fished,Hours_Fished,Metacarcinus_magister_megalopae\n"
            "CRA,2022-06-01,1,24,3\n",
        )
        with pytest.raises(SchemaMismatchError) as excinfo:
            await CountSource({2022: path}).run()
        assert "instar_count" in excinfo.value.missing
        assert "qc_code" in excinfo.value.missing
        assert excinfo.value.context["year"] == 2022

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(MissingSourceError):
            await CountSource({2022: tmp_path / "nope.csv"}).run()

    @pytest.mark.asyncio
    async def test_total_mismatch_names_row(self, write_csv):
        path = write_csv(
            "2022.csv",
            "Code,Date,Nights_Fished,Hours_Fished,Metacarcinus_magister_megalopae,"
            "Metacarcinus_magister_instar,TotalMmagister,Error_Code\n"
            "CRA,2022-06-01,1,24,3,1,4,NONE\n"
            "CRA,2022-06-02,1,24,3,1,5,NONE\n",
        )
        with pytest.raises(RecordValidationError) as excinfo:
            await CountSource({2022: path}).run()
        assert excinfo.value.source_row == 3
        assert "total_count" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_exact_duplicates_collapse(self, write_csv):
        path = write_csv(
            "2022.csv",
            COUNT_HEADER
            + "CRA,2022-06-01,1,24,3,1,NONE\n"
            + "CRA,2022-06-01,1,24,3,1,NONE\n",
        )
        df = await CountSource({2022: path}).run()
        assert df.height == 1

    @pytest.mark.asyncio
    async def test_conflicting_rows_for_one_visit(self, write_csv):
        path = write_csv(
            "2022.csv",
            COUNT_HEADER
            + "CRA,2022-06-01,1,24,3,1,NONE\n"
            + "CRA,2022-06-01,1,24,9,1,NONE\n",
        )
        with pytest.raises(VisitKeyCollisionError) as excinfo:
            await CountSource({2022: path}).run()
        assert excinfo.value.keys == ["SOC-CRA-2022-6-1"]
        assert excinfo.value.context["source_row"] == 2
        assert excinfo.value.context["other_source_row"] == 3
        assert excinfo.value.context["source_file"] == str(path)

    @pytest.mark.asyncio
    async def test_no_files_gives_empty_table(self):
        df = await CountSource({}).run()
        assert df.is_empty()
        assert "visit_key" in df.columns


class TestMeasurementSource:
    @pytest.mark.asyncio
    async def test_header_drift_and_blank_widths(self, fixture_path):
        source = MeasurementSource(
            {
                2023: fixture_path / "2023_Megalopae_Carapace_Widths.csv",
                2024: fixture_path / "2024_Megalopae_Carapace_Widths.csv",
            }
        )
        df = await source.run()
        assert df.height == 6
        assert df["carapace_width_mm"].null_count() == 0
        assert df["site_name"][0] == "Campbell River Aquarium"
        assert df["date"][-1] == date(2024, 6, 12)

    @pytest.mark.asyncio
    async def test_non_positive_width_rejected(self, write_csv):
        path = write_csv("m.csv", "site,date,carapace_width\nCampbell River,2023-06-05,0\n")
        with pytest.raises(RecordValidationError):
            await MeasurementSource({2023: path}).run()
