"""
sources/yearly.py — Per-year count and carapace-width source files.

Partners submit one file per year per record kind, and the layout drifts
between years (2024 carried Battery/submissionid/Comments, 2025 a leading
row-index column, header spellings vary). Each source:

  1. reads every year's file in parallel (asyncio.to_thread), all String
  2. maps headers onto canonical names through the alias tables
  3. aligns to the required/optional column set (SchemaMismatchError when
     a required column is absent for any year)
  4. concatenates in ascending year order
  5. validates each row through its record model

Input layout (R-era headers, aliases applied):
  counts:       Code, Site, Year, Month, Date, Nights_Fished, Hours_Fished,
                Weather, Subsample, Metacarcinus_magister_megalopae,
                Metacarcinus_magister_instar, TotalMmagister, CPUE_Night,
                CPUE_Hour, Error_Code
  measurements: site, date, carapace_width

Usage:
    source = CountSource({2022: Path("2022_CountData_QC.csv"), ...}, visit_key_prefix="SOC")
    counts = await source.run()

    measurements = await MeasurementSource({2023: Path(...)}).run()
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

import polars as pl
from pydantic import BaseModel

from lighttrap_shared.constants import (
    COUNT_COLUMN_ALIASES,
    COUNT_OPTIONAL_COLUMNS,
    COUNT_REQUIRED_COLUMNS,
    DEFAULT_VISIT_KEY_PREFIX,
    MEASUREMENT_COLUMN_ALIASES,
    MEASUREMENT_OPTIONAL_COLUMNS,
    MEASUREMENT_REQUIRED_COLUMNS,
    SOURCE_FILE_COL,
    SOURCE_ROW_COL,
)
from lighttrap_shared.models import CountRecord, MeasurementRecord
from lighttrap_pipeline.sources.base import BaseSource
from lighttrap_pipeline.transforms.normalize import (
    clean_string_columns,
    deduplicate_rows,
    drop_all_null_rows,
)
from lighttrap_pipeline.transforms.visits import add_visit_key, assert_unique_visits

_PROVENANCE_SCHEMA: dict[str, pl.DataType | type[pl.DataType]] = {
    SOURCE_FILE_COL: pl.String,
    SOURCE_ROW_COL: pl.Int64,
}

COUNT_SCHEMA: dict[str, pl.DataType | type[pl.DataType]] = {
    "site_code": pl.String,
    "date": pl.Date,
    "year": pl.Int64,
    "month": pl.Int64,
    "nights_fished": pl.Float64,
    "hours_fished": pl.Float64,
    "weather": pl.String,
    "subsample_flag": pl.String,
    "megalopae_count": pl.Int64,
    "instar_count": pl.Int64,
    "total_count": pl.Int64,
    "cpue_per_night": pl.Float64,
    "cpue_per_hour": pl.Float64,
    "qc_code": pl.String,
    **_PROVENANCE_SCHEMA,
}

MEASUREMENT_SCHEMA: dict[str, pl.DataType | type[pl.DataType]] = {
    "site_name": pl.String,
    "date": pl.Date,
    "carapace_width_mm": pl.Float64,
    **_PROVENANCE_SCHEMA,
}


class YearlyTableSource(BaseSource):
    """Reads {year: path} files of one record kind into one typed table."""

    kind: ClassVar[str]
    model: ClassVar[type[BaseModel]]
    aliases: ClassVar[Mapping[str, str]]
    required: ClassVar[tuple[str, ...]]
    optional: ClassVar[tuple[str, ...]]
    schema: ClassVar[Mapping[str, pl.DataType | type[pl.DataType]]]

    def __init__(self, files: Mapping[int, Path]) -> None:
        super().__init__()
        self._files = {int(y): Path(p) for y, p in files.items()}

    @property
    def years(self) -> list[int]:
        return sorted(self._files)

    # ------------------------------------------------------------------
    # BaseSource interface
    # ------------------------------------------------------------------

    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """Read all year files concurrently; concatenate in year order."""
        if not self._files:
            self._log.warning("no_source_files", kind=self.kind)
            return pl.DataFrame(
                schema={
                    **{c: pl.String for c in (*self.required, *self.optional)},
                    **_PROVENANCE_SCHEMA,
                }
            )

        frames = await asyncio.gather(
            *(asyncio.to_thread(self._read_year, y, self._files[y]) for y in self.years)
        )
        return pl.concat(frames, how="vertical")

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        df = drop_all_null_rows(raw)
        if len(df) != len(raw):
            self._log.debug("blank_rows_dropped", dropped=len(raw) - len(df))
        return self._validate_rows(df, self.model, self.schema)

    def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "kind": self.kind,
            "files": {str(y): str(self._files[y]) for y in self.years},
        }

    # ------------------------------------------------------------------
    # Per-year read (runs in a worker thread)
    # ------------------------------------------------------------------

    def _read_year(self, year: int, path: Path) -> pl.DataFrame:
        df = self._read_csv(path, kind=self.kind, year=year)
        df = self._normalize_columns(
            df,
            self.aliases,
            (*self.required, *self.optional),
            path=path,
            year=year,
        )
        df = self._align_to_schema(df, self.required, self.optional, path=path, year=year)
        df = clean_string_columns(df)
        self._log.debug("year_read", year=year, path=str(path), rows=len(df))
        return df


class CountSource(YearlyTableSource):
    """Yearly light-trap count files → typed counts with visit keys."""

    name = "counts"
    kind = "counts"
    model = CountRecord
    aliases = COUNT_COLUMN_ALIASES
    required = COUNT_REQUIRED_COLUMNS
    optional = COUNT_OPTIONAL_COLUMNS
    schema = COUNT_SCHEMA

    def __init__(
        self,
        files: Mapping[int, Path],
        *,
        visit_key_prefix: str = DEFAULT_VISIT_KEY_PREFIX,
    ) -> None:
        super().__init__(files)
        self._prefix = visit_key_prefix

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        df = super().transform(raw)
        df = deduplicate_rows(df, table=self.kind)
        df = add_visit_key(df, self._prefix)
        assert_unique_visits(df)
        return df


class MeasurementSource(YearlyTableSource):
    """Yearly carapace-width files → typed measurements (blank widths dropped)."""

    name = "measurements"
    kind = "measurements"
    model = MeasurementRecord
    aliases = MEASUREMENT_COLUMN_ALIASES
    required = MEASUREMENT_REQUIRED_COLUMNS
    optional = MEASUREMENT_OPTIONAL_COLUMNS
    schema = MEASUREMENT_SCHEMA

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        df = super().transform(raw)
        blank = df.filter(pl.col("carapace_width_mm").is_null())
        if not blank.is_empty():
            self._log.warning(
                "blank_widths_dropped",
                rows=blank.height,
                first_file=blank[SOURCE_FILE_COL][0],
                first_row=blank[SOURCE_ROW_COL][0],
            )
            df = df.filter(pl.col("carapace_width_mm").is_not_null())
        return df

