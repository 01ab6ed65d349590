"""
sources/stations.py — Station metadata table (Master_Stations.csv).

One row per light-trap station: code, name, operating organization and
coordinates. The table is loaded once per run and is the reference every
count and measurement is joined against, so it is held to stricter rules
than the yearly files:

  - site_code unique (compared upper-case)
  - site_name unique after whitespace collapse and case folding
  - latitude/longitude present and in range

Usage:
    stations = await StationSource(Path("Master_Stations.csv")).run()
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl

from lighttrap_shared.constants import (
    SOURCE_FILE_COL,
    SOURCE_ROW_COL,
    STATION_COLUMN_ALIASES,
    STATION_OPTIONAL_COLUMNS,
    STATION_REQUIRED_COLUMNS,
)
from lighttrap_shared.errors import RecordValidationError
from lighttrap_shared.models import StationRecord
from lighttrap_pipeline.sources.base import BaseSource
from lighttrap_pipeline.transforms.normalize import (
    clean_string_columns,
    drop_all_null_rows,
    site_match_key,
)

STATION_SCHEMA: dict[str, pl.DataType | type[pl.DataType]] = {
    "site_code": pl.String,
    "site_name": pl.String,
    "organization": pl.String,
    "latitude": pl.Float64,
    "longitude": pl.Float64,
    SOURCE_FILE_COL: pl.String,
    SOURCE_ROW_COL: pl.Int64,
}


class StationSource(BaseSource):
    """Station metadata CSV → validated station table."""

    name = "stations"

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = Path(path)

    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        df = self._read_csv(self._path, kind="stations")
        df = self._normalize_columns(
            df,
            STATION_COLUMN_ALIASES,
            (*STATION_REQUIRED_COLUMNS, *STATION_OPTIONAL_COLUMNS),
            path=self._path,
        )
        df = self._align_to_schema(
            df, STATION_REQUIRED_COLUMNS, STATION_OPTIONAL_COLUMNS, path=self._path
        )
        return clean_string_columns(df)

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        df = self._validate_rows(drop_all_null_rows(raw), StationRecord, STATION_SCHEMA)
        self._check_unique(df, "site_code", lambda v: v)
        self._check_unique(df, "site_name", site_match_key)
        return df

    def get_metadata(self) -> dict[str, Any]:
        return {"source_name": self.name, "path": str(self._path)}

    @staticmethod
    def _check_unique(df: pl.DataFrame, column: str, key: Any) -> None:
        """Raise on the second row whose key(column) was already seen."""
        seen: dict[str, int] = {}
        for value, src_file, src_row in zip(
            df[column], df[SOURCE_FILE_COL], df[SOURCE_ROW_COL]
        ):
            k = key(value)
            if k in seen:
                raise RecordValidationError(
                    src_file,
                    src_row,
                    f"duplicate {column} {value!r} (first seen at row {seen[k]})",
                )
            seen[k] = src_row
