"""
sources/base.py — Abstract base class for all source-file adapters.

Each concrete source must implement:
  extract()      — read the raw file(s), return an all-String polars DataFrame
  transform()    — validate rows and return the typed standard schema
  get_metadata() — return dict with source info for the run manifest

The run() method orchestrates extract → transform → return and handles
timing/logging automatically. Pipelines call run() rather than the
individual methods.

Shared helpers cover the schema-drift handling every source needs:
header normalisation, alias mapping, required/optional column alignment,
and row-by-row model validation that names the offending file and line.
"""

from __future__ import annotations

import re
import time
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import polars as pl
from pydantic import BaseModel, ValidationError

from lighttrap_shared.constants import (
    NULL_MARKERS,
    PROVENANCE_COLUMNS,
    SOURCE_FILE_COL,
    SOURCE_ROW_COL,
)
from lighttrap_shared.errors import (
    MissingSourceError,
    PipelineError,
    RecordValidationError,
    SchemaMismatchError,
)
from lighttrap_shared.models.fields import describe_validation_error
from lighttrap_pipeline.utils.logging import get_logger

log = get_logger(__name__)


class BaseSource(ABC):
    """Abstract base for all light-trap source adapters."""

    # Override in subclass — used for logging and the run manifest
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Abstract interface — subclasses must implement all three
    # ------------------------------------------------------------------

    @abstractmethod
    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """
        Read the raw source file(s).

        Implementations should:
        - Read every column as String (no type inference across years)
        - Normalise headers to canonical snake_case names
        - Keep source_file / source_row provenance columns

        Returns:
            Raw polars DataFrame.
        """
        ...

    @abstractmethod
    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Validate and type a raw DataFrame into the standard schema.

        Args:
            raw: DataFrame returned by extract().

        Returns:
            Typed polars DataFrame, provenance columns still attached.
        """
        ...

    @abstractmethod
    def get_metadata(self) -> dict[str, Any]:
        """
        Return source-level metadata for the run manifest.

        Should include at minimum: source_name and the input file paths.
        """
        ...

    # ------------------------------------------------------------------
    # Orchestration — pipelines call this
    # ------------------------------------------------------------------

    async def run(self, **kwargs: Any) -> pl.DataFrame:
        """
        Extract + transform in sequence with timing and structured logging.

        Raises:
            PipelineError subclasses (and anything unexpected) after logging.
        """
        run_log = self._log.bind(**{k: str(v) for k, v in kwargs.items()})
        run_log.info("source_run_start")

        t0 = time.monotonic()
        try:
            raw = await self.extract(**kwargs)
            extract_ms = int((time.monotonic() - t0) * 1000)
            run_log.info(
                "extract_complete",
                raw_rows=len(raw),
                raw_cols=raw.width,
                duration_ms=extract_ms,
            )

            t1 = time.monotonic()
            result = self.transform(raw)
            transform_ms = int((time.monotonic() - t1) * 1000)
            run_log.info(
                "transform_complete",
                result_rows=len(result),
                result_cols=result.width,
                duration_ms=transform_ms,
            )

            run_log.info(
                "source_run_complete",
                total_duration_ms=int((time.monotonic() - t0) * 1000),
                output_rows=len(result),
            )
            return result

        except PipelineError as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=int((time.monotonic() - t0) * 1000),
                **exc.log_fields(),
            )
            raise
        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
                exc_info=True,
            )
            raise

    # ------------------------------------------------------------------
    # Shared helpers available to all subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _to_snake_case(name: str) -> str:
        """Convert 'Error_Code', 'TotalMmagister' or 'Hours Fished' to snake_case."""
        s = name.replace("\ufeff", "").strip()
        s = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", s)
        s = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s)
        s = re.sub(r"[\s\-.]+", "_", s.lower())
        return re.sub(r"_+", "_", s).strip("_")

    @staticmethod
    def _read_csv(path: Path, *, kind: str, year: int | None = None) -> pl.DataFrame:
        """
        Read a delimited file with every column as String.

        Adds source_file and source_row (1-based line number in the file,
        header = line 1) so later errors can point at the exact line.
        """
        if not path.is_file():
            raise MissingSourceError(path, kind=kind, year=year)

        try:
            df = pl.read_csv(
                path,
                infer_schema_length=0,
                null_values=NULL_MARKERS,
            )
        except pl.exceptions.NoDataError as exc:
            raise SchemaMismatchError(path, missing=["<header row>"], year=year) from exc
        except pl.exceptions.ComputeError as exc:
            raise RecordValidationError(str(path), None, f"unreadable CSV: {exc}") from exc
        return df.with_row_index(SOURCE_ROW_COL, offset=2).with_columns(
            pl.col(SOURCE_ROW_COL).cast(pl.Int64),
            pl.lit(str(path)).alias(SOURCE_FILE_COL),
        )

    def _normalize_columns(
        self,
        df: pl.DataFrame,
        aliases: Mapping[str, str],
        wanted: Iterable[str],
        *,
        path: Path,
        year: int | None = None,
    ) -> pl.DataFrame:
        """
        Rename headers to canonical names: snake_case first, then aliases.

        Headers that collapse onto the same canonical name are an error when
        that name is wanted; otherwise the clashing columns are dropped.
        """
        wanted_set = set(wanted)
        targets: dict[str, str] = {}
        for col in df.columns:
            if col in PROVENANCE_COLUMNS:
                continue
            snake = self._to_snake_case(col)
            targets[col] = aliases.get(snake, snake)

        counts = Counter(targets.values())
        clashes = {t for t, n in counts.items() if n > 1}
        wanted_clashes = clashes & wanted_set
        if wanted_clashes:
            raise SchemaMismatchError(path, duplicated=wanted_clashes, year=year)

        drop = [c for c, t in targets.items() if t in clashes]
        if drop:
            self._log.debug("ambiguous_columns_dropped", path=str(path), columns=drop)
        return df.drop(drop).rename({c: t for c, t in targets.items() if c not in drop})

    def _align_to_schema(
        self,
        df: pl.DataFrame,
        required: Iterable[str],
        optional: Iterable[str],
        *,
        path: Path,
        year: int | None = None,
    ) -> pl.DataFrame:
        """
        Select the canonical columns in canonical order.

        Missing required columns raise SchemaMismatchError; missing optional
        columns are null-filled; anything else is dropped.
        """
        required = list(required)
        optional = list(optional)
        present = set(df.columns)

        missing = [c for c in required if c not in present]
        if missing:
            raise SchemaMismatchError(path, missing=missing, year=year)

        keep = {*required, *optional, *PROVENANCE_COLUMNS}
        extras = [c for c in df.columns if c not in keep]
        if extras:
            self._log.debug("columns_dropped", path=str(path), year=year, columns=extras)

        filled = [c for c in optional if c not in present]
        if filled:
            self._log.debug("columns_null_filled", path=str(path), year=year, columns=filled)
            df = df.with_columns([pl.lit(None, dtype=pl.String).alias(c) for c in filled])

        return df.select([*required, *optional, *PROVENANCE_COLUMNS])

    @staticmethod
    def _validate_rows(
        df: pl.DataFrame,
        model: type[BaseModel],
        schema: Mapping[str, pl.DataType | type[pl.DataType]],
    ) -> pl.DataFrame:
        """
        Validate each row through a record model and build a typed frame.

        Raises:
            RecordValidationError naming the first offending file and line.
        """
        records: list[dict[str, Any]] = []
        for row in df.iter_rows(named=True):
            try:
                record = model.model_validate(row)
            except ValidationError as exc:
                raise RecordValidationError(
                    row.get(SOURCE_FILE_COL),
                    row.get(SOURCE_ROW_COL),
                    describe_validation_error(exc),
                ) from exc
            out = record.model_dump()
            out[SOURCE_FILE_COL] = row.get(SOURCE_FILE_COL)
            out[SOURCE_ROW_COL] = row.get(SOURCE_ROW_COL)
            records.append(out)

        return pl.DataFrame(records, schema=dict(schema))
