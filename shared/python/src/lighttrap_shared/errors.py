"""
errors.py — Exception taxonomy for the release pipeline.

Every failure the pipeline reports derives from PipelineError and carries
enough context (file, row, offending values) for an operator to fix the
input and rerun. None of these are retried.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any


class PipelineError(Exception):
    """Base class for all fatal pipeline errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context

    def log_fields(self) -> dict[str, Any]:
        """Context as structlog-friendly key/values."""
        return {k: str(v) if isinstance(v, Path) else v for k, v in self.context.items()}


class ConfigError(PipelineError):
    """The release config is missing, unparsable, or inconsistent."""


class MissingSourceError(PipelineError):
    """A configured input file does not exist."""

    def __init__(self, path: Path, *, kind: str, year: int | None = None) -> None:
        where = f" for {year}" if year is not None else ""
        super().__init__(
            f"{kind} source file{where} not found: {path}",
            path=path,
            kind=kind,
            year=year,
        )
        self.path = path


class SchemaMismatchError(PipelineError):
    """A source file lacks required columns (or maps two headers to one)."""

    def __init__(
        self,
        path: Path | str,
        *,
        missing: Iterable[str] = (),
        duplicated: Iterable[str] = (),
        year: int | None = None,
    ) -> None:
        self.missing = sorted(missing)
        self.duplicated = sorted(duplicated)
        parts = []
        if self.missing:
            parts.append(f"missing required columns {self.missing}")
        if self.duplicated:
            parts.append(f"several headers map to {self.duplicated}")
        where = f" ({year})" if year is not None else ""
        super().__init__(
            f"Schema mismatch in {path}{where}: {'; '.join(parts)}",
            path=path,
            year=year,
            missing=self.missing,
            duplicated=self.duplicated,
        )


class RecordValidationError(PipelineError):
    """A single source row failed validation."""

    def __init__(self, source_file: str | None, source_row: int | None, detail: str) -> None:
        super().__init__(
            f"Invalid record at {source_file}:{source_row}: {detail}",
            source_file=source_file,
            source_row=source_row,
            detail=detail,
        )
        self.source_file = source_file
        self.source_row = source_row


class JoinGapError(PipelineError):
    """Records reference sites that the station table does not know."""

    def __init__(
        self,
        sites: Iterable[str],
        *,
        key: str,
        rows: int,
        source_file: str | None = None,
        source_row: int | None = None,
    ) -> None:
        self.sites = sorted(sites)
        super().__init__(
            f"{rows} record(s) have no station match on {key}: {', '.join(self.sites)} "
            f"(first at {source_file}:{source_row})",
            sites=self.sites,
            key=key,
            rows=rows,
            source_file=source_file,
            source_row=source_row,
        )


class UnknownQCCodeError(PipelineError):
    """A QC code outside the configured accepted/excluded enumeration."""

    def __init__(
        self,
        code: str | None,
        *,
        rows: int,
        source_file: str | None = None,
        source_row: int | None = None,
    ) -> None:
        self.code = code
        shown = "<blank>" if code is None else repr(code)
        super().__init__(
            f"Unknown QC code {shown} on {rows} row(s) (first at {source_file}:{source_row})",
            code=code,
            rows=rows,
            source_file=source_file,
            source_row=source_row,
        )


class VisitKeyCollisionError(PipelineError):
    """Two distinct count rows derive the same visit key."""

    def __init__(
        self,
        keys: Iterable[str],
        *,
        rows: int,
        source_file: str | None = None,
        source_row: int | None = None,
        other_source_file: str | None = None,
        other_source_row: int | None = None,
    ) -> None:
        self.keys = sorted(keys)
        preview = ", ".join(self.keys[:10])
        super().__init__(
            f"{len(self.keys)} visit key(s) shared by {rows} distinct count rows: {preview} "
            f"(first at {source_file}:{source_row}, clashes with "
            f"{other_source_file}:{other_source_row})",
            keys=self.keys,
            rows=rows,
            source_file=source_file,
            source_row=source_row,
            other_source_file=other_source_file,
            other_source_row=other_source_row,
        )


class WriteFailureError(PipelineError):
    """An output table could not be written; no partial file is left."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to write {path}: {reason}", path=path, reason=reason)
        self.path = path
