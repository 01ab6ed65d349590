"""
loaders/csv_writer.py — Atomic, deterministic CSV writer for release tables.

All pipelines funnel their output tables through this module. The writer:
  - Selects the table's published columns in fixed order (provenance and
    working columns never reach disk)
  - Renders nulls as "NA" and dates as ISO strings, no timestamps
  - Writes to a temp file in the target directory, fsyncs, then os.replace
    so readers only ever see a complete file
  - Holds a FileLock on the output directory for the whole release
  - Returns a WriteResult with row count, sha256 and timing

Usage:
    from lighttrap_pipeline.loaders.csv_writer import CSVWriter

    writer = CSVWriter(Path("output"))
    with writer.locked():
        result = writer.write("counts_public", df, COUNT_OUTPUT_COLUMNS)
        writer.write_manifest({"run_id": run_id, "tables": {...}})
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import polars as pl
from filelock import FileLock, Timeout

from lighttrap_shared.config import settings
from lighttrap_shared.constants import LOCK_FILE, MANIFEST_FILE, OUTPUT_FILES, OUTPUT_NULL_VALUE
from lighttrap_shared.errors import WriteFailureError
from lighttrap_pipeline.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class WriteResult:
    """Summary of one written file."""

    table: str
    path: Path
    rows: int = 0
    sha256: str = ""
    size_bytes: int = 0
    duration_ms: int = 0

    def to_manifest(self) -> dict[str, Any]:
        return {
            "file": self.path.name,
            "rows": self.rows,
            "sha256": self.sha256,
            "bytes": self.size_bytes,
        }


class CSVWriter:
    """Writes release tables into one output directory."""

    def __init__(self, output_dir: Path, *, lock_timeout: float | None = None) -> None:
        self._output_dir = Path(output_dir)
        self._lock_timeout = settings.lock_timeout_s if lock_timeout is None else lock_timeout

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def path_for(self, table: str) -> Path:
        return self._output_dir / OUTPUT_FILES[table]

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[None]:
        """
        Hold the output directory's lock file.

        Raises:
            WriteFailureError: directory cannot be created, or another run
                holds the lock past the timeout.
        """
        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteFailureError(self._output_dir, str(exc)) from exc

        lock_path = self._output_dir / LOCK_FILE
        lock = FileLock(str(lock_path), timeout=self._lock_timeout)
        try:
            lock.acquire()
        except Timeout as exc:
            raise WriteFailureError(
                lock_path,
                f"output directory locked by another run (waited {self._lock_timeout}s)",
            ) from exc
        log.debug("output_lock_acquired", path=str(lock_path))
        try:
            yield
        finally:
            lock.release()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write(self, table: str, df: pl.DataFrame, columns: Sequence[str]) -> WriteResult:
        """Write df's columns (in order) to the table's fixed file name."""
        t0 = time.monotonic()
        path = self.path_for(table)
        payload = df.select(list(columns)).write_csv(
            None,
            null_value=OUTPUT_NULL_VALUE,
            date_format="%Y-%m-%d",
        )
        data = payload.encode("utf-8")
        self._write_atomic(path, data)

        result = WriteResult(
            table=table,
            path=path,
            rows=df.height,
            sha256=hashlib.sha256(data).hexdigest(),
            size_bytes=len(data),
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        log.info(
            "write_complete",
            table=table,
            path=str(path),
            rows=result.rows,
            sha256=result.sha256[:12],
        )
        return result

    def write_manifest(self, manifest: dict[str, Any]) -> WriteResult:
        """Write run_manifest.json (sorted keys, trailing newline)."""
        t0 = time.monotonic()
        path = self._output_dir / MANIFEST_FILE
        data = (json.dumps(manifest, indent=2, sort_keys=True, default=str) + "\n").encode(
            "utf-8"
        )
        self._write_atomic(path, data)
        log.info("manifest_written", path=str(path))
        return WriteResult(
            table="manifest",
            path=path,
            sha256=hashlib.sha256(data).hexdigest(),
            size_bytes=len(data),
            duration_ms=int((time.monotonic() - t0) * 1000),
        )

    @staticmethod
    def _write_atomic(path: Path, data: bytes) -> None:
        """Temp file beside path, fsync, os.replace; no partial file on failure."""
        tmp_name: str | None = None
        try:
            with tempfile.NamedTemporaryFile(
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            log.error("write_failed", path=str(path), error=str(exc))
            raise WriteFailureError(path, str(exc)) from exc


def read_manifest(output_dir: Path) -> dict[str, Any] | None:
    """Return the last run's manifest from output_dir, or None if absent."""
    path = Path(output_dir) / MANIFEST_FILE
    if not path.is_file():
        return None
    return json.loads(path.read_text(encoding="utf-8"))
