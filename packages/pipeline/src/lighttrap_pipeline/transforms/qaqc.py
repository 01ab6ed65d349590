"""
transforms/qaqc.py — Partition counts by their QC code.

The accepted and excluded code sets come from the release config; see
QCPolicy. Codes are compared stripped and upper-cased, so "None", "none"
and " NONE " are the same code. Every row lands in exactly one side; a
blank or unknown code stops the run.

Usage:
    from lighttrap_pipeline.transforms.qaqc import partition_by_qc

    parts = partition_by_qc(counts, config.qc)
    parts.accepted   # → counts_master
    parts.excluded   # → counts_excluded (with qc_reason)
"""

from __future__ import annotations

from dataclasses import dataclass

import polars as pl

from lighttrap_shared.config import QCPolicy
from lighttrap_shared.constants import SOURCE_FILE_COL, SOURCE_ROW_COL
from lighttrap_shared.errors import UnknownQCCodeError
from lighttrap_pipeline.utils.logging import get_logger

log = get_logger(__name__)

QC_COL = "qc_code"
QC_REASON_COL = "qc_reason"


@dataclass
class QCPartition:
    accepted: pl.DataFrame
    excluded: pl.DataFrame

    @property
    def total(self) -> int:
        return self.accepted.height + self.excluded.height


def _first_location(df: pl.DataFrame) -> tuple[str | None, int | None]:
    if df.is_empty() or SOURCE_FILE_COL not in df.columns:
        return None, None
    return df[SOURCE_FILE_COL][0], df[SOURCE_ROW_COL][0]


def partition_by_qc(df: pl.DataFrame, policy: QCPolicy) -> QCPartition:
    """
    Split df into accepted and excluded rows, preserving row order.

    Raises:
        UnknownQCCodeError: for the first blank or unrecognised code, with
            the number of rows carrying it and where it first appears.
    """
    df = df.with_columns(pl.col(QC_COL).str.strip_chars().str.to_uppercase())

    blank = df.filter(pl.col(QC_COL).is_null() | (pl.col(QC_COL) == ""))
    if not blank.is_empty():
        src_file, src_row = _first_location(blank)
        raise UnknownQCCodeError(
            None, rows=blank.height, source_file=src_file, source_row=src_row
        )

    unknown = df.filter(~pl.col(QC_COL).is_in(sorted(policy.known)))
    if not unknown.is_empty():
        code = unknown[QC_COL][0]
        same = unknown.filter(pl.col(QC_COL) == code)
        src_file, src_row = _first_location(same)
        raise UnknownQCCodeError(
            code, rows=same.height, source_file=src_file, source_row=src_row
        )

    accepted = df.filter(pl.col(QC_COL).is_in(sorted(policy.accepted)))
    excluded = df.filter(pl.col(QC_COL).is_in(sorted(policy.excluded)))
    excluded = excluded.with_columns(
        pl.Series(
            QC_REASON_COL,
            [policy.describe(code) or None for code in excluded[QC_COL].to_list()],
            dtype=pl.String,
        )
    )

    log.info(
        "qc_partitioned",
        accepted=accepted.height,
        excluded=excluded.height,
        excluded_by_code=dict(
            excluded.group_by(QC_COL).len().sort(QC_COL).iter_rows()
        ),
    )
    return QCPartition(accepted=accepted, excluded=excluded)
