"""
transforms/visits.py — Visit keys and the measurement → count linkage.

A visit is one check of one trap. Its key is

    "{prefix}-{site_code}-{year}-{month}-{day}"     e.g. "SOC-PRP-2023-6-5"

with unpadded month/day. Downstream Darwin Core tooling derives
stationVisit eventIDs with exactly this rule, so the format is a contract.
Site codes are validated alphanumeric, which keeps the key unambiguous.

Counts receive their key at ingestion; measurements receive it once their
free-text site name has been resolved to a site code.

Usage:
    from lighttrap_pipeline.transforms.visits import add_visit_key, link_measurements

    counts = add_visit_key(counts, "SOC")
    visits = link_measurements(counts_public, measurements_public)
"""

from __future__ import annotations

import polars as pl

from lighttrap_shared.constants import SOURCE_FILE_COL, SOURCE_ROW_COL
from lighttrap_shared.errors import VisitKeyCollisionError
from lighttrap_pipeline.utils.logging import get_logger

log = get_logger(__name__)

VISIT_KEY_COL = "visit_key"


def visit_key_expr(
    prefix: str,
    *,
    site_col: str = "site_code",
    date_col: str = "date",
) -> pl.Expr:
    """Polars expression deriving the visit key; null when site or date is null."""
    d = pl.col(date_col)
    return pl.concat_str(
        [
            pl.lit(prefix),
            pl.col(site_col),
            d.dt.year().cast(pl.String),
            d.dt.month().cast(pl.String),
            d.dt.day().cast(pl.String),
        ],
        separator="-",
    )


def add_visit_key(df: pl.DataFrame, prefix: str) -> pl.DataFrame:
    """Append (or replace) the visit_key column."""
    return df.with_columns(visit_key_expr(prefix).alias(VISIT_KEY_COL))


def assert_unique_visits(df: pl.DataFrame) -> None:
    """
    Fail when two count rows share a visit key.

    Exact duplicates are removed before this runs, so any shared key means
    two different records claim the same site and date.
    """
    dupes = (
        df.filter(pl.col(VISIT_KEY_COL).is_not_null())
        .group_by(VISIT_KEY_COL, maintain_order=True)
        .len()
        .filter(pl.col("len") > 1)
    )
    if dupes.is_empty():
        return
    # first two rows of the earliest colliding key
    clash = df.filter(pl.col(VISIT_KEY_COL) == dupes[VISIT_KEY_COL][0]).head(2)
    files = clash[SOURCE_FILE_COL].to_list() if SOURCE_FILE_COL in df.columns else [None, None]
    rows = clash[SOURCE_ROW_COL].to_list() if SOURCE_ROW_COL in df.columns else [None, None]
    raise VisitKeyCollisionError(
        dupes[VISIT_KEY_COL].to_list(),
        rows=int(dupes["len"].sum()),
        source_file=files[0],
        source_row=rows[0],
        other_source_file=files[1],
        other_source_row=rows[1],
    )


def link_measurements(counts: pl.DataFrame, measurements: pl.DataFrame) -> pl.DataFrame:
    """
    Left-join counts to measurements on visit_key.

    - A visit with n measurements yields n rows, specimen_number 1..n in
      load order, specimen_id "{visit_key}-m{n}".
    - A visit with no measurements yields one row with null specimen columns.
    - Measurements whose visit is absent from counts are logged and left out.

    Returns:
        One row per (visit, specimen) in count order.
    """
    unresolved = measurements.filter(pl.col(VISIT_KEY_COL).is_null()).height
    if unresolved:
        log.warning("measurements_without_visit_key", rows=unresolved)

    numbered = (
        measurements.filter(pl.col(VISIT_KEY_COL).is_not_null())
        .with_columns(
            (pl.int_range(pl.len()).over(VISIT_KEY_COL) + 1)
            .cast(pl.Int64)
            .alias("specimen_number")
        )
        .select(VISIT_KEY_COL, "specimen_number", "carapace_width_mm")
    )

    orphans = numbered.join(counts.select(VISIT_KEY_COL), on=VISIT_KEY_COL, how="anti")
    if not orphans.is_empty():
        keys = orphans[VISIT_KEY_COL].unique(maintain_order=True).to_list()
        log.warning(
            "orphan_measurements",
            rows=orphans.height,
            visits=len(keys),
            sample=keys[:10],
        )

    linked = (
        counts.with_row_index("__order")
        .join(numbered, on=VISIT_KEY_COL, how="left")
        .sort(["__order", "specimen_number"], nulls_last=True)
        .drop("__order")
        .with_columns(
            pl.concat_str(
                [
                    pl.col(VISIT_KEY_COL),
                    pl.lit("-m"),
                    pl.col("specimen_number").cast(pl.String),
                ]
            ).alias("specimen_id")
        )
    )
    log.info(
        "measurements_linked",
        visits=counts.height,
        specimens=numbered.height - orphans.height,
        rows=linked.height,
    )
    return linked
