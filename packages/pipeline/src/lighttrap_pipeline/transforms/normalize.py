"""
transforms/normalize.py — Row- and value-level cleanup shared by the sources.

Stateless helpers; none of them look anything up.

Usage:
    from lighttrap_pipeline.transforms.normalize import (
        canonical_site_name,
        deduplicate_rows,
        drop_all_null_rows,
        site_match_key,
    )

    raw = drop_all_null_rows(raw)                 # trailing blank spreadsheet rows
    df = deduplicate_rows(df)                     # exact repeats across year files
    canonical_site_name("Hot Spring  Cove", {"Hot Spring Cove": "Hotsprings Cove"})
    # -> "Hotsprings Cove"
"""

from __future__ import annotations

from collections.abc import Mapping

import polars as pl

from lighttrap_shared.constants import PROVENANCE_COLUMNS
from lighttrap_pipeline.utils.logging import get_logger

log = get_logger(__name__)


def _data_columns(df: pl.DataFrame) -> list[str]:
    return [c for c in df.columns if c not in PROVENANCE_COLUMNS]


def drop_all_null_rows(df: pl.DataFrame) -> pl.DataFrame:
    """Drop rows where every data column (provenance excluded) is null."""
    cols = _data_columns(df)
    if not cols or df.is_empty():
        return df
    return df.filter(pl.any_horizontal([pl.col(c).is_not_null() for c in cols]))


def deduplicate_rows(df: pl.DataFrame, *, table: str = "") -> pl.DataFrame:
    """
    Remove rows that repeat every data column, keeping the first occurrence.

    Provenance columns are ignored when comparing, so the same record typed
    into two year files collapses to its first appearance.
    """
    n_before = len(df)
    df = df.unique(subset=_data_columns(df), keep="first", maintain_order=True)
    dropped = n_before - len(df)
    if dropped:
        log.warning("duplicate_rows_dropped", table=table, dropped=dropped)
    return df


def site_match_key(name: str | None) -> str | None:
    """Comparison key for free-text site names: whitespace-collapsed, casefolded."""
    if name is None:
        return None
    key = " ".join(name.split()).casefold()
    return key or None


def canonical_site_name(name: str | None, aliases: Mapping[str, str] | None = None) -> str | None:
    """
    Collapse whitespace and apply the release's site-name aliases.

    Alias lookup is case-insensitive; unknown names pass through unchanged.
    """
    if name is None:
        return None
    cleaned = " ".join(name.split())
    if not cleaned:
        return None
    if aliases:
        folded = {site_match_key(k): v for k, v in aliases.items()}
        return folded.get(site_match_key(cleaned), cleaned)
    return cleaned


def clean_string_columns(df: pl.DataFrame) -> pl.DataFrame:
    """Strip whitespace from all String columns; empty strings become null."""
    exprs = []
    for c in df.columns:
        if df[c].dtype != pl.String:
            continue
        stripped = pl.col(c).str.strip_chars()
        exprs.append(pl.when(stripped == "").then(None).otherwise(stripped).alias(c))
    return df.with_columns(exprs) if exprs else df
