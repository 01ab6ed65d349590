"""
transforms/redact.py — Withhold non-public sites from public outputs.

Two deny-lists, one per identifier type, because counts carry a site code
and measurements carry a site name:

  count_site_codes        exact match on site_code, case-insensitive
  measurement_site_names  match on the alias-resolved, whitespace-collapsed,
                          casefolded name

Both filters are idempotent. find_list_divergence() maps each list through
the station table and reports sites withheld in one table but not the other;
it only reports, it never changes what is removed.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import polars as pl

from lighttrap_pipeline.transforms.normalize import canonical_site_name, site_match_key
from lighttrap_pipeline.utils.logging import get_logger

log = get_logger(__name__)


def redact_counts(df: pl.DataFrame, site_codes: Iterable[str]) -> pl.DataFrame:
    """Drop rows whose site_code is in site_codes."""
    denied = sorted({c.strip().upper() for c in site_codes})
    if not denied:
        return df
    kept = df.filter(~pl.col("site_code").str.to_uppercase().is_in(denied).fill_null(False))
    log.info("counts_redacted", removed=df.height - kept.height, denied=denied)
    return kept


def redact_measurements(
    df: pl.DataFrame,
    site_names: Iterable[str],
    aliases: Mapping[str, str] | None = None,
) -> pl.DataFrame:
    """
    Drop rows whose site_name matches one of site_names.

    Deny entries and row names both go through the release aliases, so an
    entry spelled the way partners write it still removes rows that were
    resolved to the station's canonical name.
    """
    denied = {site_match_key(canonical_site_name(n, aliases)) for n in site_names} - {None}
    if not denied:
        return df
    mask = [
        site_match_key(canonical_site_name(name, aliases)) not in denied
        for name in df["site_name"].to_list()
    ]
    kept = df.filter(pl.Series(mask, dtype=pl.Boolean))
    log.info("measurements_redacted", removed=df.height - kept.height, denied=sorted(denied))
    return kept


def find_list_divergence(
    stations: pl.DataFrame,
    site_codes: Iterable[str],
    site_names: Iterable[str],
    aliases: Mapping[str, str] | None = None,
) -> dict[str, list[str]]:
    """
    Compare the two deny-lists through the station table.

    Returns:
        {
          "codes_without_name":  denied codes whose station name is not denied,
          "names_without_code":  denied names whose station code is not denied,
          "unknown_codes":       denied codes absent from the station table,
          "unknown_names":       denied names absent from the station table,
        }
        All lists sorted; all empty when the lists agree.
    """
    code_to_name = {
        code.upper(): name for code, name in zip(stations["site_code"], stations["site_name"])
    }
    key_to_code = {site_match_key(name): code for code, name in code_to_name.items()}

    denied_codes = {c.strip().upper() for c in site_codes}
    denied_keys = {site_match_key(canonical_site_name(n, aliases)) for n in site_names} - {None}

    result: dict[str, list[str]] = {
        "codes_without_name": sorted(
            c
            for c in denied_codes
            if c in code_to_name and site_match_key(code_to_name[c]) not in denied_keys
        ),
        "names_without_code": sorted(
            code_to_name[key_to_code[k]]
            for k in denied_keys
            if k in key_to_code and key_to_code[k] not in denied_codes
        ),
        "unknown_codes": sorted(c for c in denied_codes if c not in code_to_name),
        "unknown_names": sorted(k for k in denied_keys if k not in key_to_code),
    }
    if any(result.values()):
        fields: dict[str, Any] = {k: v for k, v in result.items() if v}
        log.warning("redaction_lists_diverge", **fields)
    return result
