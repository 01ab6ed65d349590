"""
transforms/enrich.py — Resolve records against the station metadata table.

Counts carry a site code and gain site_name, latitude and longitude.
Measurements carry a free-text site name; it is canonicalised (whitespace,
release aliases, case) and resolved to the station's code and name.

Rows that match no station are handled by the join policy:

  fail  raise JoinGapError naming every unmatched site (default)
  drop  remove them, warn with the dropped sites
  keep  keep them with null station columns, warn

Input row order is preserved under every policy.

Usage:
    from lighttrap_pipeline.transforms.enrich import StationEnricher

    enricher = StationEnricher(stations, policy="fail", site_aliases=config.site_aliases)
    counts = enricher.attach_coordinates(counts)
    measurements = enricher.resolve_site_codes(measurements)
"""

from __future__ import annotations

from collections.abc import Mapping

import polars as pl

from lighttrap_shared.constants import SOURCE_FILE_COL, SOURCE_ROW_COL, JoinPolicy
from lighttrap_shared.errors import JoinGapError
from lighttrap_pipeline.transforms.normalize import canonical_site_name, site_match_key
from lighttrap_pipeline.utils.logging import get_logger

log = get_logger(__name__)

_MATCHED = "__matched"


class StationEnricher:
    """Joins counts and measurements to one run's station table."""

    def __init__(
        self,
        stations: pl.DataFrame,
        *,
        policy: JoinPolicy = "fail",
        site_aliases: Mapping[str, str] | None = None,
    ) -> None:
        if policy not in ("fail", "drop", "keep"):
            raise ValueError(f"Unknown join policy: {policy!r}")
        self._policy = policy
        self._aliases = dict(site_aliases or {})
        self._stations = stations.select("site_code", "site_name", "latitude", "longitude")
        # match key -> (site_code, canonical station name)
        self._by_name: dict[str, tuple[str, str]] = {
            site_match_key(name): (code, name)
            for code, name in zip(self._stations["site_code"], self._stations["site_name"])
        }

    # ------------------------------------------------------------------
    # Counts: join on site_code
    # ------------------------------------------------------------------

    def attach_coordinates(self, counts: pl.DataFrame) -> pl.DataFrame:
        """Append site_name, latitude and longitude by site_code."""
        lookup = self._stations.with_columns(pl.lit(True).alias(_MATCHED))
        joined = (
            counts.drop(["site_name", "latitude", "longitude"], strict=False)
            .with_row_index("__order")
            .join(lookup, on="site_code", how="left")
            .sort("__order")
            .drop("__order")
        )
        return self._apply_policy(joined, key="site_code", table="counts")

    # ------------------------------------------------------------------
    # Measurements: resolve free-text site_name
    # ------------------------------------------------------------------

    def resolve_site_codes(self, measurements: pl.DataFrame) -> pl.DataFrame:
        """
        Attach site_code and replace site_name with the station's name.

        Unmatched rows keep their canonicalised name and a null code.
        """
        codes: list[str | None] = []
        names: list[str | None] = []
        for raw in measurements["site_name"].to_list():
            name = canonical_site_name(raw, self._aliases)
            hit = self._by_name.get(site_match_key(name))
            if hit is None:
                codes.append(None)
                names.append(name)
            else:
                codes.append(hit[0])
                names.append(hit[1])

        resolved = measurements.with_columns(
            pl.Series("site_code", codes, dtype=pl.String),
            pl.Series("site_name", names, dtype=pl.String),
            pl.Series(_MATCHED, [c is not None for c in codes], dtype=pl.Boolean),
        )
        return self._apply_policy(resolved, key="site_name", table="measurements")

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def _apply_policy(self, df: pl.DataFrame, *, key: str, table: str) -> pl.DataFrame:
        unmatched = df.filter(pl.col(_MATCHED).is_null() | ~pl.col(_MATCHED))
        if unmatched.is_empty():
            return df.drop(_MATCHED)

        sites = sorted({str(v) for v in unmatched[key].to_list() if v is not None})
        first_file = unmatched[SOURCE_FILE_COL][0] if SOURCE_FILE_COL in df.columns else None
        first_row = unmatched[SOURCE_ROW_COL][0] if SOURCE_ROW_COL in df.columns else None

        if self._policy == "fail":
            raise JoinGapError(
                sites,
                key=key,
                rows=unmatched.height,
                source_file=first_file,
                source_row=first_row,
            )

        if self._policy == "drop":
            log.warning(
                "join_gap_dropped",
                table=table,
                key=key,
                sites=sites,
                rows=unmatched.height,
            )
            return df.filter(pl.col(_MATCHED).fill_null(False)).drop(_MATCHED)

        log.warning(
            "join_gap_kept",
            table=table,
            key=key,
            sites=sites,
            rows=unmatched.height,
        )
        return df.drop(_MATCHED)
