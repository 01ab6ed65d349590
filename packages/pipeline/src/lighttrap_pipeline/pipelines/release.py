"""
pipelines/release.py — One data release of the light-trap dataset.

Ingests:
  - Yearly count files          -> counts_raw, counts_master, counts_excluded,
                                   counts_public
  - Yearly carapace-width files -> measurements_master, measurements_public
  - Both, linked by visit key   -> visits_public
  - Station metadata table      (reference only, not rewritten)

Flow per table: load → enrich against stations → QC partition (counts only)
→ redact → write. Every run rebuilds every table from the source files;
the only state left behind is the output directory and run_manifest.json.

Usage:
    from lighttrap_pipeline.pipelines.release import run

    results = await run(config=load_release_config("config/release.toml"))
    results = await run(config=config, join_policy="keep")     # override policy
    results = await run(config=config, dry_run=True)           # no files written
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import polars as pl
import structlog

from lighttrap_shared.config import ReleaseConfig, settings
from lighttrap_shared.constants import (
    COUNT_OUTPUT_COLUMNS,
    EXCLUDED_OUTPUT_COLUMNS,
    MEASUREMENT_OUTPUT_COLUMNS,
    OUTPUT_FILES,
    VISIT_OUTPUT_COLUMNS,
    JoinPolicy,
)
from lighttrap_shared.errors import PipelineError
from lighttrap_pipeline.loaders.csv_writer import CSVWriter, WriteResult
from lighttrap_pipeline.sources import CountSource, MeasurementSource, StationSource
from lighttrap_pipeline.transforms.enrich import StationEnricher
from lighttrap_pipeline.transforms.qaqc import partition_by_qc
from lighttrap_pipeline.transforms.redact import (
    find_list_divergence,
    redact_counts,
    redact_measurements,
)
from lighttrap_pipeline.transforms.visits import add_visit_key, link_measurements
from lighttrap_pipeline.utils.logging import bind_run_context, configure_logging, get_logger

log = get_logger(__name__, pipeline="release")

# Table key -> published column layout, in write order
TABLE_LAYOUTS: dict[str, tuple[str, ...]] = {
    "counts_raw": COUNT_OUTPUT_COLUMNS,
    "counts_master": COUNT_OUTPUT_COLUMNS,
    "counts_excluded": EXCLUDED_OUTPUT_COLUMNS,
    "counts_public": COUNT_OUTPUT_COLUMNS,
    "measurements_master": MEASUREMENT_OUTPUT_COLUMNS,
    "measurements_public": MEASUREMENT_OUTPUT_COLUMNS,
    "visits_public": VISIT_OUTPUT_COLUMNS,
}


@dataclass
class RunContext:
    """Everything one release run needs; built fresh per run."""

    config: ReleaseConfig
    output_dir: Path
    join_policy: JoinPolicy
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    log: Any = None

    def __post_init__(self) -> None:
        if self.log is None:
            self.log = log.bind(run_id=self.run_id)

    @classmethod
    def create(
        cls,
        config: ReleaseConfig,
        *,
        output_dir: Path | str | None = None,
        join_policy: JoinPolicy | None = None,
    ) -> RunContext:
        """Resolve overrides: argument, then LIGHTTRAP_OUTPUT_DIR, then config."""
        if output_dir is None and settings.output_dir:
            output_dir = settings.output_dir
        return cls(
            config=config,
            output_dir=Path(output_dir) if output_dir is not None else config.output_dir,
            join_policy=join_policy or config.join_policy,
        )


@dataclass
class ReleaseTables:
    """The seven output tables of one release, still in memory."""

    counts_raw: pl.DataFrame
    counts_master: pl.DataFrame
    counts_excluded: pl.DataFrame
    counts_public: pl.DataFrame
    measurements_master: pl.DataFrame
    measurements_public: pl.DataFrame
    visits_public: pl.DataFrame
    divergence: dict[str, list[str]] = field(default_factory=dict)
    sources: dict[str, Any] = field(default_factory=dict)

    def items(self) -> list[tuple[str, pl.DataFrame]]:
        return [(key, getattr(self, key)) for key in TABLE_LAYOUTS]


async def build_tables(ctx: RunContext) -> ReleaseTables:
    """Load, enrich, partition and redact; no files are written."""
    config = ctx.config

    station_source = StationSource(config.stations_file)
    count_source = CountSource(config.count_files, visit_key_prefix=config.visit_key_prefix)
    measurement_source = MeasurementSource(config.measurement_files)

    stations, counts, measurements = await asyncio.gather(
        station_source.run(),
        count_source.run(),
        measurement_source.run(),
    )

    divergence = find_list_divergence(
        stations,
        config.redaction.count_site_codes,
        config.redaction.measurement_site_names,
        config.site_aliases,
    )

    enricher = StationEnricher(
        stations, policy=ctx.join_policy, site_aliases=config.site_aliases
    )

    # Counts
    counts_raw = enricher.attach_coordinates(counts)
    parts = partition_by_qc(counts_raw, config.qc)
    counts_public = redact_counts(parts.accepted, config.redaction.count_site_codes)

    # Measurements
    measurements_master = add_visit_key(
        enricher.resolve_site_codes(measurements), config.visit_key_prefix
    )
    measurements_public = redact_measurements(
        measurements_master,
        config.redaction.measurement_site_names,
        config.site_aliases,
    )

    visits_public = link_measurements(counts_public, measurements_public)

    return ReleaseTables(
        counts_raw=counts_raw,
        counts_master=parts.accepted,
        counts_excluded=parts.excluded,
        counts_public=counts_public,
        measurements_master=measurements_master,
        measurements_public=measurements_public,
        visits_public=visits_public,
        divergence=divergence,
        sources={
            "stations": station_source.get_metadata(),
            "counts": count_source.get_metadata(),
            "measurements": measurement_source.get_metadata(),
        },
    )


def _manifest(
    ctx: RunContext,
    tables: ReleaseTables,
    results: dict[str, WriteResult],
    *,
    status: str = "complete",
) -> dict[str, Any]:
    return {
        "run_id": ctx.run_id,
        "status": status,
        "generated_at": ctx.started_at.isoformat(),
        "policy_version": ctx.config.policy_version,
        "join_policy": ctx.join_policy,
        "visit_key_prefix": ctx.config.visit_key_prefix,
        "qc": {
            "accepted": sorted(ctx.config.qc.accepted),
            "excluded": sorted(ctx.config.qc.excluded),
        },
        "redaction": {
            "count_site_codes": list(ctx.config.redaction.count_site_codes),
            "measurement_site_names": list(ctx.config.redaction.measurement_site_names),
            "divergence": tables.divergence,
        },
        "sources": tables.sources,
        "tables": {key: r.to_manifest() for key, r in results.items()},
    }


async def run(
    *,
    config: ReleaseConfig,
    output_dir: Path | str | None = None,
    join_policy: JoinPolicy | None = None,
    dry_run: bool = False,
) -> dict[str, WriteResult]:
    """
    Run one release end to end.

    Args:
        config:      Loaded release config (see load_release_config).
        output_dir:  Override the config's output directory.
        join_policy: Override the config's join policy.
        dry_run:     Build every table but write nothing.

    Returns:
        Dict of {table_key -> WriteResult}. In dry-run mode the results
        carry row counts only.

    Raises:
        PipelineError subclasses; nothing is written unless every table
        was built. A write failure part way through leaves
        run_manifest.json with status "incomplete".
    """
    configure_logging()
    ctx = RunContext.create(config, output_dir=output_dir, join_policy=join_policy)
    bind_run_context(run_id=ctx.run_id, policy_version=config.policy_version)
    ctx.log.info(
        "release_start",
        output_dir=str(ctx.output_dir),
        join_policy=ctx.join_policy,
        years=sorted(config.count_files),
        dry_run=dry_run,
    )

    try:
        tables = await build_tables(ctx)

        if dry_run:
            results = {
                key: WriteResult(table=key, path=ctx.output_dir / OUTPUT_FILES[key], rows=df.height)
                for key, df in tables.items()
            }
            ctx.log.info(
                "release_dry_run",
                rows={key: r.rows for key, r in results.items()},
            )
            return results

        writer = CSVWriter(ctx.output_dir)
        results = {}
        with writer.locked():
            # Tables are replaced one by one; until the final manifest lands,
            # the directory is marked as a partial release.
            writer.write_manifest(_manifest(ctx, tables, results, status="incomplete"))
            for key, df in tables.items():
                results[key] = writer.write(key, df, TABLE_LAYOUTS[key])
            writer.write_manifest(_manifest(ctx, tables, results))

    except PipelineError as exc:
        ctx.log.error("release_failed", error_type=type(exc).__name__)
        raise
    finally:
        structlog.contextvars.clear_contextvars()

    ctx.log.info(
        "release_complete",
        rows={key: r.rows for key, r in results.items()},
        duration_ms=int((datetime.now(timezone.utc) - ctx.started_at).total_seconds() * 1000),
    )
    return results
