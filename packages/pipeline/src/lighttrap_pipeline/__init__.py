"""
lighttrap_pipeline — Release pipeline for the Sentinels of Change light-trap dataset.

Architecture:
  sources/     — yearly count and carapace-width files, station metadata
  transforms/  — station enrichment, QC partition, redaction, visit linkage
  loaders/     — atomic, deterministic CSV writer and run manifest
  pipelines/   — the release orchestrator (sources -> transforms -> loaders)
  utils/       — structlog configuration

Quick start:
    from lighttrap_shared.config import load_release_config
    from lighttrap_pipeline.pipelines.release import run
    import asyncio
    results = asyncio.run(run(config=load_release_config("config/release.toml"), dry_run=True))

CLI:
    lighttrap run --dry-run
    lighttrap check-config
    lighttrap status

Shared code from lighttrap_shared:
    from lighttrap_shared.config import settings, load_release_config
    from lighttrap_shared.models import CountRecord, MeasurementRecord, StationRecord
    from lighttrap_shared.constants import OUTPUT_FILES, COUNT_OUTPUT_COLUMNS
"""

__version__ = "0.1.0"
