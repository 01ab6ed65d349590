"""
cli.py — Click CLI entrypoint for release operators.

Usage:
    lighttrap run
    lighttrap run --config config/release.toml --join-policy keep
    lighttrap run --dry-run
    lighttrap check-config
    lighttrap status --output-dir ../data
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from lighttrap_shared.config import ReleaseConfig, load_release_config, settings
from lighttrap_shared.errors import PipelineError
from lighttrap_pipeline.loaders.csv_writer import read_manifest
from lighttrap_pipeline.utils.logging import configure_logging

_config_option = click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Release config TOML (default: LIGHTTRAP_RELEASE_CONFIG or config/release.toml).",
)


def _load(config_path: Path | None) -> ReleaseConfig:
    return load_release_config(config_path or settings.release_config)


def _fail(exc: PipelineError) -> None:
    click.echo(f"Error: {exc}", err=True)
    sys.exit(1)


@click.group()
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Log level (default: LIGHTTRAP_LOG_LEVEL or INFO).",
)
@click.option(
    "--log-format",
    default=None,
    type=click.Choice(["json", "console"]),
    help="Log renderer (default: LIGHTTRAP_LOG_FORMAT or console).",
)
def main(log_level: str | None, log_format: str | None) -> None:
    """Sentinels of Change light-trap release pipeline."""
    configure_logging(log_level, log_format)


@main.command()
@_config_option
@click.option(
    "--output-dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Write tables here instead of the config's output_dir.",
)
@click.option(
    "--join-policy",
    default=None,
    type=click.Choice(["fail", "drop", "keep"]),
    help="Override the config's join policy for unmatched sites.",
)
@click.option("--dry-run", is_flag=True, help="Build every table but write nothing.")
def run(
    config_path: Path | None,
    output_dir: Path | None,
    join_policy: str | None,
    dry_run: bool,
) -> None:
    """Run one data release."""
    from lighttrap_pipeline.pipelines import release

    try:
        config = _load(config_path)
        results = asyncio.run(
            release.run(
                config=config,
                output_dir=output_dir,
                join_policy=join_policy,  # type: ignore[arg-type]
                dry_run=dry_run,
            )
        )
    except PipelineError as exc:
        _fail(exc)
        return

    verb = "would write" if dry_run else "wrote"
    click.echo(f"Release {config.policy_version}: {verb} {len(results)} tables")
    for key, result in results.items():
        click.echo(f"  {key:22s} {result.rows:>7d} rows  {result.path.name}")


@main.command("check-config")
@_config_option
def check_config(config_path: Path | None) -> None:
    """Validate the release config and report deny-list divergence."""
    from lighttrap_pipeline.sources import StationSource
    from lighttrap_pipeline.transforms.redact import find_list_divergence

    try:
        config = _load(config_path)
    except PipelineError as exc:
        _fail(exc)
        return

    click.echo(f"Policy version:   {config.policy_version}")
    click.echo(f"Join policy:      {config.join_policy}")
    click.echo(f"Visit key prefix: {config.visit_key_prefix}")
    click.echo(f"QC accepted:      {', '.join(sorted(config.qc.accepted))}")
    click.echo(f"QC excluded:      {', '.join(sorted(config.qc.excluded)) or '-'}")
    click.echo(f"Denied codes:     {', '.join(config.redaction.count_site_codes) or '-'}")
    click.echo(f"Denied names:     {', '.join(config.redaction.measurement_site_names) or '-'}")

    inputs = [("stations", config.stations_file)]
    inputs += [(f"counts {y}", p) for y, p in sorted(config.count_files.items())]
    inputs += [(f"measurements {y}", p) for y, p in sorted(config.measurement_files.items())]
    missing = [label for label, path in inputs if not path.is_file()]
    click.echo("Inputs:")
    for label, path in inputs:
        mark = "ok" if path.is_file() else "MISSING"
        click.echo(f"  {mark:7s} {label:18s} {path}")

    if config.stations_file.is_file():
        try:
            stations = asyncio.run(StationSource(config.stations_file).run())
        except PipelineError as exc:
            _fail(exc)
            return
        divergence = find_list_divergence(
            stations,
            config.redaction.count_site_codes,
            config.redaction.measurement_site_names,
            config.site_aliases,
        )
        if any(divergence.values()):
            click.echo("Deny-list divergence:")
            for kind, values in divergence.items():
                if values:
                    click.echo(f"  {kind}: {', '.join(values)}")
        else:
            click.echo("Deny-lists agree.")

    if missing:
        click.echo(f"Error: {len(missing)} input file(s) missing", err=True)
        sys.exit(1)


@main.command()
@click.option(
    "--output-dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Release directory (default: LIGHTTRAP_OUTPUT_DIR or the config's output_dir).",
)
@_config_option
def status(output_dir: Path | None, config_path: Path | None) -> None:
    """Show the last release written to the output directory."""
    if output_dir is None and settings.output_dir:
        output_dir = Path(settings.output_dir)
    if output_dir is None:
        try:
            output_dir = _load(config_path).output_dir
        except PipelineError as exc:
            _fail(exc)
            return

    manifest = read_manifest(output_dir)
    if manifest is None:
        click.echo(f"No release found in {output_dir}")
        return

    click.echo(f"Last release in {output_dir}:")
    click.echo(f"  run_id:         {manifest.get('run_id')}")
    click.echo(f"  status:         {manifest.get('status', 'complete')}")
    click.echo(f"  generated_at:   {manifest.get('generated_at')}")
    click.echo(f"  policy_version: {manifest.get('policy_version')}")
    click.echo(f"  join_policy:    {manifest.get('join_policy')}")
    for key, table in sorted(manifest.get("tables", {}).items()):
        click.echo(f"  {key:22s} {table.get('rows', '?'):>7} rows  {table.get('file', '')}")


if __name__ == "__main__":
    main()
