"""
tests/test_cli.py — Tests for the lighttrap click CLI.
"""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from lighttrap_shared.constants import OUTPUT_FILES
from lighttrap_pipeline.cli import main


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


class TestRunCommand:
    def test_run_writes_release(self, runner, release_toml, tmp_path):
        out = tmp_path / "cli-out"
        result = runner.invoke(main, ["run", "--config", str(release_toml), "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        assert "wrote 7 tables" in result.output
        assert (out / OUTPUT_FILES["visits_public"]).is_file()

    def test_dry_run(self, runner, release_toml, tmp_path):
        out = tmp_path / "cli-out"
        result = runner.invoke(
            main, ["run", "--config", str(release_toml), "--output-dir", str(out), "--dry-run"]
        )
        assert result.exit_code == 0, result.output
        assert "would write" in result.output
        assert not out.exists()

    def test_missing_config_exits_1(self, runner, tmp_path):
        result = runner.invoke(main, ["run", "--config", str(tmp_path / "nope.toml")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_join_gap_exits_1(self, runner, release_toml, write_csv):
        write_csv("Master_Stations.csv", "Code,Site,Lat,Lon\nCRA,Campbell River,50.03,-125.25\n")
        text = release_toml.read_text(encoding="utf-8")
        release_toml.write_text(
            text.replace('stations_file = "Master_Stations.csv"', f'stations_file = "{release_toml.parent.as_posix()}/Master_Stations.csv"'),
            encoding="utf-8",
        )
        result = runner.invoke(main, ["run", "--config", str(release_toml)])
        assert result.exit_code == 1
        assert "HSC" in result.output


class TestCheckConfig:
    def test_reports_policy_and_divergence(self, runner, release_toml):
        result = runner.invoke(main, ["check-config", "--config", str(release_toml)])
        assert result.exit_code == 0, result.output
        assert "test-2025-10" in result.output
        assert "codes_without_name: PRI" in result.output

    def test_missing_input_exits_1(self, runner, release_toml):
        text = release_toml.read_text(encoding="utf-8")
        release_toml.write_text(text.replace("2024_CountData_QC.csv", "2024_missing.csv"), encoding="utf-8")
        result = runner.invoke(main, ["check-config", "--config", str(release_toml)])
        assert result.exit_code == 1
        assert "MISSING" in result.output


class TestStatus:
    def test_no_release(self, runner, tmp_path):
        result = runner.invoke(main, ["status", "--output-dir", str(tmp_path)])
        assert result.exit_code == 0
        assert "No release found" in result.output

    def test_after_run(self, runner, release_toml, tmp_path):
        out = tmp_path / "cli-out"
        runner.invoke(main, ["run", "--config", str(release_toml), "--output-dir", str(out)])
        result = runner.invoke(main, ["status", "--output-dir", str(out)])
        assert result.exit_code == 0, result.output
        assert "test-2025-10" in result.output
        assert "counts_public" in result.output
        assert "status:         complete" in result.output
