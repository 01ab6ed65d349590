"""
config.py — pydantic-settings Settings class and the versioned release config.

Two layers:
  Settings       — process environment (LIGHTTRAP_* variables / .env):
                   logging, default config path, lock timeout.
  ReleaseConfig  — one data release, read from a TOML file: input files,
                   QC policy, redaction deny-lists, site aliases, join policy.

The QC code sets and deny-lists have changed between pipeline revisions, so
they are never hard-coded; each release config carries a policy_version.

Usage:
    from lighttrap_shared.config import settings, load_release_config

    config = load_release_config(settings.release_config)
    print(config.policy_version, sorted(config.qc.accepted))
"""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from lighttrap_shared.constants import DEFAULT_VISIT_KEY_PREFIX, QC_CODE_DESCRIPTIONS, JoinPolicy
from lighttrap_shared.errors import ConfigError


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LIGHTTRAP_",
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------
    release_config: str = Field(default="config/release.toml")
    output_dir: str | None = Field(default=None)
    lock_timeout_s: float = Field(default=10.0)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")


# ---------------------------------------------------------------------------
# Release config models
# ---------------------------------------------------------------------------


def normalize_code(value: str) -> str:
    """Canonical form of a QC or site code: stripped, upper-case."""
    return value.strip().upper()


class QCPolicy(BaseModel):
    """Accepted/excluded QC code sets. Must be disjoint."""

    model_config = ConfigDict(frozen=True)

    accepted: frozenset[str]
    excluded: frozenset[str]
    descriptions: dict[str, str] = Field(default_factory=dict)

    @field_validator("accepted", "excluded", mode="before")
    @classmethod
    def _normalize(cls, v: object) -> object:
        if isinstance(v, (list, tuple, set, frozenset)):
            return frozenset(normalize_code(str(c)) for c in v)
        return v

    @field_validator("descriptions", mode="before")
    @classmethod
    def _normalize_keys(cls, v: object) -> object:
        if isinstance(v, dict):
            return {normalize_code(str(k)): str(d) for k, d in v.items()}
        return v

    @model_validator(mode="after")
    def _disjoint(self) -> QCPolicy:
        if not self.accepted:
            raise ValueError("qc.accepted must list at least one code")
        overlap = self.accepted & self.excluded
        if overlap:
            raise ValueError(f"QC codes both accepted and excluded: {sorted(overlap)}")
        return self

    @property
    def known(self) -> frozenset[str]:
        return self.accepted | self.excluded

    def describe(self, code: str) -> str:
        return self.descriptions.get(code) or QC_CODE_DESCRIPTIONS.get(code, "")


class RedactionPolicy(BaseModel):
    """Sites withheld from public outputs, one list per identifier type."""

    model_config = ConfigDict(frozen=True)

    count_site_codes: tuple[str, ...] = ()
    measurement_site_names: tuple[str, ...] = ()

    @field_validator("count_site_codes", mode="before")
    @classmethod
    def _normalize_codes(cls, v: object) -> object:
        if isinstance(v, (list, tuple)):
            return tuple(normalize_code(str(c)) for c in v)
        return v


class ReleaseConfig(BaseModel):
    """Everything that varies between data releases."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    policy_version: str
    visit_key_prefix: str = DEFAULT_VISIT_KEY_PREFIX
    join_policy: JoinPolicy = "fail"
    data_dir: Path = Path(".")
    output_dir: Path = Path("output")
    stations_file: Path
    count_files: dict[int, Path]
    measurement_files: dict[int, Path] = Field(default_factory=dict)
    qc: QCPolicy
    redaction: RedactionPolicy = Field(default_factory=RedactionPolicy)
    site_aliases: dict[str, str] = Field(default_factory=dict)

    @field_validator("visit_key_prefix")
    @classmethod
    def _prefix_is_token(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z0-9_]+", v):
            raise ValueError(f"visit_key_prefix must be alphanumeric, got {v!r}")
        return v

    @field_validator("count_files")
    @classmethod
    def _has_counts(cls, v: dict[int, Path]) -> dict[int, Path]:
        if not v:
            raise ValueError("count_files must list at least one year")
        return v

    def resolved(self, base_dir: Path) -> ReleaseConfig:
        """
        Return a copy with every relative path made absolute.

        data_dir and output_dir resolve against base_dir (the config file's
        directory); input files resolve against data_dir.
        """
        data_dir = self.data_dir if self.data_dir.is_absolute() else base_dir / self.data_dir
        output_dir = self.output_dir if self.output_dir.is_absolute() else base_dir / self.output_dir

        def under_data(p: Path) -> Path:
            return p if p.is_absolute() else data_dir / p

        return self.model_copy(
            update={
                "data_dir": data_dir,
                "output_dir": output_dir,
                "stations_file": under_data(self.stations_file),
                "count_files": {y: under_data(p) for y, p in self.count_files.items()},
                "measurement_files": {
                    y: under_data(p) for y, p in self.measurement_files.items()
                },
            }
        )


def load_release_config(path: str | Path) -> ReleaseConfig:
    """
    Read and validate a TOML release config.

    Relative paths inside the file are resolved against the file's directory.

    Raises:
        ConfigError: file missing, not valid TOML, or fails validation.
    """
    path = Path(path)
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigError(f"Release config not found: {path}", path=path) from exc
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read release config {path}: {exc}", path=path) from exc

    try:
        config = ReleaseConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid release config {path}:\n{exc}", path=path) from exc

    return config.resolved(path.resolve().parent)


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
