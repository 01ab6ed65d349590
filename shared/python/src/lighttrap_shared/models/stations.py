"""
models/stations.py — Pydantic model for the station metadata table.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from lighttrap_shared.models.fields import Coordinate, SiteCode, SiteName, Text


class StationRecord(BaseModel):
    """One light-trap station. Loaded once per run, never mutated."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    site_code: SiteCode
    site_name: SiteName
    organization: Text = None
    latitude: Coordinate
    longitude: Coordinate

    @model_validator(mode="after")
    def _in_range(self) -> "StationRecord":
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude {self.latitude} is out of range")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude {self.longitude} is out of range")
        return self

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "StationRecord":
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()
