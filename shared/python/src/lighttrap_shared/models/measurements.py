"""
models/measurements.py — Pydantic model for one measured megalopa.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from lighttrap_shared.models.fields import Measure, SampleDate, SiteName


class MeasurementRecord(BaseModel):
    """
    One carapace-width measurement.

    Linked to its count row only through (site, date); the visit key is
    attached after the site name is resolved against the station table.
    A blank width is allowed here and dropped by the loader.
    """

    model_config = ConfigDict(extra="ignore")

    site_name: SiteName
    date: SampleDate
    carapace_width_mm: Measure = None

    @model_validator(mode="after")
    def _positive_width(self) -> "MeasurementRecord":
        if self.carapace_width_mm is not None and self.carapace_width_mm <= 0:
            raise ValueError(f"carapace_width_mm must be positive, got {self.carapace_width_mm}")
        return self

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MeasurementRecord":
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()
