"""
models/counts.py — Pydantic model for one light-trap check (count row).

total_count is derived from megalopae_count + instar_count; a supplied
total that disagrees is rejected. year/month default from date and must
agree with it. CPUE values are derived from effort when left blank.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

from lighttrap_shared.models.fields import Code, Measure, SampleDate, SiteCode, Text, WholeNumber


class CountRecord(BaseModel):
    """One trap-check event as read from a yearly count file."""

    model_config = ConfigDict(extra="ignore")

    site_code: SiteCode
    date: SampleDate
    year: WholeNumber = None
    month: WholeNumber = None
    nights_fished: Measure = None
    hours_fished: Measure = None
    weather: Text = None
    subsample_flag: Text = None
    megalopae_count: WholeNumber = None
    instar_count: WholeNumber = None
    total_count: WholeNumber = None
    cpue_per_night: Measure = None
    cpue_per_hour: Measure = None
    qc_code: Code = None

    @model_validator(mode="after")
    def _derive_and_check(self) -> "CountRecord":
        d: dt.date = self.date
        if self.year is None:
            self.year = d.year
        elif self.year != d.year:
            raise ValueError(f"year {self.year} disagrees with date {d.isoformat()}")
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"month {self.month} is out of range")
        if self.month is None:
            self.month = d.month
        elif self.month != d.month:
            raise ValueError(f"month {self.month} disagrees with date {d.isoformat()}")

        if self.megalopae_count is not None and self.instar_count is not None:
            expected = self.megalopae_count + self.instar_count
            if self.total_count is None:
                self.total_count = expected
            elif self.total_count != expected:
                raise ValueError(
                    f"total_count {self.total_count} != megalopae {self.megalopae_count}"
                    f" + instar {self.instar_count}"
                )

        if self.total_count is not None:
            if self.cpue_per_night is None and self.nights_fished:
                self.cpue_per_night = self.total_count / self.nights_fished
            if self.cpue_per_hour is None and self.hours_fished:
                self.cpue_per_hour = self.total_count / self.hours_fished
        return self

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CountRecord":
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        return self.model_dump()
