"""
lighttrap_shared.models — Pydantic models for each source record kind.

The loader validates every source row through one of these models, so
coercion rules (blank -> null, date parsing, derived totals) live in one
place. All models provide:
  .from_row(row: dict) -> Model
  .to_row() -> dict
"""

from lighttrap_shared.models.counts import CountRecord
from lighttrap_shared.models.measurements import MeasurementRecord
from lighttrap_shared.models.stations import StationRecord

__all__ = [
    "StationRecord",
    "CountRecord",
    "MeasurementRecord",
]
