"""
lighttrap_pipeline.sources — source-file adapters.

Each source wraps one kind of input file:
  CountSource        — yearly light-trap count files
  MeasurementSource  — yearly carapace-width files
  StationSource      — station metadata table
"""

from lighttrap_pipeline.sources.stations import StationSource
from lighttrap_pipeline.sources.yearly import CountSource, MeasurementSource

__all__ = [
    "CountSource",
    "MeasurementSource",
    "StationSource",
]
