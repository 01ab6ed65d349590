"""
lighttrap_shared — shared configuration, constants, and record models for the
Sentinels of Change light-trap release pipeline.

Usage:
    from lighttrap_shared.config import settings, load_release_config
    from lighttrap_shared.models import StationRecord, CountRecord, MeasurementRecord
    from lighttrap_shared.constants import QC_CODE_DESCRIPTIONS, OUTPUT_FILES
    from lighttrap_shared.time_utils import parse_sample_date
"""

__version__ = "0.1.0"
