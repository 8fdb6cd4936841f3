"""Defect-tracking time series and loaders."""

from .series import MIN_DAYS, TimeSeriesData
from .loader import COLUMN_MAPPINGS, load_series, series_from_frame

__all__ = [
    "MIN_DAYS",
    "TimeSeriesData",
    "COLUMN_MAPPINGS",
    "load_series",
    "series_from_frame",
]
