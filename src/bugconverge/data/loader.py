"""Loader for daily defect-tracking tables (CSV or Excel)."""

from datetime import date, timedelta
import logging
from pathlib import Path

import numpy as np
import pandas as pd

from .series import MIN_DAYS, TimeSeriesData

logger = logging.getLogger(__name__)


# Lowercased column header -> standard name
COLUMN_MAPPINGS: dict[str, str] = {
    "date": "date",
    "test_date": "date",
    "test date": "date",
    "planned": "planned",
    "planned_tests": "planned",
    "planned tests": "planned",
    "planned_test_cases": "planned",
    "actual": "actual",
    "executed": "actual",
    "actual_tests": "actual",
    "actual tests": "actual",
    "executed_test_cases": "actual",
    "found": "found",
    "bugs_found": "found",
    "bugs found": "found",
    "defects_found": "found",
    "defects found": "found",
    "new_defects": "found",
    "defects": "found",
    "fixed": "fixed",
    "bugs_fixed": "fixed",
    "bugs fixed": "fixed",
    "defects_fixed": "fixed",
    "defects fixed": "fixed",
    "resolved": "fixed",
    "closed": "fixed",
}

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xls")


def map_columns(df: pd.DataFrame) -> dict[str, str]:
    """Map DataFrame columns to standard names using COLUMN_MAPPINGS.

    Returns:
        Dictionary mapping standard name -> actual column name
    """
    mapping: dict[str, str] = {}
    for column in df.columns:
        standard_name = COLUMN_MAPPINGS.get(str(column).lower().strip())
        # First match wins
        if standard_name and standard_name not in mapping:
            mapping[standard_name] = column
    return mapping


def load_file(filepath: Path | str) -> pd.DataFrame:
    """Load CSV or Excel file into DataFrame.

    Raises:
        ValueError: If file format not supported
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()

    if suffix == ".csv":
        return pd.read_csv(filepath)
    elif suffix in (".xlsx", ".xls"):
        return pd.read_excel(filepath)
    else:
        raise ValueError(f"Unsupported file format: {filepath.suffix}")


def _column_values(df: pd.DataFrame, col_map: dict[str, str], name: str) -> np.ndarray | None:
    column = col_map.get(name)
    if column is None:
        return None
    return pd.to_numeric(df[column], errors="coerce").fillna(0).to_numpy(dtype=float)


def series_from_frame(
    df: pd.DataFrame,
    project_name: str,
    start_date: date | None = None,
    total_test_cases: int | None = None,
) -> TimeSeriesData:
    """Build a TimeSeriesData from a table with one row per day.

    Args:
        df: Table with at least a found column
        project_name: Project label
        start_date: Date of day 1 when the table has no date column
        total_test_cases: Planned size of the test campaign

    Returns:
        TimeSeriesData with missing planned/actual/fixed columns as zeros

    Raises:
        ValueError: If the found column is missing or there are too few rows
    """
    col_map = map_columns(df)
    if "found" not in col_map:
        raise ValueError(f"No defects-found column found. Columns found: {list(df.columns[:10])}")

    df = df.dropna(how="all").reset_index(drop=True)
    if len(df) < MIN_DAYS:
        raise ValueError(f"At least {MIN_DAYS} days of data are required, got {len(df)}")

    dates: list[date] = []
    date_col = col_map.get("date")
    if date_col is not None:
        parsed = pd.to_datetime(df[date_col], errors="coerce")
        if not parsed.isna().any():
            dates = [ts.date() for ts in parsed]
        else:
            logger.warning(f"{project_name}: unparseable dates, synthesizing from start date")

    if not dates:
        start = start_date or date.today()
        dates = [start + timedelta(days=i) for i in range(len(df))]

    return TimeSeriesData(
        project_name=project_name,
        found=_column_values(df, col_map, "found"),
        dates=dates,
        planned=_column_values(df, col_map, "planned"),
        actual=_column_values(df, col_map, "actual"),
        fixed=_column_values(df, col_map, "fixed"),
        start_date=dates[0],
        total_test_cases=total_test_cases,
    )


def load_series(
    filepath: Path | str,
    project_name: str | None = None,
    start_date: date | None = None,
    total_test_cases: int | None = None,
) -> TimeSeriesData:
    """Load one project's daily series from a CSV or Excel file.

    Args:
        filepath: Path to CSV or Excel file
        project_name: Project label (file stem if None)
        start_date: Date of day 1 when the file has no date column (today if None)
        total_test_cases: Planned size of the test campaign

    Returns:
        TimeSeriesData for the project

    Raises:
        ValueError: If file format not supported, the found column is
            missing, or there are fewer than 3 rows
    """
    filepath = Path(filepath)
    df = load_file(filepath)
    data = series_from_frame(
        df,
        project_name=project_name or filepath.stem,
        start_date=start_date,
        total_test_cases=total_test_cases,
    )
    logger.info(f"Loaded {data.n_days} days for {data.project_name} from {filepath.name}")
    return data
