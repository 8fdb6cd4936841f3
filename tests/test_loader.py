"""Tests for TimeSeriesData and the CSV/Excel loader."""

import tempfile
from datetime import date
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from bugconverge.data import TimeSeriesData, load_series, series_from_frame
from bugconverge.data.loader import map_columns


FIXTURE = Path(__file__).parent / "fixtures" / "sample_project.csv"


class TestTimeSeriesData:
    """Tests for the series container."""

    def test_cumulative_views(self):
        data = TimeSeriesData(project_name="p", found=[3, 2, 1], fixed=[1, 1, 1])
        np.testing.assert_array_equal(data.cumulative_found, [3, 5, 6])
        np.testing.assert_array_equal(data.remaining, [2, 3, 3])
        np.testing.assert_array_equal(data.time_index, [1.0, 2.0, 3.0])
        assert data.current_cumulative_defects == 6.0

    def test_optional_series_default_to_zero(self):
        data = TimeSeriesData(project_name="p", found=[1, 1, 1])
        assert not data.has_fixed
        assert not data.has_effort
        curve = data.to_curve()
        assert curve.fixed is None
        assert curve.effort is None

    def test_too_few_days(self):
        with pytest.raises(ValueError, match="At least 3 days"):
            TimeSeriesData(project_name="p", found=[1, 2])

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="fixed has 2 values"):
            TimeSeriesData(project_name="p", found=[1, 2, 3], fixed=[1, 1])

    def test_dates_from_start(self):
        data = TimeSeriesData(project_name="p", found=[1, 1, 1], start_date=date(2024, 2, 28))
        assert data.dates == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]

    def test_date_for_day_rounds_up(self):
        data = TimeSeriesData(project_name="p", found=[1, 1, 1], start_date=date(2024, 1, 1))
        assert data.date_for_day(1.0) == date(2024, 1, 1)
        assert data.date_for_day(2.2) == date(2024, 1, 3)

    def test_head(self):
        data = TimeSeriesData(project_name="p", found=[1, 2, 3, 4, 5], start_date=date(2024, 1, 1))
        head = data.head(3)
        assert head.n_days == 3
        assert head.dates[-1] == date(2024, 1, 3)
        with pytest.raises(ValueError):
            data.head(2)

    def test_from_cumulative(self):
        data = TimeSeriesData.from_cumulative([2, 5, 9], cumulative_fixed=[0, 1, 4])
        np.testing.assert_array_equal(data.found, [2, 3, 4])
        np.testing.assert_array_equal(data.fixed, [0, 1, 3])


class TestColumnMapping:
    """Tests for header alias recognition."""

    def test_aliases(self):
        df = pd.DataFrame(columns=["Test Date", "Executed", "Defects Found", "Resolved"])
        mapping = map_columns(df)
        assert mapping == {
            "date": "Test Date",
            "actual": "Executed",
            "found": "Defects Found",
            "fixed": "Resolved",
        }

    def test_first_match_wins(self):
        df = pd.DataFrame(columns=["found", "defects"])
        assert map_columns(df)["found"] == "found"


class TestSeriesFromFrame:
    """Tests for building series from tables."""

    def test_missing_found_column(self):
        df = pd.DataFrame({"date": ["2024-01-01"] * 3, "fixed": [1, 2, 3]})
        with pytest.raises(ValueError, match="No defects-found column"):
            series_from_frame(df, "p")

    def test_too_few_rows(self):
        df = pd.DataFrame({"found": [1, 2]})
        with pytest.raises(ValueError, match="At least 3 days"):
            series_from_frame(df, "p")

    def test_synthesized_dates(self):
        df = pd.DataFrame({"found": [4, 3, 1]})
        data = series_from_frame(df, "p", start_date=date(2024, 5, 1))
        assert data.start_date == date(2024, 5, 1)
        assert data.dates[-1] == date(2024, 5, 3)

    def test_blank_values_become_zero(self):
        df = pd.DataFrame({"found": [4, None, 1], "fixed": [1, 2, None]})
        data = series_from_frame(df, "p", start_date=date(2024, 5, 1))
        np.testing.assert_array_equal(data.found, [4, 0, 1])
        np.testing.assert_array_equal(data.fixed, [1, 2, 0])


class TestLoadSeries:
    """Tests for loading files."""

    def test_fixture(self):
        data = load_series(FIXTURE)
        assert data.project_name == "sample_project"
        assert data.n_days == 14
        assert data.current_cumulative_defects == 87.0
        assert data.start_date == date(2024, 3, 4)
        assert data.has_fixed
        assert data.has_effort

    def test_project_name_override(self):
        data = load_series(FIXTURE, project_name="release-2")
        assert data.project_name == "release-2"

    def test_excel(self):
        df = pd.DataFrame({"Date": pd.date_range("2024-01-01", periods=4), "Bugs Found": [5, 4, 2, 1]})
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "proj.xlsx"
            df.to_excel(path, index=False)
            data = load_series(path)
        assert data.n_days == 4
        assert data.dates[0] == date(2024, 1, 1)

    def test_unsupported_suffix(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "proj.txt"
            path.write_text("found\n1\n2\n3\n")
            with pytest.raises(ValueError, match="Unsupported file format"):
                load_series(path)
