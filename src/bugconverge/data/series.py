"""Daily defect-tracking time series for one project."""

from dataclasses import dataclass, field
from datetime import date, timedelta

import numpy as np

from ..core.models import ObservedCurve

MIN_DAYS = 3


@dataclass
class TimeSeriesData:
    """Daily test execution and defect counts for a project.

    All series hold per-day values; cumulative views are derived.

    Attributes:
        project_name: Project label used in reports and output file names
        found: Defects found per day
        dates: Calendar date of each row (synthesized from start_date if omitted)
        planned: Planned test cases per day (zeros if not recorded)
        actual: Executed test cases per day, used as test effort
        fixed: Defects fixed per day (zeros if not recorded)
        start_date: Date of day 1
        total_test_cases: Planned size of the test campaign, if known
    """
    project_name: str
    found: np.ndarray
    dates: list[date] = field(default_factory=list)
    planned: np.ndarray | None = None
    actual: np.ndarray | None = None
    fixed: np.ndarray | None = None
    start_date: date | None = None
    total_test_cases: int | None = None

    def __post_init__(self) -> None:
        """Normalize arrays and validate lengths."""
        self.found = np.asarray(self.found, dtype=float)
        n = len(self.found)
        if n < MIN_DAYS:
            raise ValueError(f"At least {MIN_DAYS} days of data are required, got {n}")

        self.planned = self._normalize(self.planned, "planned", n)
        self.actual = self._normalize(self.actual, "actual", n)
        self.fixed = self._normalize(self.fixed, "fixed", n)

        if self.dates:
            if len(self.dates) != n:
                raise ValueError(f"dates has {len(self.dates)} entries, expected {n}")
            self.dates = list(self.dates)
            if self.start_date is None:
                self.start_date = self.dates[0]
        elif self.start_date is not None:
            self.dates = [self.start_date + timedelta(days=i) for i in range(n)]

    @staticmethod
    def _normalize(values: np.ndarray | None, name: str, n: int) -> np.ndarray:
        if values is None:
            return np.zeros(n)
        values = np.asarray(values, dtype=float)
        if len(values) != n:
            raise ValueError(f"{name} has {len(values)} values, expected {n}")
        return values

    @property
    def n_days(self) -> int:
        return len(self.found)

    @property
    def time_index(self) -> np.ndarray:
        """Day numbers 1..n."""
        return np.arange(1, self.n_days + 1, dtype=float)

    @property
    def cumulative_found(self) -> np.ndarray:
        return np.cumsum(self.found)

    @property
    def cumulative_fixed(self) -> np.ndarray:
        return np.cumsum(self.fixed)

    @property
    def cumulative_planned(self) -> np.ndarray:
        return np.cumsum(self.planned)

    @property
    def cumulative_actual(self) -> np.ndarray:
        return np.cumsum(self.actual)

    @property
    def remaining(self) -> np.ndarray:
        """Open defects per day (cumulative found minus cumulative fixed)."""
        return self.cumulative_found - self.cumulative_fixed

    @property
    def current_cumulative_defects(self) -> float:
        return float(self.cumulative_found[-1])

    @property
    def has_effort(self) -> bool:
        """True when any test execution was recorded."""
        return bool(np.any(self.actual > 0))

    @property
    def has_fixed(self) -> bool:
        return bool(np.any(self.fixed > 0))

    def to_curve(self) -> ObservedCurve:
        """Cumulative curve used for model fitting.

        Fixed and effort series are attached only when they were recorded.
        """
        return ObservedCurve(
            t=self.time_index,
            found=self.cumulative_found,
            fixed=self.cumulative_fixed if self.has_fixed else None,
            effort=self.cumulative_actual if self.has_effort else None,
        )

    def head(self, n_days: int) -> "TimeSeriesData":
        """First ``n_days`` days as a new series.

        Raises:
            ValueError: If fewer than 3 days would remain
        """
        return TimeSeriesData(
            project_name=self.project_name,
            found=self.found[:n_days],
            dates=self.dates[:n_days],
            planned=self.planned[:n_days],
            actual=self.actual[:n_days],
            fixed=self.fixed[:n_days],
            start_date=self.start_date,
            total_test_cases=self.total_test_cases,
        )

    def date_for_day(self, day: float) -> date | None:
        """Calendar date of a (possibly fractional) day number, rounded up."""
        if self.start_date is None:
            return None
        return self.start_date + timedelta(days=int(np.ceil(day)) - 1)

    @classmethod
    def from_cumulative(
        cls,
        cumulative_found,
        project_name: str = "project",
        cumulative_fixed=None,
        start_date: date | None = None,
    ) -> "TimeSeriesData":
        """Build a series from cumulative counts (daily values are differenced)."""
        found = np.diff(np.asarray(cumulative_found, dtype=float), prepend=0.0)
        fixed = None
        if cumulative_fixed is not None:
            fixed = np.diff(np.asarray(cumulative_fixed, dtype=float), prepend=0.0)
        return cls(project_name=project_name, found=found, fixed=fixed, start_date=start_date)
