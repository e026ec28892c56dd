"""
Data validation for daily equity price series.
"""

import logging
import pandas as pd
import numpy as np
from typing import List, Tuple

logger = logging.getLogger(__name__)


class PriceValidator:
    """Validates a cleaned adjusted-close series before analysis."""

    def __init__(self, min_observations: int = 30, max_gap_days: int = 10):
        """
        Args:
            min_observations: Fewer rows than this is reported as an issue
            max_gap_days: Calendar-day gap between rows flagged as missing data
        """
        self.min_observations = min_observations
        self.max_gap_days = max_gap_days

        # Define reasonable bounds for data validation
        self.validation_bounds = {
            'price': {'min': 0, 'max': 1e7},
        }

    def validate(self, prices: pd.Series) -> Tuple[bool, List[str]]:
        """
        Validates a price series.

        Args:
            prices: Series indexed by date

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        issues = []

        if not isinstance(prices.index, pd.DatetimeIndex):
            issues.append("Index is not a DatetimeIndex")
            return False, issues

        if len(prices) < self.min_observations:
            issues.append(
                f"Insufficient observations: {len(prices)} < {self.min_observations}"
            )

        missing_count = int(prices.isna().sum())
        if missing_count > 0:
            issues.append(f"Series has {missing_count} missing values")

        duplicated = prices.index.duplicated()
        if duplicated.any():
            issues.append(
                f"{int(duplicated.sum())} duplicate dates "
                f"(first at {prices.index[duplicated][0]:%Y-%m-%d})"
            )

        if not prices.index.is_monotonic_increasing:
            issues.append("Dates are not sorted ascending")

        issues.extend(self._validate_bounds(
            prices,
            self.validation_bounds['price']['min'],
            self.validation_bounds['price']['max'],
            "adjusted close"
        ))
        issues.extend(self._detect_gaps(prices.index))

        for issue in issues:
            logger.warning(f"Price validation: {issue}")

        return len(issues) == 0, issues

    def _validate_bounds(self, series: pd.Series, min_val: float, max_val: float, name: str) -> List[str]:
        """Validates that values fall within expected bounds."""
        issues = []

        # Prices must be strictly positive for log returns
        below_min = series[series <= min_val]
        if not below_min.empty:
            issues.append(
                f"{name}: {len(below_min)} values at or below {min_val} "
                f"(first occurrence at {below_min.index[0]})"
            )

        above_max = series[series > max_val]
        if not above_max.empty:
            issues.append(
                f"{name}: {len(above_max)} values above maximum of {max_val} "
                f"(first occurrence at {above_max.index[0]})"
            )

        return issues

    def _detect_gaps(self, dates: pd.DatetimeIndex) -> List[str]:
        """Flags calendar gaps longer than max_gap_days"""
        if len(dates) < 2:
            return []
        gaps = np.diff(dates.values).astype('timedelta64[D]').astype(int)
        long_gaps = np.flatnonzero(gaps > self.max_gap_days)
        if len(long_gaps) == 0:
            return []
        first = long_gaps[0]
        return [
            f"{len(long_gaps)} gaps longer than {self.max_gap_days} days "
            f"(first after {dates[first]:%Y-%m-%d}, {gaps[first]} days)"
        ]
