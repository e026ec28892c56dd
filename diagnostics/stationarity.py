"""Augmented Dickey-Fuller unit-root testing"""

import logging
import warnings

import numpy as np
import pandas as pd
from statsmodels.tsa.stattools import adfuller

from exceptions import InvalidInput, TestFailed
from models import Decision, TestResult, decide

logger = logging.getLogger(__name__)


class StationarityTester:
    """Runs ADF tests; REJECT_NULL means the series is stationary"""

    def __init__(self, alpha: float = 0.05, autolag: str = 'AIC',
                 regression: str = 'c', min_observations: int = 20):
        self.alpha = alpha
        self.autolag = autolag
        self.regression = regression
        self.min_observations = min_observations

    def test(self, series: pd.Series, name: str = 'series') -> TestResult:
        """ADF test on one series"""
        values = np.asarray(series, dtype=float)
        values = values[~np.isnan(values)]

        if len(values) < self.min_observations:
            raise InvalidInput(
                f"ADF test needs at least {self.min_observations} observations",
                series=name, n_obs=len(values)
            )
        if np.ptp(values) == 0:
            raise TestFailed("ADF test on a constant series", series=name)

        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore')
                adf_stat, p_value, used_lag, nobs, critical_values, _ = adfuller(
                    values, regression=self.regression, autolag=self.autolag
                )
        except (ValueError, np.linalg.LinAlgError) as e:
            logger.error(f"ADF test failed for {name}: {str(e)}")
            raise TestFailed(f"ADF regression failed: {e}", series=name) from e

        if not np.isfinite(adf_stat) or not np.isfinite(p_value):
            raise TestFailed("ADF returned a non-finite statistic", series=name)

        result = TestResult(
            name='adf',
            statistic=float(adf_stat),
            p_value=float(p_value),
            decision=decide(p_value, self.alpha),
            lag=int(used_lag),
            alpha=self.alpha,
        )

        logger.info(
            f"ADF test for {name}: statistic={adf_stat:.4f}, p-value={p_value:.4f}, "
            f"lags={used_lag}, nobs={nobs} -> "
            f"{'stationary' if result.rejected else 'unit root'}"
        )
        return result

    def differencing_order(self, series: pd.Series, max_d: int = 2) -> int:
        """Smallest d whose d-th difference is stationary, capped at max_d"""
        values = np.asarray(series, dtype=float)
        for d in range(max_d + 1):
            differenced = np.diff(values, n=d) if d > 0 else values
            if self.test(differenced, name=f"diff({d})").decision is Decision.REJECT_NULL:
                return d
        logger.warning(f"No differencing order up to {max_d} is stationary, using d={max_d}")
        return max_d
