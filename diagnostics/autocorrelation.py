"""ACF/PACF values and Ljung-Box portmanteau tests"""

import logging
from typing import Iterable, List, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.stattools import acf, pacf

from exceptions import InvalidInput, TestFailed
from models import TestResult, decide

logger = logging.getLogger(__name__)


def _as_lags(lags: Union[int, Iterable[int]]) -> List[int]:
    return [int(lags)] if np.isscalar(lags) else [int(lag) for lag in lags]


class AutocorrelationDiagnostics:
    """Correlogram values and Ljung-Box tests; REJECT_NULL means autocorrelation"""

    def __init__(self, nlags: int = 25, alpha: float = 0.05):
        self.nlags = nlags
        self.alpha = alpha

    def correlogram(self, series: pd.Series, nlags: int = None) -> pd.DataFrame:
        """
        ACF and PACF for lags 0..nlags.

        Returns:
            DataFrame indexed by lag with 'acf' and 'pacf' columns
        """
        nlags = self.nlags if nlags is None else nlags
        values = np.asarray(series.dropna(), dtype=float)

        # PACF estimation needs fewer lags than half the sample
        if nlags < 1 or nlags >= len(values) // 2:
            raise InvalidInput(
                "lag count must be positive and below half the sample size",
                nlags=nlags, n_obs=len(values)
            )
        if np.ptp(values) == 0:
            raise TestFailed("correlogram of a constant series")

        acf_values = acf(values, nlags=nlags, fft=True)
        pacf_values = pacf(values, nlags=nlags)

        return pd.DataFrame(
            {'acf': acf_values, 'pacf': pacf_values},
            index=pd.RangeIndex(nlags + 1, name='lag'),
        )

    def ljung_box(self, series: pd.Series, lags: Union[int, Iterable[int]] = 10,
                  name: str = 'ljung_box') -> List[TestResult]:
        """One Ljung-Box test per requested lag"""
        values = np.asarray(series.dropna(), dtype=float)
        lags = _as_lags(lags)

        if max(lags) >= len(values):
            raise InvalidInput(
                "Ljung-Box lag must be smaller than the sample size",
                lags=lags, n_obs=len(values)
            )

        try:
            table = acorr_ljungbox(values, lags=lags, return_df=True)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise TestFailed(f"Ljung-Box test failed: {e}", lags=lags) from e

        results = []
        for lag, row in table.iterrows():
            if not np.isfinite(row['lb_pvalue']):
                raise TestFailed("Ljung-Box returned a non-finite p-value", lag=int(lag))
            result = TestResult(
                name=name,
                statistic=float(row['lb_stat']),
                p_value=float(row['lb_pvalue']),
                decision=decide(row['lb_pvalue'], self.alpha),
                lag=int(lag),
                alpha=self.alpha,
            )
            logger.info(
                f"{name} lag {lag}: Q={result.statistic:.4f}, p-value={result.p_value:.4f}"
            )
            results.append(result)
        return results
