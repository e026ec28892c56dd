"""Tests for conditional heteroscedasticity in residuals"""

import logging
from typing import Dict, Iterable, List, Union

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import het_arch

from diagnostics.autocorrelation import AutocorrelationDiagnostics, _as_lags
from exceptions import InvalidInput, TestFailed
from models import TestResult, decide

logger = logging.getLogger(__name__)


class HeteroscedasticityTester:
    """Box test on squared deviations and ARCH-LM test.

    REJECT_NULL means heteroscedasticity is present.
    """

    def __init__(self, alpha: float = 0.05):
        self.alpha = alpha
        self.autocorrelation = AutocorrelationDiagnostics(alpha=alpha)

    def squared_deviations(self, residuals: pd.Series) -> pd.Series:
        """(e_t - mean(e))^2 as a new series"""
        residuals = residuals.dropna()
        return ((residuals - residuals.mean()) ** 2).rename('squared_deviation')

    def box_test(self, residuals: pd.Series, lags: Union[int, Iterable[int]] = 10) -> List[TestResult]:
        """Ljung-Box test on the squared deviations"""
        return self.autocorrelation.ljung_box(
            self.squared_deviations(residuals), lags=lags, name='box_squared'
        )

    def arch_lm(self, residuals: pd.Series, lags: Union[int, Iterable[int]] = 20) -> List[TestResult]:
        """Engle's ARCH-LM test, one result per lag"""
        values = np.asarray(residuals.dropna(), dtype=float)
        results = []

        for lag in _as_lags(lags):
            if lag < 1 or 2 * lag >= len(values):
                raise InvalidInput(
                    "ARCH-LM lag must be positive and below half the sample size",
                    lag=lag, n_obs=len(values)
                )
            try:
                lm_stat, lm_pvalue, _, _ = het_arch(values, nlags=lag)
            except (ValueError, np.linalg.LinAlgError) as e:
                logger.error(f"ARCH-LM test failed at lag {lag}: {str(e)}")
                raise TestFailed(f"ARCH-LM regression failed: {e}", lag=lag) from e

            if not np.isfinite(lm_pvalue):
                raise TestFailed("ARCH-LM returned a non-finite p-value", lag=lag)

            result = TestResult(
                name='arch_lm',
                statistic=float(lm_stat),
                p_value=float(lm_pvalue),
                decision=decide(lm_pvalue, self.alpha),
                lag=lag,
                alpha=self.alpha,
            )
            logger.info(f"ARCH-LM lag {lag}: LM={lm_stat:.4f}, p-value={lm_pvalue:.4f}")
            results.append(result)

        return results

    def run(self, residuals: pd.Series,
            box_lags: Union[int, Iterable[int]] = (10, 20),
            arch_lags: Union[int, Iterable[int]] = (5, 20)) -> Dict[str, List[TestResult]]:
        """Both tests on one residual series"""
        return {
            'box_squared': self.box_test(residuals, box_lags),
            'arch_lm': self.arch_lm(residuals, arch_lags),
        }
