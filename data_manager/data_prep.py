"""
Prepare log returns from a cleaned price series.
"""

import logging
from typing import Dict, List

import numpy as np
import pandas as pd
from scipy import stats

from exceptions import InvalidInput
from models import TestResult, decide

logger = logging.getLogger(__name__)


class ReturnTransformer:
    """First-differenced log prices and basic return diagnostics."""

    def __init__(self, extreme_threshold: float = 10.0, alpha: float = 0.05):
        """
        Args:
            extreme_threshold: Moves beyond this many standard deviations are reported
            alpha: Significance level for the normality test
        """
        self.extreme_threshold = extreme_threshold
        self.alpha = alpha

    def log_returns(self, prices: pd.Series) -> pd.Series:
        """
        R[i] = ln(P[i+1]) - ln(P[i]), indexed by the later date.

        Args:
            prices: Strictly positive price series

        Returns:
            Series of length len(prices) - 1
        """
        if len(prices) < 2:
            raise InvalidInput(
                "at least two prices are needed for a return", n_obs=len(prices)
            )

        values = prices.to_numpy(dtype=float)
        non_positive = np.flatnonzero(~(values > 0))
        if len(non_positive) > 0:
            first = prices.index[non_positive[0]]
            raise InvalidInput(
                f"{len(non_positive)} non-positive prices, log undefined",
                first_at=first, value=values[non_positive[0]]
            )

        log_prices = np.log(values)
        returns = pd.Series(np.diff(log_prices), index=prices.index[1:], name='log_return')

        logger.info(
            f"Computed {len(returns):,} log returns: "
            f"mean={returns.mean():.6f}, std={returns.std():.6f}"
        )
        return returns

    def check_quality(self, returns: pd.Series) -> List[str]:
        """Report zero returns and extreme moves; never alters the series"""
        issues = []

        zero_returns = returns[returns == 0]
        if not zero_returns.empty:
            issues.append(f"Found {len(zero_returns)} zero returns")

        std = returns.std()
        if std > 0:
            extremes = returns[np.abs(returns - returns.mean()) > self.extreme_threshold * std]
            if not extremes.empty:
                issues.append(
                    f"Found {len(extremes)} returns beyond {self.extreme_threshold:g} std "
                    f"(first at {extremes.index[0]})"
                )

        for issue in issues:
            logger.warning(f"Return quality: {issue}")
        return issues

    def describe(self, returns: pd.Series) -> Dict:
        """Moments of the return distribution plus a Jarque-Bera normality test"""
        values = returns.dropna().to_numpy()
        jb = stats.jarque_bera(values)

        return {
            'n_obs': len(values),
            'mean': float(np.mean(values)),
            'std': float(np.std(values, ddof=1)),
            'skew': float(stats.skew(values)),
            'excess_kurtosis': float(stats.kurtosis(values)),
            'jarque_bera': TestResult(
                name='jarque_bera',
                statistic=float(jb.statistic),
                p_value=float(jb.pvalue),
                decision=decide(jb.pvalue, self.alpha),
                alpha=self.alpha,
            ),
        }
