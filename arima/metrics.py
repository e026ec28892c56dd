"""In-sample error metrics for fitted mean models"""

import numpy as np


def rmse(residuals: np.ndarray) -> float:
    residuals = np.asarray(residuals, dtype=float)
    return float(np.sqrt(np.mean(residuals ** 2)))


def mape(actual: np.ndarray, residuals: np.ndarray) -> float:
    """Mean of |residual / actual| over non-zero actuals; NaN if there are none"""
    actual = np.asarray(actual, dtype=float)
    residuals = np.asarray(residuals, dtype=float)
    nonzero = actual != 0
    if not nonzero.any():
        return float('nan')
    return float(np.mean(np.abs(residuals[nonzero] / actual[nonzero])))


def r_squared(actual: np.ndarray, residuals: np.ndarray) -> float:
    """1 - SSR/SST; NaN for a constant series"""
    actual = np.asarray(actual, dtype=float)
    sst = np.sum((actual - actual.mean()) ** 2)
    if sst == 0:
        return float('nan')
    ssr = np.sum(np.asarray(residuals, dtype=float) ** 2)
    return float(1 - ssr / sst)


def adjusted_r_squared(r2: float, n_obs: int, n_params: int) -> float:
    """1 - (1 - R^2)(n - 1)/(n - p - 1); NaN without residual degrees of freedom"""
    dof = n_obs - n_params - 1
    if dof <= 0 or np.isnan(r2):
        return float('nan')
    return float(1 - (1 - r2) * (n_obs - 1) / dof)
